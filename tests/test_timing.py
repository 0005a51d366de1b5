"""
Tests for Timing and Benchmarking Utilities

Test Categories:
1. Timer measurement and printing
2. Speedup ratios
3. Benchmark runner over plain callables and real transforms
4. Comparison table on the diagnostic stream

Run with: pytest tests/test_timing.py -v
"""

import io
import time

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from meanshift.data_models import MeanShiftConfig
from meanshift.hpc.timing import Timer, compute_speedup, Benchmark, BenchmarkResult
from meanshift.shift.loop import run_mean_shift


class TestTimer:
    """Timer measures a block and optionally reports it."""

    def test_measures_elapsed_time(self):
        with Timer(verbose=False) as t:
            time.sleep(0.01)
        assert t.elapsed_ms >= 5.0

    def test_named_timer_prints_to_stream(self):
        stream = io.StringIO()
        with Timer("Iteration 1", stream=stream):
            pass
        assert stream.getvalue().startswith("Iteration 1: ")
        assert stream.getvalue().rstrip().endswith(" ms")

    def test_defaults_to_stderr(self, capsys):
        with Timer("Iteration 2"):
            pass
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Iteration 2:" in captured.err

    def test_silent_when_not_verbose(self, capsys):
        with Timer("quiet", verbose=False):
            pass
        assert capsys.readouterr().err == ""


class TestSpeedup:

    def test_ratio(self):
        assert compute_speedup(100.0, 25.0) == 4.0

    def test_zero_time_is_infinite(self):
        assert compute_speedup(10.0, 0.0) == float('inf')


class TestBenchmarkResult:

    def test_statistics(self):
        result = BenchmarkResult("numpy", times_ms=[10.0, 20.0, 30.0])
        assert result.mean_ms == 20.0
        assert result.std_ms == pytest.approx(10.0)
        assert result.num_trials == 3

    def test_no_per_iteration_time_without_metadata(self):
        result = BenchmarkResult("numpy", times_ms=[5.0])
        assert result.per_iteration_ms is None
        assert "ms/iteration" not in result.summary()


class TestBenchmark:
    """Benchmark times every registered runner."""

    def test_two_callables(self):
        bench = Benchmark("sleepers")
        bench.add_backend("slow", lambda: time.sleep(0.02))
        bench.add_backend("fast", lambda: None)

        results = bench.run(n_trials=2, warmup=0)

        assert results["slow"].num_trials == 2
        assert results["fast"].num_trials == 2
        assert results["slow"].metadata == {}
        speedups = bench.get_speedups("slow")
        assert speedups["slow"] == pytest.approx(1.0)
        assert speedups["fast"] > 1.0

    def test_records_run_shape(self):
        config = MeanShiftConfig(point_count=10, max_iterations=2,
                                 work_group_size=4, force_cpu=True)
        bench = Benchmark("Mean shift, 10 points")
        bench.add_backend("numpy", lambda: run_mean_shift(config))

        result = bench.run(n_trials=1, warmup=0)["numpy"]

        assert result.metadata == {
            "num_points": 10,
            "iterations": 2,
            "num_work_groups": 3,
            "work_group_size": 4,
        }
        assert result.per_iteration_ms == pytest.approx(result.mean_ms / 2)

    def test_verbose_prints_each_trial(self, capsys):
        bench = Benchmark("noop")
        bench.add_backend("numpy", lambda: None)
        bench.run(n_trials=2, warmup=0, verbose=True)

        err = capsys.readouterr().err
        assert "numpy trial 1:" in err
        assert "numpy trial 2:" in err

    def test_comparison_goes_to_stderr(self, capsys):
        bench = Benchmark("noop")
        bench.add_backend("numpy", lambda: None)
        bench.add_backend("cupy", lambda: None)
        bench.run(n_trials=1, warmup=0)

        bench.print_comparison(baseline="numpy")
        captured = capsys.readouterr()

        assert captured.out == ""
        assert "Benchmark: noop" in captured.err
        assert "(baseline)" in captured.err
