"""
Timing and Benchmarking Utilities

Wall-clock measurement of mean-shift dispatches, plus a small runner that
times complete transforms on every available backend and compares them.

Everything printed here goes to the diagnostic stream (stderr); stdout is
reserved for shifted points.

Example:
    >>> with Timer("Iteration 1") as t:
    ...     shifted = driver.dispatch(current, original)
    >>> t.elapsed_ms
    3.71
"""

import sys
import time
from dataclasses import dataclass, field
from typing import Optional, Callable, List, Dict, TextIO
import statistics

from ..data_models import MeanShiftResult


class Timer:
    """
    Context manager measuring the wall time of one block.

    A named, verbose timer prints "<name>: <ms> ms" when the block exits.

    Attributes:
        name: Label printed with the timing
        elapsed: Seconds spent inside the block
    """

    def __init__(
        self,
        name: Optional[str] = None,
        verbose: bool = True,
        stream: Optional[TextIO] = None
    ):
        self.name = name
        self.verbose = verbose
        self.stream = stream
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> 'Timer':
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed = time.perf_counter() - self._start
        if self.verbose and self.name:
            print(f"{self.name}: {self.elapsed_ms:.2f} ms",
                  file=self.stream or sys.stderr)

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed * 1000


def compute_speedup(baseline_ms: float, backend_ms: float) -> float:
    """
    How many times faster a backend ran than the baseline.

    Example:
        >>> compute_speedup(100.0, 25.0)
        4.0
    """
    if backend_ms <= 0:
        return float('inf')
    return baseline_ms / backend_ms


@dataclass
class BenchmarkResult:
    """
    Trial timings of one backend at one problem size.

    Attributes:
        backend: Backend name
        times_ms: Wall time of each timed trial
        metadata: Shape of the timed run, copied from the last
            MeanShiftResult (num_points, iterations, num_work_groups,
            work_group_size); empty for callables returning anything else
    """
    backend: str
    times_ms: List[float] = field(default_factory=list)
    metadata: Dict[str, int] = field(default_factory=dict)

    def add_trial(self, time_ms: float, run: Optional[MeanShiftResult] = None) -> None:
        """Record one trial and, when given, the run it produced."""
        self.times_ms.append(time_ms)
        if run is not None:
            self.metadata = {
                "num_points": run.num_points,
                "iterations": run.iterations,
                "num_work_groups": run.partition.num_work_groups,
                "work_group_size": run.partition.work_group_size,
            }

    @property
    def mean_ms(self) -> float:
        if not self.times_ms:
            return 0.0
        return statistics.mean(self.times_ms)

    @property
    def std_ms(self) -> float:
        if len(self.times_ms) < 2:
            return 0.0
        return statistics.stdev(self.times_ms)

    @property
    def num_trials(self) -> int:
        return len(self.times_ms)

    @property
    def per_iteration_ms(self) -> Optional[float]:
        """Mean trial time divided by the dispatch count, if known."""
        iterations = self.metadata.get("iterations")
        if not iterations:
            return None
        return self.mean_ms / iterations

    def summary(self) -> str:
        text = (f"{self.backend}: {self.mean_ms:.2f} ± {self.std_ms:.2f} ms "
                f"over {self.num_trials} trials")
        if self.per_iteration_ms is not None:
            text += f", {self.per_iteration_ms:.3f} ms/iteration"
        return text


class Benchmark:
    """
    Times the same transform on several backends.

    Example:
        >>> bench = Benchmark("Mean shift, 4096 points")
        >>> bench.add_backend("numpy", lambda: run_mean_shift(cpu_config))
        >>> bench.add_backend("cupy", lambda: run_mean_shift(cuda_config))
        >>> bench.run(n_trials=3)
        >>> bench.print_comparison(baseline="numpy")
    """

    def __init__(self, name: str):
        self.name = name
        self.runners: Dict[str, Callable[[], object]] = {}
        self.results: Dict[str, BenchmarkResult] = {}

    def add_backend(self, backend: str, runner: Callable[[], object]) -> None:
        """Register a zero-argument callable that performs one full run."""
        self.runners[backend] = runner
        self.results[backend] = BenchmarkResult(backend)

    def run(
        self,
        n_trials: int = 3,
        warmup: int = 1,
        verbose: bool = False,
        stream: Optional[TextIO] = None
    ) -> Dict[str, BenchmarkResult]:
        """
        Time every registered backend.

        Warmup runs are not timed; on GPU backends the first call
        includes kernel compilation and device initialization.

        Args:
            n_trials: Timed runs per backend
            warmup: Untimed runs per backend before timing
            verbose: Print the time of every trial
            stream: Where verbose trial times go (default stderr)
        """
        for backend, runner in self.runners.items():
            for _ in range(warmup):
                runner()

            result = self.results[backend]
            for trial in range(1, n_trials + 1):
                with Timer(f"  {backend} trial {trial}", verbose=verbose, stream=stream) as t:
                    run = runner()
                result.add_trial(
                    t.elapsed_ms,
                    run if isinstance(run, MeanShiftResult) else None
                )

        return self.results

    def get_speedups(self, baseline: str) -> Dict[str, float]:
        baseline_ms = self.results[baseline].mean_ms
        return {
            backend: compute_speedup(baseline_ms, result.mean_ms)
            for backend, result in self.results.items()
        }

    def print_comparison(
        self,
        baseline: Optional[str] = None,
        stream: Optional[TextIO] = None
    ) -> None:
        """Print one row per backend with its speedup over baseline."""
        out = stream or sys.stderr
        if baseline is None:
            baseline = next(iter(self.results))
        speedups = self.get_speedups(baseline)

        print(f"\nBenchmark: {self.name}", file=out)
        print("=" * 66, file=out)
        print(f"{'Backend':<10} {'Groups':>8} {'Mean (ms)':>12} {'Std (ms)':>10} "
              f"{'ms/iter':>10} {'Speedup':>10}", file=out)
        print("-" * 66, file=out)

        for backend, result in self.results.items():
            groups = result.metadata.get("num_work_groups", "-")
            per_iter = result.per_iteration_ms
            per_iter_str = f"{per_iter:.3f}" if per_iter is not None else "-"
            speedup_str = f"{speedups[backend]:.2f}x" if backend != baseline else "(baseline)"
            print(f"{backend:<10} {groups:>8} {result.mean_ms:>12.2f} {result.std_ms:>10.2f} "
                  f"{per_iter_str:>10} {speedup_str:>10}", file=out)

        print(file=out)
