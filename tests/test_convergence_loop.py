"""
Tests for the Fixed-Count Mean-Shift Loop

Test Categories:
1. Iteration count (zero, exact count, no early stop)
2. End-to-end scenarios on tiny inputs
3. Determinism across runs of different length
4. Configuration validation
5. Clustered inputs converging to their modes

Run with: pytest tests/test_convergence_loop.py -v
"""

import json

import pytest
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from meanshift.data_models import MeanShiftConfig, PointBuffer
from meanshift.shift.driver import IterationDriver
from meanshift.shift.loop import run_mean_shift, run_iterations
from meanshift.synthetic_data import generate_diagonal_points, generate_blob_points


def make_config(points, bandwidth=3.0, iterations=1, **kwargs) -> MeanShiftConfig:
    """Helper to build a CPU config around explicit points."""
    buffer = PointBuffer.from_points(points)
    return MeanShiftConfig(
        point_count=len(buffer),
        bandwidth=bandwidth,
        max_iterations=iterations,
        initial_points=buffer,
        force_cpu=True,
        **kwargs
    )


class TestIterationCount:
    """The loop performs exactly max_iterations dispatches."""

    def test_zero_iterations_returns_input(self):
        points = [[0.0, 0.0], [1.0, 1.0], [5.0, 2.0]]
        result = run_mean_shift(make_config(points, iterations=0))

        assert result.iterations == 0
        assert np.array_equal(result.final_points.as_array(), np.float32(points))
        assert result.iteration_times_ms == []

    def test_exact_dispatch_count(self):
        seen = []
        config = make_config(generate_diagonal_points(8).as_array(), iterations=7)

        result = run_mean_shift(config, on_iteration=lambda k, pts: seen.append(k))

        assert result.iterations == 7
        assert seen == [1, 2, 3, 4, 5, 6, 7]
        assert len(result.iteration_times_ms) == 7

    def test_no_early_stop_after_convergence(self):
        """Identical points never move, yet every iteration still runs."""
        seen = []
        config = make_config([[1.0, 1.0]] * 4, iterations=5)

        result = run_mean_shift(config, on_iteration=lambda k, pts: seen.append(k))

        assert result.iterations == 5
        assert len(seen) == 5

    def test_negative_iterations_rejected(self):
        driver = IterationDriver(2, bandwidth=1.0, force_cpu=True)
        with pytest.raises(ValueError):
            run_iterations(driver, PointBuffer.from_points([[0, 0], [1, 1]]), -1)


class TestScenarios:
    """End-to-end scenarios on tiny inputs."""

    def test_four_diagonal_points_one_iteration(self):
        """Every point moves, and stays strictly inside (0,0)-(3,3)."""
        points = [[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]]
        result = run_mean_shift(make_config(points, bandwidth=3.0, iterations=1))

        shifted = result.final_points.as_array()
        original = np.float32(points)

        assert not np.any(np.all(np.isclose(shifted, original), axis=1))
        assert np.all(shifted > 0.0)
        assert np.all(shifted < 3.0)

    def test_four_diagonal_points_move_inward(self):
        """End points move toward the middle of the set."""
        points = [[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]]
        shifted = run_mean_shift(make_config(points)).final_points.as_array()

        assert shifted[0, 0] > 0.0
        assert shifted[3, 0] < 3.0
        # Symmetric input, symmetric output
        assert np.allclose(shifted[0] + shifted[3], 3.0, atol=1e-5)

    @pytest.mark.parametrize("bandwidth,iterations", [(0.1, 1), (3.0, 10), (50.0, 3)])
    def test_single_point_is_fixed(self, bandwidth, iterations):
        result = run_mean_shift(
            make_config([[4.5, -2.0]], bandwidth=bandwidth, iterations=iterations)
        )
        assert np.allclose(result.final_points.as_array(), [[4.5, -2.0]], atol=1e-5)

    def test_reference_generator_used_by_default(self):
        config = MeanShiftConfig(point_count=16, max_iterations=0, force_cpu=True)
        result = run_mean_shift(config)
        assert np.array_equal(
            result.final_points.as_array(),
            generate_diagonal_points(16).as_array()
        )


class TestBufferLifecycle:
    """Original set stays constant, previous set is the last input."""

    def test_original_points_unchanged(self):
        points = generate_blob_points(30, seed=1)
        result = run_mean_shift(make_config(points.as_array(), iterations=4))
        assert np.array_equal(result.original_points.as_array(), points.as_array())

    def test_caller_buffer_not_mutated(self):
        points = generate_blob_points(30, seed=2)
        before = points.as_array().copy()
        config = make_config(points.as_array(), iterations=3)
        config.initial_points = points

        run_mean_shift(config)

        assert np.array_equal(points.as_array(), before)

    def test_previous_points_is_last_input(self):
        snapshots = {}
        config = make_config(generate_blob_points(20, seed=4).as_array(), iterations=3)

        result = run_mean_shift(
            config, on_iteration=lambda k, pts: snapshots.__setitem__(k, pts)
        )

        assert np.array_equal(result.previous_points.as_array(), snapshots[2].as_array())
        assert np.array_equal(result.final_points.as_array(), snapshots[3].as_array())

    def test_previous_points_single_iteration(self):
        points = generate_blob_points(20, seed=4)
        result = run_mean_shift(make_config(points.as_array(), iterations=1))
        assert np.array_equal(result.previous_points.as_array(), points.as_array())


class TestDeterminism:
    """Iteration k of a long run equals a fresh run of exactly k iterations."""

    def test_prefix_equals_fresh_run(self):
        points = generate_blob_points(40, seed=9).as_array()
        snapshots = {}

        run_mean_shift(
            make_config(points, iterations=6),
            on_iteration=lambda k, pts: snapshots.__setitem__(k, pts)
        )
        fresh = run_mean_shift(make_config(points, iterations=3))

        assert np.array_equal(snapshots[3].as_array(), fresh.final_points.as_array())

    def test_repeat_runs_identical(self):
        points = generate_blob_points(40, seed=10).as_array()
        a = run_mean_shift(make_config(points, iterations=4))
        b = run_mean_shift(make_config(points, iterations=4))
        assert np.array_equal(a.final_points.as_array(), b.final_points.as_array())


class TestConfiguration:
    """Invalid configurations are rejected before any dispatch."""

    @pytest.mark.parametrize("field,value", [
        ("bandwidth", 0.0),
        ("bandwidth", -1.0),
        ("bandwidth", float("inf")),
        ("bandwidth", float("nan")),
        ("max_iterations", -1),
        ("point_count", 0),
        ("work_group_size", 0),
        ("tolerance", -0.5),
        ("tolerance", float("nan")),
    ])
    def test_invalid_values(self, field, value):
        config = MeanShiftConfig(point_count=4, force_cpu=True)
        setattr(config, field, value)
        with pytest.raises(ValueError):
            run_mean_shift(config)

    def test_point_count_mismatch(self):
        config = make_config([[0.0, 0.0], [1.0, 1.0]])
        config.point_count = 3
        with pytest.raises(ValueError):
            run_mean_shift(config)

    def test_bad_point_shape(self):
        with pytest.raises(ValueError):
            PointBuffer(np.zeros((4, 3)))

    def test_json_round_trip(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text(json.dumps({
            "bandwidth": 1.5,
            "max_iterations": 2,
            "initial_points": [[0, 0], [1, 0], [0, 1]],
            "force_cpu": True
        }))

        config = MeanShiftConfig.load_from_json(str(path))

        assert config.point_count == 3
        assert config.bandwidth == 1.5
        assert config.max_iterations == 2
        assert run_mean_shift(config).iterations == 2

    def test_json_work_group_size_is_converted(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text(json.dumps({"point_count": 6, "work_group_size": "2"}))

        config = MeanShiftConfig.load_from_json(str(path))
        config.validate()

        assert config.work_group_size == 2


class TestClusteredInput:
    """Points drawn around well separated centers collapse onto their modes."""

    def test_blobs_converge_to_centers(self):
        centers = [(0.0, 0.0), (50.0, 0.0), (0.0, 50.0)]
        points = generate_blob_points(150, centers=centers, spread=1.0, seed=42)

        result = run_mean_shift(make_config(points.as_array(), bandwidth=3.0, iterations=30))

        shifted = result.final_points.as_array()
        labels = np.arange(150) % 3
        expected = np.asarray(centers)[labels]
        assert np.all(np.linalg.norm(shifted - expected, axis=1) < 1.0)
