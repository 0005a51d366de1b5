"""
Tests for the Brute-Force Verifier

Test Categories:
1. Success on genuine parallel results
2. Failure on perturbed results, reporting the first bad index
3. Tolerance boundary and NaN handling
4. Message format

Run with: pytest tests/test_verifier.py -v
"""

import pytest
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from meanshift.data_models import MeanShiftConfig, VerificationResult
from meanshift.shift.loop import run_mean_shift
from meanshift.shift.verify import verify_mean_shift
from meanshift.shift.kernel import shift_block
from meanshift.synthetic_data import generate_diagonal_points, generate_blob_points


@pytest.fixture
def one_step():
    """Points, original set and one parallel shift of them."""
    points = generate_blob_points(60, spread=2.0, seed=21).as_array()
    shifted = shift_block(points, points, 2.5)
    return points, shifted


class TestVerificationSuccess:
    """Genuine results pass."""

    def test_single_step(self, one_step):
        points, shifted = one_step
        result = verify_mean_shift(points, points, 2.5, shifted)
        assert result.success
        assert result.index == -1
        assert bool(result)

    def test_full_run_with_verify(self):
        config = MeanShiftConfig(
            point_count=64, bandwidth=3.0, max_iterations=5,
            force_cpu=True, verify=True
        )
        result = run_mean_shift(config)
        assert result.verification is not None
        assert result.verification.success

    def test_accepts_point_buffers(self):
        points = generate_diagonal_points(12)
        shifted = shift_block(points.as_array(), points.as_array(), 3.0)
        assert verify_mean_shift(points, points, 3.0, shifted).success

    def test_within_tolerance(self, one_step):
        points, shifted = one_step
        nudged = shifted.copy()
        nudged[10, 0] += 0.005
        assert verify_mean_shift(points, points, 2.5, nudged).success


class TestVerificationFailure:
    """Perturbed results fail and identify the offending point."""

    def test_perturbed_point_reported(self, one_step):
        points, shifted = one_step
        bad = shifted.copy()
        bad[17, 1] += 0.5

        result = verify_mean_shift(points, points, 2.5, bad)

        assert not result.success
        assert result.index == 17
        assert result.observed[1] == pytest.approx(float(bad[17, 1]))
        assert result.expected[1] == pytest.approx(float(shifted[17, 1]), abs=1e-4)

    def test_first_mismatch_wins(self, one_step):
        points, shifted = one_step
        bad = shifted.copy()
        bad[40] += 1.0
        bad[5] -= 1.0

        assert verify_mean_shift(points, points, 2.5, bad).index == 5

    def test_beyond_custom_tolerance(self, one_step):
        points, shifted = one_step
        nudged = shifted.copy()
        nudged[3, 0] += 0.005
        result = verify_mean_shift(points, points, 2.5, nudged, tolerance=0.001)
        assert result.index == 3

    def test_nan_is_a_mismatch(self, one_step):
        points, shifted = one_step
        bad = shifted.copy()
        bad[8, 0] = np.nan
        assert verify_mean_shift(points, points, 2.5, bad).index == 8

    def test_size_mismatch(self, one_step):
        points, shifted = one_step
        with pytest.raises(ValueError):
            verify_mean_shift(points, points, 2.5, shifted[:-1])


class TestVerificationMessage:
    """Failure message names the element and both values."""

    def test_message_format(self):
        result = VerificationResult(
            success=False, index=4, observed=(1.0, 2.0), expected=(1.5, 2.5)
        )
        lines = result.message.splitlines()
        assert lines[0] == "Error: Element 4 did not match expected output."
        assert lines[1].strip() == (
            "Saw (1.00000000,2.00000000), expected (1.50000000,2.50000000)"
        )
