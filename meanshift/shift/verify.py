"""
Brute-Force Verification of the Parallel Mean Shift

Recomputes the expected output of one mean-shift iteration one point at a
time, in index order, and compares it against the result produced by a
parallel backend. This is a correctness oracle for the kernels, not part
of the production path.

Complexity:
    Time: O(n²), sequential over points
    Space: O(n)
"""

from typing import Union
import numpy as np

from ..data_models import PointBuffer, VerificationResult, DEFAULT_TOLERANCE
from .kernel import shift_point

PointsLike = Union[PointBuffer, np.ndarray]


def _as_array(points: PointsLike) -> np.ndarray:
    if isinstance(points, PointBuffer):
        return points.as_array()
    return np.asarray(points)


def verify_mean_shift(
    points: PointsLike,
    original_points: PointsLike,
    bandwidth: float,
    shifted_points: PointsLike,
    tolerance: float = DEFAULT_TOLERANCE
) -> VerificationResult:
    """
    Check a parallel mean-shift result against a sequential reference.

    Args:
        points: Point set consumed by the dispatch being checked
        original_points: Unshifted point set
        bandwidth: Kernel bandwidth h
        shifted_points: Output claimed by the parallel backend
        tolerance: Absolute per-coordinate tolerance

    Returns:
        VerificationResult; on failure it carries the first mismatching
        index with the observed and expected coordinates

    Raises:
        ValueError: If the three point sets differ in length
    """
    points = _as_array(points)
    original = _as_array(original_points).astype(np.float64)
    shifted = _as_array(shifted_points)

    if not (len(points) == len(original) == len(shifted)):
        raise ValueError(
            f"Point set sizes differ: points={len(points)}, "
            f"original={len(original)}, shifted={len(shifted)}"
        )

    for i in range(len(points)):
        expected = shift_point(points[i], original, bandwidth)
        observed = (float(shifted[i, 0]), float(shifted[i, 1]))

        # NaN never compares <= tolerance, so it is reported as a mismatch
        if not (abs(observed[0] - expected[0]) <= tolerance and
                abs(observed[1] - expected[1]) <= tolerance):
            return VerificationResult(
                success=False,
                index=i,
                observed=observed,
                expected=expected,
                tolerance=tolerance
            )

    return VerificationResult(success=True, tolerance=tolerance)
