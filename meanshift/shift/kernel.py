"""
Mean-Shift Point Kernel

This module holds the pure per-point computation of the mean-shift
transform. Every backend evaluates exactly this formula.

Mathematical Background:
    For a candidate point p, the original (unshifted) set O of n points
    and a bandwidth h, the shifted position is the Gaussian-weighted
    mean of O around p:

        w(d, h) = 1 / (h·√(2π)) · exp(−½·(d/h)²)

        m(p) = Σⱼ Oⱼ · w(‖p − Oⱼ‖, h) / Σⱼ w(‖p − Oⱼ‖, h)

    The denominator is always positive: the weight of any finite distance
    is positive, so m(p) is a convex combination of the points of O.

Complexity:
    O(n) per point, O(n²) for a whole point set.
"""

from typing import Sequence, Tuple, Union
import math
import numpy as np

SQRT_2PI = math.sqrt(2.0 * math.pi)

ArrayLike = Union[float, np.ndarray]


def euclidean_distance(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Euclidean distance between two 2-D points."""
    return math.sqrt((p1[0] - p2[0]) ** 2 + (p1[1] - p2[1]) ** 2)


def gaussian_kernel(dist: ArrayLike, bandwidth: float) -> ArrayLike:
    """
    Gaussian weight of a distance (scalar or array).

    Args:
        dist: Distance(s) from the candidate point
        bandwidth: Kernel bandwidth h (> 0)

    Returns:
        Weight(s), same shape as dist
    """
    return (1.0 / (bandwidth * SQRT_2PI)) * np.exp(-0.5 * (dist / bandwidth) ** 2)


def shift_point(
    point: Sequence[float],
    original: np.ndarray,
    bandwidth: float
) -> Tuple[float, float]:
    """
    Shift a single point toward the weighted mean of the original set.

    Evaluated in double precision, one point at a time.

    Args:
        point: Candidate (x, y)
        original: Array of shape (n, 2), n >= 1
        bandwidth: Kernel bandwidth h

    Returns:
        Shifted (x, y)
    """
    original = np.asarray(original, dtype=np.float64)
    px, py = float(point[0]), float(point[1])

    dist = np.sqrt((original[:, 0] - px) ** 2 + (original[:, 1] - py) ** 2)
    weight = gaussian_kernel(dist, bandwidth)

    scale = weight.sum()
    shift_x = np.dot(original[:, 0], weight)
    shift_y = np.dot(original[:, 1], weight)
    return float(shift_x / scale), float(shift_y / scale)


def shift_block(points, original, bandwidth: float, xp=np):
    """
    Shift a block of points at once (one work group).

    Works with any array module exposing the NumPy API (NumPy, CuPy).
    Arithmetic stays in the dtype of the inputs (float32 buffers).

    Args:
        points: Array of shape (b, 2)
        original: Array of shape (n, 2)
        bandwidth: Kernel bandwidth h
        xp: Array module the inputs belong to

    Returns:
        Array of shape (b, 2) with the shifted points

    Complexity:
        Time: O(b × n)
        Space: O(b × n) for the distance block
    """
    dtype = original.dtype.type
    coef = dtype(1.0 / (bandwidth * SQRT_2PI))
    h = dtype(bandwidth)

    # (b, 1, 2) - (1, n, 2) -> (b, n, 2)
    diff = points[:, np.newaxis, :] - original[np.newaxis, :, :]
    dist = xp.sqrt(xp.sum(diff * diff, axis=2))

    u = dist / h
    weight = coef * xp.exp(dtype(-0.5) * u * u)

    shift = weight @ original
    scale = xp.sum(weight, axis=1)
    return shift / scale[:, np.newaxis]
