"""
Synthetic Point Generators for the Mean-Shift Transform

This module generates all input point sets programmatically.
There is NO external dataset.

Key Features:
- Reference diagonal layout: point i is (i, i)
- Gaussian blobs around configurable centers, for clustered inputs
- Reproducible results via random seed control
- Optional matplotlib plot of input vs shifted points

Example Usage:
    >>> from meanshift.synthetic_data import generate_blob_points
    >>> points = generate_blob_points(1000, centers=[(0, 0), (20, 5)], seed=42)
    >>> len(points)
    1000
"""

import sys
from typing import List, Tuple, Optional, Sequence
import numpy as np

from .data_models import PointBuffer, MeanShiftResult, POINT_DTYPE

DEFAULT_CENTERS: List[Tuple[float, float]] = [
    (0.0, 0.0),
    (25.0, 10.0),
    (10.0, 30.0),
]


def generate_diagonal_points(num_points: int) -> PointBuffer:
    """
    Generate the reference input: point i is (i, i).

    Args:
        num_points: Number of points N

    Returns:
        PointBuffer of shape (N, 2)

    Complexity: O(N) time and space
    """
    coords = np.arange(num_points, dtype=POINT_DTYPE)
    return PointBuffer(np.column_stack([coords, coords]))


def generate_blob_points(
    num_points: int,
    centers: Optional[Sequence[Tuple[float, float]]] = None,
    spread: float = 2.0,
    seed: Optional[int] = None
) -> PointBuffer:
    """
    Generate points scattered around a few cluster centers.

    Points are assigned to centers round-robin, so every center gets
    either floor(N / k) or ceil(N / k) points, then perturbed with
    isotropic Gaussian noise.

    Args:
        num_points: Number of points N
        centers: Cluster centers; DEFAULT_CENTERS when None
        spread: Standard deviation of the noise around each center
        seed: Random seed for reproducibility

    Returns:
        PointBuffer of shape (N, 2)
    """
    if centers is None:
        centers = DEFAULT_CENTERS
    centers_arr = np.asarray(centers, dtype=np.float64)
    if centers_arr.ndim != 2 or centers_arr.shape[1] != 2 or len(centers_arr) == 0:
        raise ValueError("centers must be a non-empty sequence of (x, y) pairs")
    if spread < 0:
        raise ValueError(f"spread must be >= 0, got {spread}")

    rng = np.random.default_rng(seed)
    labels = np.arange(num_points) % len(centers_arr)
    noise = rng.normal(0.0, spread, size=(num_points, 2))
    return PointBuffer((centers_arr[labels] + noise).astype(POINT_DTYPE))


def visualize_mean_shift(
    result: MeanShiftResult,
    save_path: Optional[str] = None
) -> None:
    """
    Plot the original points against their shifted positions.

    - Blue dots: original points
    - Red crosses: points after the last iteration

    Args:
        result: Completed mean-shift run
        save_path: If provided, save figure to this path

    Note:
        Requires matplotlib. Import error is caught gracefully.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        print("matplotlib not available for visualization", file=sys.stderr)
        return

    original = result.original_points.as_array()
    shifted = result.final_points.as_array()

    fig, ax = plt.subplots(figsize=(10, 8))

    ax.scatter(
        original[:, 0],
        original[:, 1],
        c='blue',
        s=8,
        label='Original',
        alpha=0.4
    )
    ax.scatter(
        shifted[:, 0],
        shifted[:, 1],
        c='red',
        s=30,
        label=f'After {result.iterations} iterations',
        marker='x'
    )

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_title(f'Mean shift: {result.num_points} points on {result.backend}')
    ax.legend(loc='best')
    ax.set_aspect('equal', adjustable='datalim')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved visualization to {save_path}", file=sys.stderr)

    plt.show()
