"""
Data Models for the Parallel Mean-Shift Transform

This module defines the core data structures used throughout the system.
Uses Python dataclasses for clean, type-hinted data containers.

Data Flow:
    MeanShiftConfig → PointBuffer (current) ─┐
                    → PointBuffer (original) ─┴→ WorkPartition → MeanShiftResult
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Iterator, Sequence, Tuple
import json
import math
import numpy as np


# Reference configuration
DEFAULT_POINT_COUNT = 128 * 160
DEFAULT_BANDWIDTH = 3.0
DEFAULT_MAX_ITERATIONS = 100
DEFAULT_TOLERANCE = 0.01

POINT_DTYPE = np.float32


@dataclass(eq=False)
class PointBuffer:
    """
    Ordered, fixed-length sequence of 2-D single-precision points.

    This is the unit of data moved between host memory and the
    execution backend. The wrapped array is always C-contiguous
    float32 with shape (N, 2).

    Attributes:
        points: Array of shape (N, 2), one (x, y) row per point

    Complexity: O(N) space
    """
    points: np.ndarray

    def __post_init__(self):
        arr = np.ascontiguousarray(self.points, dtype=POINT_DTYPE)
        if arr.ndim != 2 or arr.shape[1] != 2:
            raise ValueError(
                f"PointBuffer expects shape (N, 2), got {arr.shape}"
            )
        self.points = arr

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]]) -> "PointBuffer":
        """Build a buffer from any sequence of (x, y) pairs."""
        arr = np.asarray(points, dtype=POINT_DTYPE)
        if arr.size == 0:
            arr = arr.reshape(0, 2)
        return cls(arr)

    def __len__(self) -> int:
        return self.points.shape[0]

    def __getitem__(self, index: int) -> Tuple[float, float]:
        x, y = self.points[index]
        return float(x), float(y)

    def copy(self) -> "PointBuffer":
        """Return an independent copy (no shared memory)."""
        return PointBuffer(self.points.copy())

    def as_array(self) -> np.ndarray:
        """Return the underlying (N, 2) float32 array."""
        return self.points

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"points": self.points.tolist()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PointBuffer":
        """Create from dictionary (JSON deserialization)."""
        return cls.from_points(data["points"])


@dataclass
class WorkPartition:
    """
    Parallel work partitioning for one dispatch.

    The global range of N work items is split into uniform groups of
    work_group_size items. When N is not a multiple of the group size
    the last group is shorter; it is still dispatched, and work items
    past N are masked out by the kernels.

    Attributes:
        global_size: Total number of work items (always N)
        work_group_size: Items per group
        num_work_groups: ceil(global_size / work_group_size)
    """
    global_size: int
    work_group_size: int
    num_work_groups: int = field(init=False)

    def __post_init__(self):
        if self.global_size < 0:
            raise ValueError(f"global_size must be >= 0, got {self.global_size}")
        if self.work_group_size <= 0:
            raise ValueError(
                f"work_group_size must be positive, got {self.work_group_size}"
            )
        self.num_work_groups = -(-self.global_size // self.work_group_size)

    @property
    def padded_size(self) -> int:
        """Number of launched work items, including masked tail items."""
        return self.num_work_groups * self.work_group_size

    @property
    def remainder(self) -> int:
        """Size of the final partial group (0 if N divides evenly)."""
        return self.global_size % self.work_group_size

    def group_slices(self) -> Iterator[slice]:
        """Yield the [start, stop) row range of every work group."""
        for g in range(self.num_work_groups):
            start = g * self.work_group_size
            stop = min(start + self.work_group_size, self.global_size)
            yield slice(start, stop)


@dataclass
class MeanShiftConfig:
    """
    Configuration surface for a mean-shift run.

    Attributes:
        point_count: Number of points N
        bandwidth: Gaussian kernel bandwidth h (> 0)
        max_iterations: Exact number of dispatches to perform (>= 0)
        initial_points: Optional starting points; the diagonal
            generator (i, i) is used when omitted
        work_group_size: Optional override of the backend's preferred
            group size
        backend: "auto" or an explicit backend name
            ("mlx", "mps", "cupy", "numba", "numpy")
        force_cpu: Skip GPU probing and use the NumPy backend
        verify: Run the brute-force verification pass after the loop
        tolerance: Absolute per-coordinate tolerance for verification
    """
    point_count: int = DEFAULT_POINT_COUNT
    bandwidth: float = DEFAULT_BANDWIDTH
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    initial_points: Optional[PointBuffer] = None
    work_group_size: Optional[int] = None
    backend: str = "auto"
    force_cpu: bool = False
    verify: bool = False
    tolerance: float = DEFAULT_TOLERANCE

    def __post_init__(self):
        if self.initial_points is not None and not isinstance(self.initial_points, PointBuffer):
            self.initial_points = PointBuffer.from_points(self.initial_points)

    def validate(self) -> None:
        """
        Check the configuration for values that cannot run.

        Raises:
            ValueError: On any invalid field
        """
        if self.point_count <= 0:
            raise ValueError(f"point_count must be positive, got {self.point_count}")
        if not (math.isfinite(self.bandwidth) and self.bandwidth > 0):
            raise ValueError(f"bandwidth must be positive and finite, got {self.bandwidth}")
        if self.max_iterations < 0:
            raise ValueError(
                f"max_iterations must be >= 0, got {self.max_iterations}"
            )
        if self.work_group_size is not None and self.work_group_size <= 0:
            raise ValueError(
                f"work_group_size must be positive, got {self.work_group_size}"
            )
        if not (math.isfinite(self.tolerance) and self.tolerance >= 0):
            raise ValueError(f"tolerance must be finite and >= 0, got {self.tolerance}")
        if self.initial_points is not None and len(self.initial_points) != self.point_count:
            raise ValueError(
                f"initial_points has {len(self.initial_points)} points, "
                f"expected point_count={self.point_count}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "point_count": self.point_count,
            "bandwidth": self.bandwidth,
            "max_iterations": self.max_iterations,
            "initial_points": (
                self.initial_points.to_dict()["points"]
                if self.initial_points is not None else None
            ),
            "work_group_size": self.work_group_size,
            "backend": self.backend,
            "force_cpu": self.force_cpu,
            "verify": self.verify,
            "tolerance": self.tolerance
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeanShiftConfig":
        """Create from dictionary (JSON deserialization)."""
        initial = data.get("initial_points")
        initial_points = PointBuffer.from_points(initial) if initial is not None else None
        work_group_size = data.get("work_group_size")
        point_count = data.get("point_count")
        if point_count is None:
            point_count = len(initial_points) if initial_points is not None else DEFAULT_POINT_COUNT
        return cls(
            point_count=int(point_count),
            bandwidth=float(data.get("bandwidth", DEFAULT_BANDWIDTH)),
            max_iterations=int(data.get("max_iterations", DEFAULT_MAX_ITERATIONS)),
            initial_points=initial_points,
            work_group_size=int(work_group_size) if work_group_size is not None else None,
            backend=str(data.get("backend", "auto")),
            force_cpu=bool(data.get("force_cpu", False)),
            verify=bool(data.get("verify", False)),
            tolerance=float(data.get("tolerance", DEFAULT_TOLERANCE))
        )

    def save_to_json(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_from_json(cls, filepath: str) -> "MeanShiftConfig":
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)


@dataclass
class VerificationResult:
    """
    Outcome of the brute-force verification pass.

    Attributes:
        success: True when every point matched within tolerance
        index: Index of the first mismatching point (-1 on success)
        observed: Value produced by the parallel backend at index
        expected: Value recomputed by the sequential reference at index
        tolerance: Absolute per-coordinate tolerance used
    """
    success: bool
    index: int = -1
    observed: Optional[Tuple[float, float]] = None
    expected: Optional[Tuple[float, float]] = None
    tolerance: float = DEFAULT_TOLERANCE

    def __bool__(self) -> bool:
        return self.success

    @property
    def message(self) -> str:
        """Human-readable description of the outcome."""
        if self.success:
            return "All values matched expected output."
        ox, oy = self.observed
        ex, ey = self.expected
        return (
            f"Error: Element {self.index} did not match expected output.\n"
            f"       Saw ({ox:1.8f},{oy:1.8f}), expected ({ex:1.8f},{ey:1.8f})"
        )


@dataclass
class MeanShiftResult:
    """
    Final state of a mean-shift run.

    Attributes:
        final_points: Output of the last dispatch (the initial set if
            no dispatch ran)
        previous_points: Current set consumed by the last dispatch
        original_points: The unshifted input set
        iterations: Number of dispatches performed
        partition: Work partitioning used for every dispatch
        backend: Name of the backend that executed the kernel
        iteration_times_ms: Wall time of each dispatch
        verification: Result of the optional verification pass
    """
    final_points: PointBuffer
    previous_points: PointBuffer
    original_points: PointBuffer
    iterations: int
    partition: WorkPartition
    backend: str
    iteration_times_ms: List[float] = field(default_factory=list)
    verification: Optional[VerificationResult] = None

    @property
    def num_points(self) -> int:
        return len(self.final_points)

    @property
    def total_time_ms(self) -> float:
        return float(sum(self.iteration_times_ms))

    def summary(self) -> str:
        """One-line run summary."""
        return (f"{self.iterations} Iterations on {self.partition.num_work_groups} "
                f"work groups: Mean shifted {self.num_points} points")
