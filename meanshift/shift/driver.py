"""
Iteration Driver

Executes one mean-shift iteration: every point of the current set is
shifted against the whole original set on the selected backend, and the
result is brought back into host memory before the call returns.

Responsibilities:
    1. Work partitioning: N work items split into uniform groups sized
       to the device's preferred work-group size
    2. Synchronous dispatch of the kernel over all groups
    3. Transfer of the output buffer to host memory

The driver also performs the host -> device uploads used by the loop.
It never writes to the original set.
"""

import math
from typing import Optional

from ..data_models import PointBuffer, WorkPartition
from ..hpc.gpu_kernels import (
    BackendSelection,
    select_backend,
    preferred_work_group_size,
    gpu_mean_shift,
    to_device,
    to_host
)


def compute_partition(
    num_points: int,
    work_group_size: Optional[int] = None,
    backend: str = "numpy"
) -> WorkPartition:
    """
    Partition N work items into uniform work groups.

    Args:
        num_points: Total number of work items N
        work_group_size: Explicit group size; the backend's preferred
            size is used when None
        backend: Backend whose preferred size applies

    Returns:
        WorkPartition with ceil(N / size) groups; the size is clamped to
        [1, N] so small inputs run in a single group
    """
    if work_group_size is None:
        work_group_size = preferred_work_group_size(backend)
    work_group_size = max(1, min(int(work_group_size), max(num_points, 1)))
    return WorkPartition(global_size=num_points, work_group_size=work_group_size)


class IterationDriver:
    """
    Runs the mean-shift kernel over a whole point set, one dispatch at a time.

    Attributes:
        selection: Backend chosen by capability probing
        bandwidth: Kernel bandwidth h
        partition: Work partitioning, fixed for the lifetime of the driver

    Example:
        >>> driver = IterationDriver(num_points=4, bandwidth=3.0, force_cpu=True)
        >>> original = driver.upload(points)
        >>> current = driver.upload(points)
        >>> shifted = driver.dispatch(current, original)
    """

    def __init__(
        self,
        num_points: int,
        bandwidth: float,
        work_group_size: Optional[int] = None,
        backend: str = "auto",
        force_cpu: bool = False,
        selection: Optional[BackendSelection] = None
    ):
        """
        Initialize the driver.

        Args:
            num_points: Number of points N in every buffer
            bandwidth: Kernel bandwidth h (> 0)
            work_group_size: Optional override of the preferred group size
            backend: "auto" or an explicit backend name
            force_cpu: Use the NumPy backend regardless of GPUs
            selection: Pre-computed backend selection (skips probing)
        """
        if not (math.isfinite(bandwidth) and bandwidth > 0):
            raise ValueError(f"bandwidth must be positive and finite, got {bandwidth}")

        self.selection = selection or select_backend(backend, force_cpu=force_cpu)
        self.bandwidth = float(bandwidth)
        self.partition = compute_partition(
            num_points, work_group_size, self.selection.name
        )

    @property
    def backend(self) -> str:
        return self.selection.name

    @property
    def num_points(self) -> int:
        return self.partition.global_size

    def upload(self, buffer: PointBuffer):
        """
        Copy a host buffer into backend memory.

        Raises:
            ValueError: If the buffer length differs from N
        """
        if len(buffer) != self.num_points:
            raise ValueError(
                f"Buffer has {len(buffer)} points, driver expects {self.num_points}"
            )
        return to_device(buffer.as_array(), self.backend)

    def dispatch(self, current, original) -> PointBuffer:
        """
        Shift every point of `current` against `original`.

        Blocks until the backend has produced the full output and it has
        been copied into host memory.

        Args:
            current: Device buffer with the current point set
            original: Device buffer with the original point set

        Returns:
            Host PointBuffer with the shifted points
        """
        shifted = gpu_mean_shift(
            current, original, self.bandwidth, self.partition, self.backend
        )
        return PointBuffer(to_host(shifted, self.backend))
