"""
GPU-Accelerated Mean-Shift Kernels

This module provides the data-parallel implementations of the mean-shift
point kernel, one per execution backend, together with the host/device
buffer transfers each backend needs:

1. Backend detection and capability probing
2. Host -> device upload and device -> host download
3. One synchronous mean-shift dispatch over a work partition

The module automatically detects GPU availability and falls back
to a vectorized NumPy implementation when no GPU is present.

Supported Backends (in order of preference):
- Apple Silicon (MLX): For M1/M2/M3/M4 Macs
- Apple Silicon (PyTorch MPS): Alternative for Apple GPUs
- CuPy (CUDA): For NVIDIA GPUs
- Numba CUDA: Custom kernel, one thread per point
- NumPy (fallback): Vectorized CPU operations, one block per work group
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any, List
import math
import numpy as np

from ..data_models import WorkPartition, POINT_DTYPE
from ..shift.kernel import shift_block

# ============================================================
# GPU Backend Detection
# ============================================================

BACKEND_MLX = "mlx"
BACKEND_MPS = "mps"
BACKEND_CUPY = "cupy"
BACKEND_NUMBA = "numba"
BACKEND_NUMPY = "numpy"

BACKEND_PREFERENCE = (BACKEND_MLX, BACKEND_MPS, BACKEND_CUPY, BACKEND_NUMBA)

# Preferred work-group size when the device does not report one
DEFAULT_WORK_GROUP_SIZE = 256

_MLX_AVAILABLE = False
_MPS_AVAILABLE = False
_CUPY_AVAILABLE = False
_NUMBA_CUDA_AVAILABLE = False

try:
    import mlx.core as mx
    _MLX_AVAILABLE = True
except ImportError:
    mx = None

try:
    import torch
    _MPS_AVAILABLE = bool(torch.backends.mps.is_available())
except ImportError:
    torch = None

try:
    import cupy as cp
    _CUPY_AVAILABLE = cp.cuda.runtime.getDeviceCount() > 0
except ImportError:
    cp = None
except cp.cuda.runtime.CUDARuntimeError:
    # CuPy installed without a usable CUDA driver
    _CUPY_AVAILABLE = False

try:
    from numba import cuda
    _NUMBA_CUDA_AVAILABLE = bool(cuda.is_available())
except ImportError:
    cuda = None

_AVAILABILITY = {
    BACKEND_MLX: _MLX_AVAILABLE,
    BACKEND_MPS: _MPS_AVAILABLE,
    BACKEND_CUPY: _CUPY_AVAILABLE,
    BACKEND_NUMBA: _NUMBA_CUDA_AVAILABLE,
    BACKEND_NUMPY: True,
}

_GPU_BACKEND = next((b for b in BACKEND_PREFERENCE if _AVAILABILITY[b]), None)


def is_gpu_available() -> bool:
    """
    Check if GPU acceleration is available.

    Returns:
        True if any GPU backend is available (MLX, MPS, CuPy, or Numba CUDA)
    """
    return _GPU_BACKEND is not None


def get_gpu_backend() -> Optional[str]:
    """Name of the preferred GPU backend, or None."""
    return _GPU_BACKEND


def is_backend_available(name: str) -> bool:
    """Check a single backend by name."""
    return _AVAILABILITY.get(name, False)


def available_backends() -> List[str]:
    """All usable backends, preferred first, NumPy last."""
    return [b for b in BACKEND_PREFERENCE if _AVAILABILITY[b]] + [BACKEND_NUMPY]


def get_gpu_info() -> Dict[str, Any]:
    """
    Get information about available GPU resources.

    Returns:
        Dictionary with GPU configuration details
    """
    info = {
        'gpu_available': is_gpu_available(),
        'backend': _GPU_BACKEND,
        'mlx_available': _MLX_AVAILABLE,
        'mps_available': _MPS_AVAILABLE,
        'cupy_available': _CUPY_AVAILABLE,
        'numba_cuda_available': _NUMBA_CUDA_AVAILABLE,
        'device_name': None,
        'total_memory_gb': None,
        'free_memory_gb': None
    }

    if _GPU_BACKEND is not None:
        info['device_name'] = get_device_name(_GPU_BACKEND)

    if _CUPY_AVAILABLE:
        try:
            free, total = cp.cuda.Device().mem_info
            info['total_memory_gb'] = total / 1e9
            info['free_memory_gb'] = free / 1e9
        except cp.cuda.runtime.CUDARuntimeError:
            pass

    return info


def get_device_name(backend: str) -> str:
    """Human-readable device name for a backend."""
    if backend == BACKEND_MLX:
        return "Apple Silicon (MLX)"
    if backend == BACKEND_MPS:
        return "Apple Silicon (MPS/Metal)"
    if backend == BACKEND_CUPY:
        device = cp.cuda.Device()
        name = cp.cuda.runtime.getDeviceProperties(device.id)['name']
        if isinstance(name, bytes):
            name = name.decode()
        return name
    if backend == BACKEND_NUMBA:
        name = cuda.get_current_device().name
        if isinstance(name, bytes):
            name = name.decode()
        return name
    return "CPU (NumPy)"


def preferred_work_group_size(backend: str) -> int:
    """
    Work-group size reported by the device for a backend.

    CUDA devices report their maximum threads per block; other
    backends have no such notion and use DEFAULT_WORK_GROUP_SIZE.
    """
    if backend == BACKEND_CUPY:
        return int(cp.cuda.Device().attributes['MaxThreadsPerBlock'])
    if backend == BACKEND_NUMBA:
        return int(cuda.get_current_device().MAX_THREADS_PER_BLOCK)
    return DEFAULT_WORK_GROUP_SIZE


@dataclass
class BackendSelection:
    """
    Outcome of backend probing.

    Attributes:
        name: Selected backend
        device_name: Human-readable device description
        requested: Backend asked for ("auto" or a name)
        fallback: True when the CPU fallback replaced a GPU request
        warning: Diagnostic notice for the fallback case
    """
    name: str
    device_name: str
    requested: str = "auto"
    fallback: bool = False
    warning: Optional[str] = None

    @property
    def is_gpu(self) -> bool:
        return self.name != BACKEND_NUMPY


def select_backend(requested: str = "auto", force_cpu: bool = False) -> BackendSelection:
    """
    Two-tier backend selection: preferred GPU backend, else NumPy.

    Args:
        requested: "auto" for the best available GPU, or a backend name
        force_cpu: Skip GPU probing entirely

    Returns:
        BackendSelection; when a GPU was wanted but none is usable the
        NumPy backend is returned with fallback=True and a warning

    Raises:
        ValueError: If requested is not a known backend name
    """
    if requested != "auto" and requested not in _AVAILABILITY:
        raise ValueError(
            f"Unknown backend: {requested} "
            f"(expected 'auto' or one of {sorted(_AVAILABILITY)})"
        )

    if force_cpu or requested == BACKEND_NUMPY:
        return BackendSelection(BACKEND_NUMPY, get_device_name(BACKEND_NUMPY), requested)

    if requested == "auto":
        name = _GPU_BACKEND
    else:
        name = requested if _AVAILABILITY[requested] else None

    if name is None:
        return BackendSelection(
            BACKEND_NUMPY,
            get_device_name(BACKEND_NUMPY),
            requested,
            fallback=True,
            warning="Warning: Running on CPU"
        )

    return BackendSelection(name, get_device_name(name), requested)


# ============================================================
# Host <-> Device Transfers
# ============================================================

def to_device(points: np.ndarray, backend: str):
    """
    Copy a host (N, 2) float32 array into backend memory.

    Returns:
        Backend-native array handle
    """
    points = np.ascontiguousarray(points, dtype=POINT_DTYPE)
    if backend == BACKEND_MLX:
        return mx.array(points)
    if backend == BACKEND_MPS:
        return torch.from_numpy(points.copy()).to(torch.device("mps"))
    if backend == BACKEND_CUPY:
        return cp.asarray(points)
    if backend == BACKEND_NUMBA:
        return cuda.to_device(points)
    return points.copy()


def to_host(handle, backend: str) -> np.ndarray:
    """Copy a backend array back into a host float32 array."""
    if backend == BACKEND_MLX:
        mx.eval(handle)
        return np.array(handle, dtype=POINT_DTYPE)
    if backend == BACKEND_MPS:
        return handle.cpu().numpy().astype(POINT_DTYPE, copy=False)
    if backend == BACKEND_CUPY:
        return cp.asnumpy(handle).astype(POINT_DTYPE, copy=False)
    if backend == BACKEND_NUMBA:
        return handle.copy_to_host()
    return np.array(handle, dtype=POINT_DTYPE)


# ============================================================
# NumPy / CuPy Implementation (shared array API)
# ============================================================

def _mean_shift_numpy(
    points: np.ndarray,
    original: np.ndarray,
    bandwidth: float,
    partition: WorkPartition
) -> np.ndarray:
    """NumPy (CPU) dispatch: one vectorized block per work group."""
    shifted = np.empty_like(points)
    for rows in partition.group_slices():
        shifted[rows] = shift_block(points[rows], original, bandwidth, xp=np)
    return shifted


def _mean_shift_cupy(points, original, bandwidth: float, partition: WorkPartition):
    """CuPy dispatch: one broadcast block per work group, on device."""
    shifted = cp.empty_like(points)
    for rows in partition.group_slices():
        shifted[rows] = shift_block(points[rows], original, bandwidth, xp=cp)
    cp.cuda.Stream.null.synchronize()
    return shifted


# ============================================================
# Numba CUDA Implementation
# ============================================================

_NUMBA_KERNEL = None


def _get_numba_kernel():
    """Compile the per-point CUDA kernel once."""
    global _NUMBA_KERNEL
    if _NUMBA_KERNEL is not None:
        return _NUMBA_KERNEL

    @cuda.jit
    def mean_shift_point_kernel(points, original, n, bandwidth, shifted):
        """CUDA kernel: one thread shifts one point."""
        i = cuda.grid(1)
        if i >= n:
            return

        px = points[i, 0]
        py = points[i, 1]
        coef = 1.0 / (bandwidth * math.sqrt(2.0 * math.pi))

        shift_x = 0.0
        shift_y = 0.0
        scale = 0.0
        for j in range(n):
            dx = px - original[j, 0]
            dy = py - original[j, 1]
            u = math.sqrt(dx * dx + dy * dy) / bandwidth
            weight = coef * math.exp(-0.5 * u * u)
            shift_x += original[j, 0] * weight
            shift_y += original[j, 1] * weight
            scale += weight

        shifted[i, 0] = shift_x / scale
        shifted[i, 1] = shift_y / scale

    _NUMBA_KERNEL = mean_shift_point_kernel
    return _NUMBA_KERNEL


def _mean_shift_numba(points, original, bandwidth: float, partition: WorkPartition):
    """Numba CUDA dispatch over [num_work_groups, work_group_size]."""
    kernel = _get_numba_kernel()
    shifted = cuda.device_array_like(points)
    kernel[partition.num_work_groups, partition.work_group_size](
        points, original, partition.global_size, np.float32(bandwidth), shifted
    )
    cuda.synchronize()
    return shifted


# ============================================================
# PyTorch MPS Implementation (Apple Silicon - Alternative)
# ============================================================

def _mean_shift_mps(points, original, bandwidth: float, partition: WorkPartition):
    """PyTorch MPS dispatch: one block per work group."""
    coef = 1.0 / (bandwidth * math.sqrt(2.0 * math.pi))
    shifted = torch.empty_like(points)
    for rows in partition.group_slices():
        block = points[rows]
        diff = block.unsqueeze(1) - original.unsqueeze(0)
        dist = torch.sqrt(torch.sum(diff ** 2, dim=2))
        weight = coef * torch.exp(-0.5 * (dist / bandwidth) ** 2)
        scale = torch.sum(weight, dim=1, keepdim=True)
        shifted[rows] = (weight @ original) / scale
    torch.mps.synchronize()
    return shifted


# ============================================================
# MLX Implementation (Apple Silicon - BEST)
# ============================================================

def _mean_shift_mlx(points, original, bandwidth: float, partition: WorkPartition):
    """MLX dispatch: blocks are built lazily, evaluated once at the end."""
    coef = 1.0 / (bandwidth * math.sqrt(2.0 * math.pi))
    blocks = []
    for rows in partition.group_slices():
        block = points[rows.start:rows.stop]
        diff = mx.expand_dims(block, axis=1) - mx.expand_dims(original, axis=0)
        dist = mx.sqrt(mx.sum(diff ** 2, axis=2))
        weight = coef * mx.exp(-0.5 * (dist / bandwidth) ** 2)
        scale = mx.sum(weight, axis=1, keepdims=True)
        blocks.append(mx.matmul(weight, original) / scale)
    shifted = mx.concatenate(blocks, axis=0) if blocks else mx.zeros((0, 2))
    mx.eval(shifted)
    return shifted


_DISPATCH = {
    BACKEND_MLX: _mean_shift_mlx,
    BACKEND_MPS: _mean_shift_mps,
    BACKEND_CUPY: _mean_shift_cupy,
    BACKEND_NUMBA: _mean_shift_numba,
    BACKEND_NUMPY: _mean_shift_numpy,
}


# ============================================================
# Public API
# ============================================================

def gpu_mean_shift(
    points,
    original,
    bandwidth: float,
    partition: WorkPartition,
    backend: str = BACKEND_NUMPY
):
    """
    Run one synchronous mean-shift dispatch on device-resident buffers.

    Every point of `points` is replaced by the Gaussian-weighted mean of
    the whole `original` set around it. The call returns only after the
    backend has finished writing the output.

    Args:
        points: Device array (N, 2), current point set
        original: Device array (N, 2), unshifted point set (read only)
        bandwidth: Kernel bandwidth h
        partition: Work partitioning of the N work items
        backend: Backend that owns the device arrays

    Returns:
        Device array (N, 2) with the shifted points

    Complexity:
        Time: O(N²) per dispatch, O(N² / p) with p parallel units
        Space: O(work_group_size × N) scratch per group for block backends
    """
    return _DISPATCH[backend](points, original, bandwidth, partition)


if __name__ == "__main__":
    print("GPU Kernel Module Test")
    print("=" * 50)

    info = get_gpu_info()
    print(f"GPU Available: {info['gpu_available']}")
    print(f"Backend: {info['backend']}")
    print(f"  MLX (Apple Silicon): {info['mlx_available']}")
    print(f"  MPS (Apple Metal): {info['mps_available']}")
    print(f"  CuPy (NVIDIA CUDA): {info['cupy_available']}")
    print(f"  Numba CUDA: {info['numba_cuda_available']}")

    if info['device_name']:
        print(f"Device: {info['device_name']}")
