"""
High-Performance Computing Module

This module provides the data-parallel backends and performance
measurement used by the mean-shift transform.

Components:
- gpu_kernels: backend probing, device transfers, mean-shift kernels
- timing: Benchmarking and profiling utilities
"""

from .gpu_kernels import (
    BackendSelection,
    gpu_mean_shift,
    select_backend,
    is_gpu_available,
    available_backends,
    get_gpu_info
)
from .timing import (
    Timer,
    compute_speedup,
    Benchmark,
    BenchmarkResult
)

__all__ = [
    'BackendSelection',
    'gpu_mean_shift',
    'select_backend',
    'is_gpu_available',
    'available_backends',
    'get_gpu_info',
    'Timer',
    'compute_speedup',
    'Benchmark',
    'BenchmarkResult'
]
