"""
Mean-Shift Module

This module provides the mean-shift transform itself:
- kernel: the per-point Gaussian-weighted mean (pure functions)
- verify: sequential brute-force oracle for checking parallel results
- driver: one synchronous dispatch over a work partition
- loop: fixed-count iteration with buffer re-binding

Only the backend-independent pieces are re-exported here; import the
driver and loop from their modules (or from the top-level package),
since they depend on the hpc backends, which in turn use the kernel.
"""

from .kernel import (
    euclidean_distance,
    gaussian_kernel,
    shift_point,
    shift_block
)
from .verify import verify_mean_shift

__all__ = [
    'euclidean_distance',
    'gaussian_kernel',
    'shift_point',
    'shift_block',
    'verify_mean_shift'
]
