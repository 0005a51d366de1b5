"""
Parallel Mean-Shift Transform

This package computes the mean-shift mode-seeking transform of a fixed set
of 2-D points with a data-parallel Gaussian kernel, evaluated for a fixed
number of iterations on a GPU backend when one is available and on NumPy
otherwise.

Main modules:
- data_models: Point buffers, configuration and result containers
- synthetic_data: Generate input point sets
- shift: Kernel, iteration driver, fixed-count loop and verifier
- hpc: GPU backends and timing utilities
"""

from .data_models import (
    PointBuffer,
    WorkPartition,
    MeanShiftConfig,
    MeanShiftResult,
    VerificationResult
)
from .shift.driver import IterationDriver, compute_partition
from .shift.loop import run_mean_shift, run_iterations
from .shift.verify import verify_mean_shift

__version__ = "1.0.0"

__all__ = [
    'PointBuffer',
    'WorkPartition',
    'MeanShiftConfig',
    'MeanShiftResult',
    'VerificationResult',
    'IterationDriver',
    'compute_partition',
    'run_mean_shift',
    'run_iterations',
    'verify_mean_shift'
]
