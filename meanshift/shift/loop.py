"""
Fixed-Iteration Mean-Shift Loop

Drives the iteration driver for exactly max_iterations dispatches. After
every dispatch the shifted points become the next current set; the
original set is uploaded once and stays constant for the whole run.

State machine:
    RUNNING(k), k = 1..MAX  --dispatch-->  k < MAX: RUNNING(k + 1)
                                           k = MAX: DONE

There is no convergence test: the loop runs all MAX dispatches no matter
how small the shifts become, which keeps the cost of a run fixed.
"""

from typing import Callable, Optional

from ..data_models import (
    PointBuffer,
    MeanShiftConfig,
    MeanShiftResult
)
from ..hpc.gpu_kernels import BackendSelection
from ..hpc.timing import Timer
from ..synthetic_data import generate_diagonal_points
from .driver import IterationDriver
from .verify import verify_mean_shift

IterationCallback = Callable[[int, PointBuffer], None]


def run_iterations(
    driver: IterationDriver,
    initial_points: PointBuffer,
    max_iterations: int,
    on_iteration: Optional[IterationCallback] = None
) -> MeanShiftResult:
    """
    Run the fixed-count loop on an already configured driver.

    Args:
        driver: Driver bound to a backend, bandwidth and partition
        initial_points: Starting point set (also becomes the original set)
        max_iterations: Exact number of dispatches (>= 0)
        on_iteration: Optional callback receiving (k, shifted) after
            every dispatch, k starting at 1

    Returns:
        MeanShiftResult; with max_iterations == 0 the final points are a
        copy of the initial points
    """
    if max_iterations < 0:
        raise ValueError(f"max_iterations must be >= 0, got {max_iterations}")

    points = initial_points.copy()
    original_points = points.copy()

    original_dev = driver.upload(original_points)
    current_dev = driver.upload(points)

    shifted = points.copy()
    times_ms = []
    iteration = 0

    while iteration < max_iterations:
        with Timer(verbose=False) as t:
            shifted = driver.dispatch(current_dev, original_dev)
        times_ms.append(t.elapsed_ms)
        iteration += 1

        if on_iteration is not None:
            on_iteration(iteration, shifted.copy())

        if iteration < max_iterations:
            points = shifted.copy()
            # Rebinding frees the previous device copy
            current_dev = driver.upload(points)

    del current_dev, original_dev

    return MeanShiftResult(
        final_points=shifted,
        previous_points=points,
        original_points=original_points,
        iterations=iteration,
        partition=driver.partition,
        backend=driver.backend,
        iteration_times_ms=times_ms
    )


def run_mean_shift(
    config: MeanShiftConfig,
    on_iteration: Optional[IterationCallback] = None,
    selection: Optional[BackendSelection] = None
) -> MeanShiftResult:
    """
    Run a complete mean-shift transform described by a configuration.

    Validates the configuration, builds the initial points (the diagonal
    generator when none are given), runs exactly config.max_iterations
    dispatches and, if config.verify is set, checks the last dispatch
    against the brute-force reference.

    Args:
        config: Run configuration
        on_iteration: Optional per-iteration callback
        selection: Pre-computed backend selection

    Returns:
        MeanShiftResult, with `verification` set when requested

    Raises:
        ValueError: If the configuration is invalid
    """
    config.validate()

    if config.initial_points is not None:
        initial = config.initial_points
    else:
        initial = generate_diagonal_points(config.point_count)

    driver = IterationDriver(
        num_points=config.point_count,
        bandwidth=config.bandwidth,
        work_group_size=config.work_group_size,
        backend=config.backend,
        force_cpu=config.force_cpu,
        selection=selection
    )

    result = run_iterations(driver, initial, config.max_iterations, on_iteration)

    if config.verify and result.iterations > 0:
        result.verification = verify_mean_shift(
            result.previous_points,
            result.original_points,
            config.bandwidth,
            result.final_points,
            tolerance=config.tolerance
        )

    return result
