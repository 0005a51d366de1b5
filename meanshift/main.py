"""
Main Entry Point for the Parallel Mean-Shift Transform

This script provides a command-line interface for running the mean-shift
transform over a 2-D point set. It orchestrates:

1. Configuration (defaults, JSON config file, command-line overrides)
2. Backend selection with CPU fallback
3. The fixed-count mean-shift loop
4. Optional brute-force verification
5. Result output

Streams:
    stdout  one line per final point, "%15.8f, %15.8f"
    stderr  backend selection, run summary, verification failures

Exit status:
    0  success
    1  verification detected a mismatch
    2  invalid arguments or configuration

Usage:
    # Reference run: 20480 diagonal points, h = 3, 100 iterations
    python -m meanshift.main > shifted.txt

    # Small run on the CPU with verification
    python -m meanshift.main --points 1024 --iterations 10 --no-gpu --verify

    # Compare backends
    python -m meanshift.main --benchmark --sizes 1024,4096 --iterations 5
"""

import argparse
import sys
from typing import Dict, List, Optional, TextIO

from .data_models import MeanShiftConfig, PointBuffer
from .synthetic_data import (
    generate_diagonal_points,
    generate_blob_points,
    visualize_mean_shift
)
from .shift.loop import run_mean_shift
from .hpc.gpu_kernels import (
    BackendSelection,
    select_backend,
    available_backends,
    get_gpu_info,
    BACKEND_NUMPY
)
from .hpc.timing import Benchmark

EXIT_OK = 0
EXIT_VERIFICATION_FAILED = 1


def diag(message: str = "") -> None:
    """Write a line to the diagnostic stream."""
    print(message, file=sys.stderr)


def print_header():
    """Print application header."""
    diag("=" * 70)
    diag("  PARALLEL MEAN-SHIFT TRANSFORM")
    diag("  Gaussian-kernel mode seeking on a data-parallel backend")
    diag("=" * 70)
    diag()


def print_system_info():
    """Print system and GPU information."""
    diag("System Configuration:")
    diag("-" * 40)

    gpu_info = get_gpu_info()
    diag(f"  GPU Available: {gpu_info['gpu_available']}")
    diag(f"  MLX: {gpu_info['mlx_available']}")
    diag(f"  PyTorch MPS: {gpu_info['mps_available']}")
    diag(f"  CuPy Backend: {gpu_info['cupy_available']}")
    diag(f"  Numba CUDA: {gpu_info['numba_cuda_available']}")
    if gpu_info['device_name']:
        diag(f"  Device: {gpu_info['device_name']}")
    if gpu_info['total_memory_gb'] is not None:
        diag(f"  Memory: {gpu_info['total_memory_gb']:.1f} GB total, "
             f"{gpu_info['free_memory_gb']:.1f} GB free")
    diag()


def report_backend(selection: BackendSelection) -> None:
    """Announce the backend, or the fallback warning."""
    if selection.warning:
        diag(selection.warning)
    elif selection.is_gpu:
        diag(f"Running on GPU {selection.device_name}")
    else:
        diag(f"Running on {selection.device_name}")


def format_point(x: float, y: float) -> str:
    """Format one result line: two 15-wide, 8-decimal fields."""
    return f"{x:15.8f}, {y:15.8f}"


def write_points(points: PointBuffer, stream: Optional[TextIO] = None) -> None:
    """Write every point of a buffer to the result stream."""
    stream = stream or sys.stdout
    lines = [format_point(float(x), float(y)) for x, y in points.as_array()]
    if lines:
        stream.write("\n".join(lines) + "\n")
    stream.flush()


def build_config(args) -> MeanShiftConfig:
    """
    Merge defaults, an optional JSON config file and command-line flags.

    Flags left unset on the command line do not override the file.

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    if args.config:
        config = MeanShiftConfig.load_from_json(args.config)
    else:
        config = MeanShiftConfig()

    if args.points is not None:
        config.point_count = args.points
    if args.bandwidth is not None:
        config.bandwidth = args.bandwidth
    if args.iterations is not None:
        config.max_iterations = args.iterations
    if args.work_group_size is not None:
        config.work_group_size = args.work_group_size
    if args.backend is not None:
        config.backend = args.backend
    if args.no_gpu:
        config.force_cpu = True
    if args.verify:
        config.verify = True
    if args.tolerance is not None:
        config.tolerance = args.tolerance

    if args.generator == 'blobs':
        config.initial_points = generate_blob_points(config.point_count, seed=args.seed)
    elif args.generator == 'diagonal':
        config.initial_points = generate_diagonal_points(config.point_count)

    config.validate()
    return config


def run_transform(config: MeanShiftConfig, args) -> int:
    """
    Run the transform, write results and return the exit status.

    Args:
        config: Validated run configuration
        args: Command line arguments (output options)

    Returns:
        EXIT_OK, or EXIT_VERIFICATION_FAILED on a verification mismatch
    """
    selection = select_backend(config.backend, force_cpu=config.force_cpu)
    if not args.quiet:
        report_backend(selection)

    def progress(k: int, shifted: PointBuffer) -> None:
        diag(f"  Iteration {k:4d}/{config.max_iterations} complete")

    verbose = args.verbose and not args.quiet
    result = run_mean_shift(
        config,
        on_iteration=progress if verbose else None,
        selection=selection
    )

    if not args.quiet:
        diag(result.summary())
    if verbose:
        diag(f"  Work group size: {result.partition.work_group_size}")
        diag(f"  Total dispatch time: {result.total_time_ms:.2f} ms")

    status = EXIT_OK
    if result.verification is not None and not result.verification.success:
        diag(result.verification.message)
        diag("Values were not computed properly!")
        status = EXIT_VERIFICATION_FAILED

    write_points(result.final_points)

    if args.visualize:
        visualize_mean_shift(result, save_path=args.save_plot)

    return status


def build_benchmark_configs(args) -> Dict[int, List[MeanShiftConfig]]:
    """
    Parse --sizes and build one validated config per size and backend.

    Raises:
        ValueError: On a malformed size list or an invalid configuration
    """
    sizes = []
    for token in args.sizes.split(','):
        try:
            sizes.append(int(token.strip()))
        except ValueError:
            raise ValueError(f"--sizes expects comma-separated integers, got {args.sizes!r}") from None
    if args.trials < 1:
        raise ValueError(f"--trials must be at least 1, got {args.trials}")

    iterations = args.iterations if args.iterations is not None else 5
    bandwidth = args.bandwidth if args.bandwidth is not None else 3.0

    plan = {}
    for size in sizes:
        configs = []
        for backend in available_backends():
            config = MeanShiftConfig(
                point_count=size,
                bandwidth=bandwidth,
                max_iterations=iterations,
                backend=backend,
                work_group_size=args.work_group_size
            )
            config.validate()
            configs.append(config)
        plan[size] = configs
    return plan


def run_benchmark(plan: Dict[int, List[MeanShiftConfig]], args) -> int:
    """Time complete runs on every available backend, per problem size."""
    first = next(iter(plan.values()))[0]
    verbose = args.verbose and not args.quiet

    diag("Running Performance Benchmarks...")
    diag("-" * 40)
    diag(f"  Problem sizes: {list(plan)}")
    diag(f"  Iterations per run: {first.max_iterations}")
    diag(f"  Trials per size: {args.trials}")
    diag(f"  Backends: {', '.join(available_backends())}")
    diag()

    for size, configs in plan.items():
        bench = Benchmark(f"Mean shift, {size} points, {first.max_iterations} iterations")
        for config in configs:
            bench.add_backend(
                config.backend,
                lambda config=config: run_mean_shift(config)
            )
        bench.run(n_trials=args.trials, verbose=verbose)
        bench.print_comparison(baseline=BACKEND_NUMPY)

    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    parser = argparse.ArgumentParser(
        description='Parallel Mean-Shift Transform of 2-D points',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reference configuration (20480 points, h = 3, 100 iterations)
  python -m meanshift.main > shifted.txt

  # Clustered input, verified on the CPU
  python -m meanshift.main --generator blobs --points 2048 --no-gpu --verify

  # Load settings from a JSON file
  python -m meanshift.main --config run.json

  # Run benchmarks
  python -m meanshift.main --benchmark --sizes 1024,4096
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to a JSON configuration file'
    )
    parser.add_argument(
        '--benchmark', '-b',
        action='store_true',
        help='Run performance benchmarks instead of a single transform'
    )

    run_group = parser.add_argument_group('Transform')
    run_group.add_argument('--points', '-n', type=int, default=None,
                           help='Number of points (default: 20480)')
    run_group.add_argument('--bandwidth', type=float, default=None,
                           help='Gaussian kernel bandwidth (default: 3.0)')
    run_group.add_argument('--iterations', type=int, default=None,
                           help='Number of iterations (default: 100)')
    run_group.add_argument('--generator', type=str, default=None,
                           choices=['diagonal', 'blobs'],
                           help='Initial point generator (default: diagonal)')
    run_group.add_argument('--seed', type=int, default=42,
                           help='Random seed for the blobs generator (default: 42)')

    proc_group = parser.add_argument_group('Processing')
    proc_group.add_argument('--backend', type=str, default=None,
                            choices=['auto', 'mlx', 'mps', 'cupy', 'numba', 'numpy'],
                            help='Execution backend (default: auto)')
    proc_group.add_argument('--no-gpu', action='store_true',
                            help='Disable GPU acceleration')
    proc_group.add_argument('--work-group-size', type=int, default=None,
                            help='Work items per group (default: device preferred)')

    verify_group = parser.add_argument_group('Verification')
    verify_group.add_argument('--verify', action='store_true',
                              help='Check the last iteration against a brute-force reference')
    verify_group.add_argument('--tolerance', type=float, default=None,
                              help='Absolute tolerance per coordinate (default: 0.01)')

    bench_group = parser.add_argument_group('Benchmarking')
    bench_group.add_argument('--sizes', type=str, default='1024,4096',
                             help='Comma-separated problem sizes (default: 1024,4096)')
    bench_group.add_argument('--trials', type=int, default=3,
                             help='Number of timing trials (default: 3)')

    out_group = parser.add_argument_group('Output')
    out_group.add_argument('--visualize', '-v', action='store_true',
                           help='Show a plot of original vs shifted points')
    out_group.add_argument('--save-plot', type=str, default=None,
                           help='Save the plot to this path')
    out_group.add_argument('--verbose', action='store_true',
                           help='Print system info and per-iteration progress')
    out_group.add_argument('--quiet', '-q', action='store_true',
                           help='Suppress diagnostics except errors')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose and not args.quiet:
        print_header()
        print_system_info()

    if args.benchmark:
        try:
            plan = build_benchmark_configs(args)
        except ValueError as e:
            parser.error(str(e))
        return run_benchmark(plan, args)

    try:
        config = build_config(args)
    except (ValueError, TypeError, OSError) as e:
        parser.error(str(e))

    return run_transform(config, args)


if __name__ == "__main__":
    sys.exit(main())
