from .benchmark_runner import (
    benchmark_query,
    run_benchmark,
    compute_benchmark_result,
    validate_run_count,
    validate_sql,
)

__all__ = [
    'benchmark_query',
    'run_benchmark',
    'compute_benchmark_result',
    'validate_run_count',
    'validate_sql',
]
