"""
Benchmark aggregation: run a query repeatedly and summarise the latencies.

Runs are strictly sequential; overlapping executions would contend for the
same connection and distort the measurements.
"""
import logging
import math
import time
from typing import Awaitable, Callable, Dict, List, Optional

from ..core.enums import TimingPhaseName
from ..core.errors import BenchmarkAbortedError, InvalidRunCountError, MissingQueryError
from ..core.models import (
    BenchmarkResult, BenchmarkStats, PhaseStats, QueryTelemetry, RunMeasurement, TimingPhase
)

logger = logging.getLogger(__name__)

MIN_RUN_COUNT = 1
MAX_RUN_COUNT = 500
DEFAULT_TELEMETRY_SAMPLE_SIZE = 10
DEFAULT_EXECUTION_RATIO = 0.7


def percentile(sorted_values: List[float], p: float) -> float:
    """
    Nearest-rank percentile of an ascending list.

    >>> percentile([10, 20, 30, 40, 50], 90)
    50
    """
    if not sorted_values:
        return 0
    index = math.ceil((p / 100) * len(sorted_values)) - 1
    return sorted_values[max(0, min(index, len(sorted_values) - 1))]


def std_dev(values: List[float], mean: float) -> float:
    """Population standard deviation, 0 for fewer than two samples"""
    if len(values) < 2:
        return 0
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def validate_run_count(run_count) -> int:
    if isinstance(run_count, bool) or not isinstance(run_count, int) \
            or run_count < MIN_RUN_COUNT or run_count > MAX_RUN_COUNT:
        raise InvalidRunCountError(f"Run count must be between {MIN_RUN_COUNT} and {MAX_RUN_COUNT}")
    return run_count


def validate_sql(sql: Optional[str]) -> str:
    if not sql or not sql.strip():
        raise MissingQueryError("SQL query is required")
    return sql


def create_telemetry(
    measurement: RunMeasurement,
    execution_ratio: float = DEFAULT_EXECUTION_RATIO
) -> QueryTelemetry:
    """
    Telemetry record for one run.

    Uses the measured phases when present, otherwise splits the total
    duration into execution and parse by ``execution_ratio``.
    """
    if measurement.phases:
        phases = list(measurement.phases)
    else:
        execution_ms = measurement.duration_ms * execution_ratio
        parse_ms = measurement.duration_ms * (1 - execution_ratio)
        phases = [
            TimingPhase(name=TimingPhaseName.EXECUTION.value, duration_ms=execution_ms, start_offset=0.0),
            TimingPhase(name=TimingPhaseName.PARSE.value, duration_ms=parse_ms, start_offset=execution_ms),
        ]
    return QueryTelemetry(
        phases=phases,
        total_duration_ms=measurement.duration_ms,
        row_count=measurement.row_count,
        connection_reused=True
    )


def _summarise(values: List[float]) -> PhaseStats:
    ordered = sorted(values)
    avg = sum(values) / len(values) if values else 0
    return PhaseStats(
        avg=avg,
        p90=percentile(ordered, 90),
        p95=percentile(ordered, 95),
        p99=percentile(ordered, 99)
    )


def _phase_stats(
    measurements: List[RunMeasurement],
    stats: BenchmarkStats,
    execution_ratio: float
) -> Dict[str, PhaseStats]:
    if measurements and all(m.phases for m in measurements):
        by_phase: Dict[str, List[float]] = {}
        for measurement in measurements:
            for phase in measurement.phases:
                by_phase.setdefault(phase.name, []).append(phase.duration_ms)
        return {name: _summarise(values) for name, values in by_phase.items()}

    # No real phase timing available - scale the aggregate stats
    ratios = {
        TimingPhaseName.EXECUTION.value: execution_ratio,
        TimingPhaseName.PARSE.value: 1 - execution_ratio,
    }
    return {
        name: PhaseStats(
            avg=stats.avg * ratio,
            p90=stats.p90 * ratio,
            p95=stats.p95 * ratio,
            p99=stats.p99 * ratio
        )
        for name, ratio in ratios.items()
    }


def compute_benchmark_result(
    measurements: List[RunMeasurement],
    telemetry_sample_size: int = DEFAULT_TELEMETRY_SAMPLE_SIZE,
    execution_ratio: float = DEFAULT_EXECUTION_RATIO
) -> BenchmarkResult:
    """Aggregate per-run measurements into a BenchmarkResult"""
    durations = [m.duration_ms for m in measurements]
    ordered = sorted(durations)
    avg = sum(durations) / len(durations) if durations else 0

    stats = BenchmarkStats(
        min=ordered[0] if ordered else 0,
        max=ordered[-1] if ordered else 0,
        avg=avg,
        p90=percentile(ordered, 90),
        p95=percentile(ordered, 95),
        p99=percentile(ordered, 99),
        std_dev=std_dev(durations, avg)
    )

    return BenchmarkResult(
        run_count=len(measurements),
        stats=stats,
        phase_stats=_phase_stats(measurements, stats, execution_ratio),
        telemetry_runs=[
            create_telemetry(m, execution_ratio) for m in measurements[:telemetry_sample_size]
        ]
    )


async def run_benchmark(
    execute_once: Callable[[], Awaitable[RunMeasurement]],
    run_count: int,
    telemetry_sample_size: int = DEFAULT_TELEMETRY_SAMPLE_SIZE,
    execution_ratio: float = DEFAULT_EXECUTION_RATIO
) -> BenchmarkResult:
    """
    Await ``execute_once`` ``run_count`` times, one after another.

    Raises:
        InvalidRunCountError: If run_count is outside 1..500 (nothing is executed)
        BenchmarkAbortedError: If a run fails; carries the stats of completed runs
    """
    validate_run_count(run_count)
    logger.info(f"Starting benchmark with {run_count} run(s)")

    measurements: List[RunMeasurement] = []
    for i in range(run_count):
        try:
            measurement = await execute_once()
        except Exception as e:
            logger.error(f"Benchmark aborted on run {i + 1}/{run_count}: {e}")
            partial = None
            if measurements:
                partial = compute_benchmark_result(measurements, telemetry_sample_size, execution_ratio)
            raise BenchmarkAbortedError(
                f"Benchmark failed on run {i + 1} of {run_count}: {e}",
                partial_result=partial,
                completed_runs=len(measurements)
            ) from e
        measurements.append(measurement)

    result = compute_benchmark_result(measurements, telemetry_sample_size, execution_ratio)
    logger.info(
        f"Benchmark completed: {run_count} run(s), avg {result.stats.avg:.2f}ms, "
        f"p95 {result.stats.p95:.2f}ms"
    )
    return result


async def benchmark_query(
    datastore,
    sql: str,
    run_count: int,
    telemetry_sample_size: int = DEFAULT_TELEMETRY_SAMPLE_SIZE,
    execution_ratio: float = DEFAULT_EXECUTION_RATIO
) -> BenchmarkResult:
    """Benchmark ``sql`` against a connected datastore via query_multiple"""
    validate_sql(sql)
    validate_run_count(run_count)

    async def execute_once() -> RunMeasurement:
        start = time.perf_counter()
        result = await datastore.query_multiple(sql)
        duration_ms = (time.perf_counter() - start) * 1000
        row_count = result.results[0].row_count if result.results else 0
        return RunMeasurement(duration_ms=duration_ms, row_count=row_count)

    return await run_benchmark(execute_once, run_count, telemetry_sample_size, execution_ratio)
