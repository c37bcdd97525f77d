"""
Test cases for benchmark aggregation.
"""
import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from sqlpeek.benchmark.benchmark_runner import (
    benchmark_query, compute_benchmark_result, create_telemetry, percentile, run_benchmark,
    std_dev, validate_run_count, validate_sql
)
from sqlpeek.core.errors import BenchmarkAbortedError, InvalidRunCountError, MissingQueryError
from sqlpeek.core.models import MultiQueryResult, QueryResult, RunMeasurement, TimingPhase


def measurements(*durations):
    return [RunMeasurement(duration_ms=d, row_count=1) for d in durations]


class TestPercentile:
    """Nearest-rank percentile"""

    def test_nearest_rank(self):
        assert percentile([10, 20, 30, 40, 50], 90) == 50
        assert percentile([10, 20, 30, 40, 50], 50) == 30
        assert percentile([10, 20, 30, 40], 50) == 20
        assert percentile([10, 20, 30, 40], 75) == 30

    def test_empty_and_single(self):
        assert percentile([], 95) == 0
        assert percentile([7], 1) == 7
        assert percentile([7], 99) == 7

    def test_index_clamped(self):
        assert percentile([1, 2, 3], 0) == 1
        assert percentile([1, 2, 3], 100) == 3


class TestStdDev:

    def test_population_std_dev(self):
        values = [2, 4, 4, 4, 5, 5, 7, 9]
        assert std_dev(values, 5) == 2.0

    def test_fewer_than_two_samples(self):
        assert std_dev([], 0) == 0
        assert std_dev([12.5], 12.5) == 0


class TestValidation:

    @pytest.mark.parametrize('run_count', [0, 501, -1, True, '10', 2.5, None])
    def test_invalid_run_count(self, run_count):
        with pytest.raises(InvalidRunCountError, match="Run count must be between 1 and 500"):
            validate_run_count(run_count)

    def test_valid_run_count(self):
        assert validate_run_count(1) == 1
        assert validate_run_count(500) == 500

    @pytest.mark.parametrize('sql', [None, '', '   \n'])
    def test_missing_sql(self, sql):
        with pytest.raises(MissingQueryError, match="SQL query is required"):
            validate_sql(sql)


class TestComputeBenchmarkResult:

    def test_stats(self):
        result = compute_benchmark_result(measurements(10, 20, 30, 40, 50))

        assert result.run_count == 5
        assert result.stats.min == 10
        assert result.stats.max == 50
        assert result.stats.avg == 30
        assert result.stats.p90 == 50
        assert result.stats.p95 == 50
        assert result.stats.std_dev == pytest.approx(14.142, rel=1e-3)

    def test_synthetic_phase_split(self):
        result = compute_benchmark_result(measurements(10, 20, 30, 40, 50))

        assert set(result.phase_stats) == {'execution', 'parse'}
        assert result.phase_stats['execution'].avg == pytest.approx(21.0)
        assert result.phase_stats['parse'].avg == pytest.approx(9.0)
        assert result.phase_stats['execution'].p90 == pytest.approx(35.0)

    def test_real_phases_used_when_measured(self):
        runs = [
            RunMeasurement(duration_ms=10, phases=[TimingPhase('connect', 2), TimingPhase('execute', 8)]),
            RunMeasurement(duration_ms=20, phases=[TimingPhase('connect', 4), TimingPhase('execute', 16)]),
        ]
        result = compute_benchmark_result(runs)

        assert set(result.phase_stats) == {'connect', 'execute'}
        assert result.phase_stats['execute'].avg == 12
        assert [p.name for p in result.telemetry_runs[0].phases] == ['connect', 'execute']

    def test_telemetry_sample_limited(self):
        result = compute_benchmark_result(measurements(*range(1, 26)))

        assert len(result.telemetry_runs) == 10
        assert result.telemetry_runs[0].total_duration_ms == 1

    def test_to_dict_shape(self):
        data = compute_benchmark_result(measurements(5)).to_dict()

        assert data['runCount'] == 1
        assert data['stats']['stdDev'] == 0
        phases = data['telemetryRuns'][0]['phases']
        assert [p['name'] for p in phases] == ['execution', 'parse']
        assert set(phases[0]) == {'name', 'durationMs', 'startOffset'}


class TestCreateTelemetry:

    def test_split_offsets(self):
        telemetry = create_telemetry(RunMeasurement(duration_ms=100, row_count=4))

        execution, parse = telemetry.phases
        assert execution.duration_ms == pytest.approx(70)
        assert execution.start_offset == 0
        assert parse.duration_ms == pytest.approx(30)
        assert parse.start_offset == pytest.approx(70)
        assert telemetry.row_count == 4
        assert telemetry.connection_reused is True


class TestRunBenchmark:

    @pytest.mark.asyncio
    async def test_runs_sequentially(self):
        in_flight = 0
        max_in_flight = 0

        async def execute_once():
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return RunMeasurement(duration_ms=5, row_count=2)

        result = await run_benchmark(execute_once, 20)

        assert result.run_count == 20
        assert max_in_flight == 1

    @pytest.mark.asyncio
    async def test_invalid_run_count_executes_nothing(self):
        execute_once = AsyncMock()

        with pytest.raises(InvalidRunCountError):
            await run_benchmark(execute_once, 0)
        execute_once.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_keeps_partial_results(self):
        failure = ConnectionError("connection lost")
        execute_once = AsyncMock(side_effect=[*measurements(10, 30), failure, *measurements(99)])

        with pytest.raises(BenchmarkAbortedError) as exc_info:
            await run_benchmark(execute_once, 4)

        error = exc_info.value
        assert execute_once.await_count == 3
        assert error.completed_runs == 2
        assert error.partial_result.run_count == 2
        assert error.partial_result.stats.avg == 20
        assert error.__cause__ is failure
        assert "connection lost" in str(error)
        assert error.to_dict()['partialResult']['runCount'] == 2

    @pytest.mark.asyncio
    async def test_failure_on_first_run(self):
        execute_once = AsyncMock(side_effect=RuntimeError("syntax error"))

        with pytest.raises(BenchmarkAbortedError) as exc_info:
            await run_benchmark(execute_once, 3)

        assert exc_info.value.partial_result is None
        assert exc_info.value.completed_runs == 0


class TestBenchmarkQuery:

    @pytest.mark.asyncio
    async def test_uses_datastore(self):
        datastore = Mock()
        datastore.query_multiple = AsyncMock(
            return_value=MultiQueryResult(results=[QueryResult(rows=[{'n': 1}] * 3, columns=['n'], row_count=3)])
        )

        result = await benchmark_query(datastore, 'SELECT n FROM t', 3)

        assert datastore.query_multiple.await_count == 3
        datastore.query_multiple.assert_awaited_with('SELECT n FROM t')
        assert result.run_count == 3
        assert all(t.row_count == 3 for t in result.telemetry_runs)

    @pytest.mark.asyncio
    async def test_blank_sql_rejected_before_running(self):
        datastore = Mock()
        datastore.query_multiple = AsyncMock()

        with pytest.raises(MissingQueryError):
            await benchmark_query(datastore, ' ', 3)
        datastore.query_multiple.assert_not_called()
