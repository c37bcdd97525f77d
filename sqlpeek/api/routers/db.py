from fastapi import APIRouter, Body, Depends, HTTPException
from typing import Any, Callable, Dict

from ..dependencies import (
    api_errors, default_db_type, get_app_config, get_datastore_factory, get_query_tracker,
    open_datastore, parse_payload, parse_request_config, success
)
from ..models.api_models import (
    BenchmarkRequest, CancelRequest, ExecuteRequest, ExplainRequest, PreviewSqlRequest, QueryRequest
)
from ...benchmark.benchmark_runner import benchmark_query, validate_run_count, validate_sql
from ...config.config_loader import ConfigLoader
from ...config.global_config_loader import GlobalConfig
from ...dialect.type_mapper import resolve_database_type
from ...tracking.query_tracker import QueryTracker
from ...utils.sql_builder import build_batch_queries, build_preview_sql

router = APIRouter(prefix="/api/sql/db", tags=["db"])


@router.post("/connect")
async def check_connection(
    config: Dict[str, Any] = Body(...),
    factory: Callable = Depends(get_datastore_factory)
):
    """Open and close a connection to check the settings"""
    with api_errors("Connection"):
        async with open_datastore(factory, config):
            pass
        return success({"connected": True})


@router.post("/schemas")
async def list_schemas(
    config: Dict[str, Any] = Body(...),
    factory: Callable = Depends(get_datastore_factory)
):
    """List schemas with their tables, views and columns"""
    with api_errors("Fetch schemas"):
        async with open_datastore(factory, config) as datastore:
            schemas = await datastore.get_schemas()
        return success([s.to_dict() for s in schemas])


@router.post("/query")
async def run_query(
    request: QueryRequest,
    factory: Callable = Depends(get_datastore_factory),
    tracker: QueryTracker = Depends(get_query_tracker)
):
    """Run a (multi-statement) script; the first result is also returned at top level"""
    with api_errors("Query"):
        validate_sql(request.sql)

        async with open_datastore(factory, request.config, tracker) as datastore:
            result = await datastore.query_multiple(request.sql, execution_id=request.execution_id)

        results = [r.to_dict() for r in result.results]
        first = result.results[0] if result.results else None
        return success({
            "rows": first.rows if first else [],
            "fields": [{"name": column} for column in first.columns] if first else [],
            "rowCount": first.row_count if first else 0,
            "durationMs": result.total_duration_ms,
            "results": results,
            "totalDurationMs": result.total_duration_ms,
        })


@router.post("/execute")
async def execute_edits(request: ExecuteRequest, factory: Callable = Depends(get_datastore_factory)):
    """Execute an edit batch in a single transaction"""
    with api_errors("Execute"):
        if not request.operations:
            raise HTTPException(status_code=400, detail="No operations to execute")
        db_type, _ = parse_request_config(request.config)
        batch = parse_payload(
            ConfigLoader.edit_batch_from_dict,
            {"operations": request.operations, "context": request.context}
        )
        queries = build_batch_queries(batch.operations, batch.context, db_type)

        async with open_datastore(factory, request.config) as datastore:
            result = await datastore.execute_transaction(queries)

        return success(result.to_dict())


@router.post("/preview-sql")
async def preview_sql(request: PreviewSqlRequest):
    with api_errors("Preview"):
        if not request.operations:
            raise HTTPException(status_code=400, detail="No operations to preview")
        db_type = parse_payload(resolve_database_type, request.db_type or default_db_type())
        batch = parse_payload(
            ConfigLoader.edit_batch_from_dict,
            {"operations": request.operations, "context": request.context}
        )
        previews = [build_preview_sql(op, batch.context, db_type) for op in batch.operations]
        return success([p.to_dict() for p in previews])


@router.post("/explain")
async def explain_query(request: ExplainRequest, factory: Callable = Depends(get_datastore_factory)):
    """Return the execution plan of one statement"""
    with api_errors("Explain"):
        validate_sql(request.sql)

        async with open_datastore(factory, request.config) as datastore:
            result = await datastore.explain(request.sql, analyze=request.analyze)

        return success(result.to_dict())


@router.post("/benchmark")
async def run_benchmark_request(
    request: BenchmarkRequest,
    factory: Callable = Depends(get_datastore_factory),
    config: GlobalConfig = Depends(get_app_config)
):
    """Run a query repeatedly and return latency statistics"""
    with api_errors("Benchmark"):
        validate_sql(request.sql)
        validate_run_count(request.run_count)

        async with open_datastore(factory, request.config) as datastore:
            result = await benchmark_query(
                datastore,
                request.sql,
                request.run_count,
                telemetry_sample_size=config.benchmark.telemetry_sample_size,
                execution_ratio=config.benchmark.execution_ratio
            )

        return success(result.to_dict())


@router.post("/cancel")
async def cancel_query(request: CancelRequest, tracker: QueryTracker = Depends(get_query_tracker)):
    with api_errors("Cancel"):
        if not request.execution_id:
            raise HTTPException(status_code=400, detail="Execution ID is required")

        if not tracker.is_active(request.execution_id):
            return success({"cancelled": False, "message": "Query not found or already completed"})

        result = await tracker.cancel(request.execution_id)
        return success(result.to_dict())
