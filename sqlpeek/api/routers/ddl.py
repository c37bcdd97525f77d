from fastapi import APIRouter, Body, Depends, HTTPException
from typing import Any, Callable, Dict

from ..dependencies import (
    api_errors, default_db_type, get_datastore_factory, open_datastore, parse_payload,
    parse_request_config, success
)
from ..models.api_models import (
    AlterTableRequest, CreateTableRequest, DropTableRequest, GetTableDDLRequest, PreviewDDLRequest
)
from ...config.config_loader import ConfigLoader
from ...config.config_serializer import ConfigSerializer
from ...ddl.ddl_builder import (
    build_alter_preview_ddl, build_alter_table, build_create_table, build_drop_table, build_preview_ddl
)
from ...dialect.type_mapper import resolve_database_type

router = APIRouter(prefix="/api/sql/ddl", tags=["ddl"])


@router.post("/create-table")
async def create_table(request: CreateTableRequest, factory: Callable = Depends(get_datastore_factory)):
    """Validate a table definition, then create the table"""
    with api_errors("Create table"):
        db_type, _ = parse_request_config(request.config)
        definition = parse_payload(ConfigLoader.table_definition_from_dict, request.definition)
        query = build_create_table(definition, db_type)

        async with open_datastore(factory, request.config) as datastore:
            await datastore.query(query.sql)

        return success({"sql": query.sql})


@router.post("/alter-table")
async def alter_table(request: AlterTableRequest, factory: Callable = Depends(get_datastore_factory)):
    """Apply an alter batch, one statement per operation in order"""
    with api_errors("Alter table"):
        db_type, _ = parse_request_config(request.config)
        batch = parse_payload(ConfigLoader.alter_batch_from_dict, request.batch)
        if not batch.operations:
            raise HTTPException(status_code=400, detail="No operations to perform")
        queries = build_alter_table(batch, db_type)

        statements = []
        async with open_datastore(factory, request.config) as datastore:
            for query in queries:
                await datastore.query(query.sql)
                statements.append(query.sql)

        return success({"statements": statements})


@router.post("/drop-table")
async def drop_table(request: DropTableRequest, factory: Callable = Depends(get_datastore_factory)):
    with api_errors("Drop table"):
        if not request.table:
            raise HTTPException(status_code=400, detail="Table name is required")
        db_type, _ = parse_request_config(request.config)
        query = build_drop_table(
            request.schema_name, request.table, request.cascade, db_type, if_exists=request.if_exists
        )

        async with open_datastore(factory, request.config) as datastore:
            await datastore.query(query.sql)

        return success({"sql": query.sql})


@router.post("/preview-ddl")
async def preview_ddl(request: PreviewDDLRequest):
    """Return the exact DDL create-table/alter-table would execute"""
    with api_errors("Preview"):
        db_type = parse_payload(resolve_database_type, request.db_type or default_db_type())

        if request.type == "create":
            definition = parse_payload(ConfigLoader.table_definition_from_dict, request.definition or {})
            return success({"sql": build_preview_ddl(definition, db_type)})

        if request.type == "alter":
            batch = parse_payload(ConfigLoader.alter_batch_from_dict, request.batch or {})
            return success({"statements": build_alter_preview_ddl(batch, db_type)})

        raise HTTPException(status_code=400, detail="Invalid preview type")


@router.post("/get-table-ddl")
async def get_table_ddl(request: GetTableDDLRequest, factory: Callable = Depends(get_datastore_factory)):
    """Read a table's definition back from the database catalog"""
    with api_errors("Get table DDL"):
        if not request.table:
            raise HTTPException(status_code=400, detail="Table name is required")

        async with open_datastore(factory, request.config) as datastore:
            definition = await datastore.get_table_definition(request.schema_name, request.table)

        return success(ConfigSerializer.table_definition_to_dict(definition))


@router.post("/get-sequences")
async def get_sequences(
    config: Dict[str, Any] = Body(...),
    factory: Callable = Depends(get_datastore_factory)
):
    """List sequences; empty on dialects without them"""
    with api_errors("Fetch sequences"):
        async with open_datastore(factory, config) as datastore:
            sequences = await datastore.get_sequences()
        return success([s.to_dict() for s in sequences])


@router.post("/get-types")
async def get_types(
    config: Dict[str, Any] = Body(...),
    factory: Callable = Depends(get_datastore_factory)
):
    """List user-defined types; empty on dialects without them"""
    with api_errors("Fetch types"):
        async with open_datastore(factory, config) as datastore:
            types = await datastore.get_types()
        return success([t.to_dict() for t in types])
