from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class SqlPeekRequest(BaseModel):
    """Request bodies accept both the client's camelCase keys and snake_case"""
    model_config = ConfigDict(populate_by_name=True)


class CreateTableRequest(SqlPeekRequest):
    config: Dict[str, Any]
    definition: Dict[str, Any]


class AlterTableRequest(SqlPeekRequest):
    config: Dict[str, Any]
    batch: Dict[str, Any]


class DropTableRequest(SqlPeekRequest):
    config: Dict[str, Any]
    schema_name: Optional[str] = Field(default=None, alias="schema")
    table: Optional[str] = None
    cascade: bool = False
    if_exists: bool = Field(default=False, alias="ifExists")


class PreviewDDLRequest(SqlPeekRequest):
    type: str
    definition: Optional[Dict[str, Any]] = None
    batch: Optional[Dict[str, Any]] = None
    db_type: Optional[str] = Field(default=None, alias="dbType")


class GetTableDDLRequest(SqlPeekRequest):
    config: Dict[str, Any]
    schema_name: Optional[str] = Field(default=None, alias="schema")
    table: Optional[str] = None


class QueryRequest(SqlPeekRequest):
    config: Dict[str, Any]
    sql: Optional[str] = None
    execution_id: Optional[str] = Field(default=None, alias="executionId")


class ExecuteRequest(SqlPeekRequest):
    config: Dict[str, Any]
    operations: List[Dict[str, Any]] = []
    context: Dict[str, Any] = {}


class PreviewSqlRequest(SqlPeekRequest):
    operations: List[Dict[str, Any]] = []
    context: Dict[str, Any] = {}
    db_type: Optional[str] = Field(default=None, alias="dbType")


class BenchmarkRequest(SqlPeekRequest):
    config: Dict[str, Any]
    sql: Optional[str] = None
    run_count: Optional[int] = Field(default=None, alias="runCount")


class CancelRequest(SqlPeekRequest):
    execution_id: Optional[str] = Field(default=None, alias="executionId")


class ExplainRequest(SqlPeekRequest):
    config: Dict[str, Any]
    sql: Optional[str] = None
    analyze: bool = False
