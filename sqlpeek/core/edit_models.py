from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from .enums import EditOperationType


@dataclass
class EditOperation:
    """
    A single row-level edit from the data grid.

    ``values`` holds the new column values (insert/update), ``where`` the
    primary-key values identifying the target row (update/delete).
    ``table``/``schema`` default to the batch's EditContext.
    """
    type: EditOperationType
    id: str
    values: Dict[str, Any] = field(default_factory=dict)
    where: Dict[str, Any] = field(default_factory=dict)
    table: Optional[str] = None
    schema: Optional[str] = None

    def __post_init__(self):
        self.type = EditOperationType(self.type)


@dataclass
class EditContext:
    table: str
    schema: Optional[str] = None
    primary_key_columns: List[str] = field(default_factory=list)
    # column name -> logical type name
    column_types: Dict[str, str] = field(default_factory=dict)


@dataclass
class EditBatch:
    operations: List[EditOperation]
    context: EditContext


@dataclass
class Query:
    sql: str
    params: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PreviewSql:
    operation_id: str
    sql: str

    def to_dict(self) -> Dict[str, Any]:
        return {'operationId': self.operation_id, 'sql': self.sql}
