from dataclasses import dataclass, field
from typing import Any, List, Optional, Union
from enum import Enum

from .enums import AlterOperationType, ConstraintType


class LogicalDataType(str, Enum):
    """Dialect-agnostic column types resolved to native types at synthesis time"""
    # Numeric types
    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    REAL = "real"
    DOUBLE = "double"

    # Boolean types
    BOOLEAN = "boolean"

    # String types
    CHAR = "char"
    VARCHAR = "varchar"
    TEXT = "text"

    # Date/Time types
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    TIMESTAMPTZ = "timestamptz"
    INTERVAL = "interval"

    # Special types
    UUID = "uuid"
    JSON = "json"
    JSONB = "jsonb"
    BINARY = "binary"


INTEGER_TYPES = (LogicalDataType.SMALLINT, LogicalDataType.INTEGER, LogicalDataType.BIGINT)


@dataclass
class ColumnDefinition:
    """Column definition as entered in the table designer"""
    name: str
    data_type: str
    nullable: bool = True
    is_primary_key: bool = False
    is_unique: bool = False
    auto_increment: bool = False
    default_value: Any = None
    # Raw SQL default (CURRENT_TIMESTAMP, gen_random_uuid(), ...)
    default_expression: Optional[str] = None
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None


@dataclass
class PrimaryKeyConstraint:
    columns: List[str]
    name: Optional[str] = None

    @property
    def constraint_type(self) -> ConstraintType:
        return ConstraintType.PRIMARY_KEY


@dataclass
class ForeignKeyDefinition:
    columns: List[str]
    referenced_table: str
    referenced_columns: List[str]
    referenced_schema: Optional[str] = None
    name: Optional[str] = None
    on_delete: Optional[str] = None
    on_update: Optional[str] = None

    @property
    def constraint_type(self) -> ConstraintType:
        return ConstraintType.FOREIGN_KEY


@dataclass
class UniqueConstraint:
    columns: List[str]
    name: Optional[str] = None

    @property
    def constraint_type(self) -> ConstraintType:
        return ConstraintType.UNIQUE


@dataclass
class CheckConstraint:
    expression: str
    name: Optional[str] = None

    @property
    def constraint_type(self) -> ConstraintType:
        return ConstraintType.CHECK


Constraint = Union[PrimaryKeyConstraint, ForeignKeyDefinition, UniqueConstraint, CheckConstraint]


@dataclass
class TableDefinition:
    name: str
    columns: List[ColumnDefinition]
    schema: Optional[str] = None
    primary_key: Optional[List[str]] = None
    foreign_keys: List[ForeignKeyDefinition] = field(default_factory=list)
    unique_constraints: List[UniqueConstraint] = field(default_factory=list)
    check_constraints: List[CheckConstraint] = field(default_factory=list)

    def __post_init__(self):
        # Plain column lists are accepted for unique constraints
        self.unique_constraints = [
            uc if isinstance(uc, UniqueConstraint) else UniqueConstraint(columns=list(uc))
            for uc in self.unique_constraints
        ]

    def get_primary_key_columns(self) -> List[str]:
        """Primary key columns from either declaration style"""
        if self.primary_key:
            return list(self.primary_key)
        return [col.name for col in self.columns if col.is_primary_key]


@dataclass
class AlterOperation:
    """
    One ALTER TABLE step, tagged by ``type``.

    Payload fields by type:
      add_column      -> column
      drop_column     -> column_name
      rename_column   -> column_name, new_name
      modify_column   -> column (complete new definition, matched by name)
      add_constraint  -> constraint
      drop_constraint -> constraint_name, constraint_type (optional)
    """
    type: AlterOperationType
    column: Optional[ColumnDefinition] = None
    column_name: Optional[str] = None
    new_name: Optional[str] = None
    constraint: Optional[Constraint] = None
    constraint_name: Optional[str] = None
    constraint_type: Optional[ConstraintType] = None

    def __post_init__(self):
        self.type = AlterOperationType(self.type)
        if self.constraint_type is not None:
            self.constraint_type = ConstraintType(self.constraint_type)


@dataclass
class AlterTableBatch:
    table: str
    operations: List[AlterOperation]
    schema: Optional[str] = None


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self):
        return {'valid': self.valid, 'errors': list(self.errors)}
