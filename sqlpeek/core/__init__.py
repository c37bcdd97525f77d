"""
Core data models, enums and errors for sqlpeek.
"""

from .enums import (
    DatabaseType,
    AlterOperationType,
    EditOperationType,
    ConstraintType,
    ReferentialAction,
)
from .errors import (
    SqlPeekError,
    ValidationError,
    UnsupportedTypeError,
    UnsupportedOperationError,
    MissingPrimaryKeyError,
    InvalidRunCountError,
    MissingQueryError,
    BenchmarkAbortedError,
)
from .schema_models import (
    LogicalDataType,
    ColumnDefinition,
    PrimaryKeyConstraint,
    ForeignKeyDefinition,
    UniqueConstraint,
    CheckConstraint,
    TableDefinition,
    AlterOperation,
    AlterTableBatch,
    ValidationResult,
)
from .edit_models import EditOperation, EditContext, EditBatch, Query, PreviewSql
from .models import (
    ConnectionConfig,
    DataStore,
    DataStorage,
    QueryResult,
    MultiQueryResult,
    TransactionResult,
    TimingPhase,
    RunMeasurement,
    QueryTelemetry,
    BenchmarkStats,
    PhaseStats,
    BenchmarkResult,
)

__all__ = [
    'DatabaseType',
    'AlterOperationType',
    'EditOperationType',
    'ConstraintType',
    'ReferentialAction',
    'SqlPeekError',
    'ValidationError',
    'UnsupportedTypeError',
    'UnsupportedOperationError',
    'MissingPrimaryKeyError',
    'InvalidRunCountError',
    'MissingQueryError',
    'BenchmarkAbortedError',
    'LogicalDataType',
    'ColumnDefinition',
    'PrimaryKeyConstraint',
    'ForeignKeyDefinition',
    'UniqueConstraint',
    'CheckConstraint',
    'TableDefinition',
    'AlterOperation',
    'AlterTableBatch',
    'ValidationResult',
    'EditOperation',
    'EditContext',
    'EditBatch',
    'Query',
    'PreviewSql',
    'ConnectionConfig',
    'DataStore',
    'DataStorage',
    'QueryResult',
    'MultiQueryResult',
    'TransactionResult',
    'TimingPhase',
    'RunMeasurement',
    'QueryTelemetry',
    'BenchmarkStats',
    'PhaseStats',
    'BenchmarkResult',
]
