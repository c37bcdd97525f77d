from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import DatabaseType


@dataclass
class ConnectionConfig:
    """Connection settings for one target database"""
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    schema: Optional[str] = None
    # SQLite database file (or ":memory:")
    path: Optional[str] = None
    # MSSQL ODBC driver name
    driver: Optional[str] = None
    trust_server_certificate: bool = False
    # Connection pool settings
    max_connections: int = 10
    min_connections: int = 1


@dataclass
class DataStore:
    """Named datastore declaration as found in datastores.yaml"""
    name: str
    type: DatabaseType
    connection: ConnectionConfig
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.type = DatabaseType(self.type)
        # Convert dict to ConnectionConfig if needed
        if isinstance(self.connection, dict):
            self.connection = ConnectionConfig(**self.connection)

    def create_datastore(self):
        """Create the datastore implementation for this declaration"""
        from ..datastore import create_datastore
        return create_datastore(self.name, self.type, self.connection)


@dataclass
class DataStorage:
    datastores: Dict[str, DataStore] = field(default_factory=dict)

    def get_datastore(self, name: str) -> Optional[DataStore]:
        return self.datastores.get(name)


@dataclass
class QueryResult:
    """Rows (or affected-row count) returned by one executed statement"""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    row_count: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rows': self.rows,
            'columns': self.columns,
            'rowCount': self.row_count,
            'durationMs': self.duration_ms,
        }


@dataclass
class MultiQueryResult:
    results: List[QueryResult] = field(default_factory=list)
    total_duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'results': [r.to_dict() for r in self.results],
            'totalDurationMs': self.total_duration_ms,
        }


@dataclass
class TransactionResult:
    rows_affected: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'rowsAffected': self.rows_affected, 'results': self.results}


# Benchmark models

@dataclass
class TimingPhase:
    name: str
    duration_ms: float
    start_offset: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'durationMs': self.duration_ms, 'startOffset': self.start_offset}


@dataclass
class RunMeasurement:
    """Outcome of a single benchmark execution"""
    duration_ms: float
    row_count: int = 0
    # Real per-phase timing, when the adapter can measure it
    phases: Optional[List[TimingPhase]] = None


@dataclass
class QueryTelemetry:
    phases: List[TimingPhase]
    total_duration_ms: float
    row_count: int = 0
    connection_reused: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phases': [p.to_dict() for p in self.phases],
            'totalDurationMs': self.total_duration_ms,
            'rowCount': self.row_count,
            'connectionReused': self.connection_reused,
        }


@dataclass
class BenchmarkStats:
    min: float
    max: float
    avg: float
    p90: float
    p95: float
    p99: float
    std_dev: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min': self.min,
            'max': self.max,
            'avg': self.avg,
            'p90': self.p90,
            'p95': self.p95,
            'p99': self.p99,
            'stdDev': self.std_dev,
        }


@dataclass
class PhaseStats:
    avg: float
    p90: float
    p95: float
    p99: float

    def to_dict(self) -> Dict[str, Any]:
        return {'avg': self.avg, 'p90': self.p90, 'p95': self.p95, 'p99': self.p99}


@dataclass
class BenchmarkResult:
    run_count: int
    stats: BenchmarkStats
    phase_stats: Dict[str, PhaseStats] = field(default_factory=dict)
    telemetry_runs: List[QueryTelemetry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'runCount': self.run_count,
            'stats': self.stats.to_dict(),
            'phaseStats': {name: stats.to_dict() for name, stats in self.phase_stats.items()},
            'telemetryRuns': [t.to_dict() for t in self.telemetry_runs],
        }


# Catalog browsing models

@dataclass
class ColumnInfo:
    """A column as listed by schema browsing (native type, not a logical one)"""
    name: str
    data_type: str
    nullable: bool = True
    is_primary_key: bool = False
    # {referencedSchema?, referencedTable, referencedColumn}
    foreign_key: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'name': self.name,
            'dataType': self.data_type,
            'nullable': self.nullable,
            'isPrimaryKey': self.is_primary_key,
        }
        if self.foreign_key:
            result['foreignKey'] = self.foreign_key
        return result


@dataclass
class TableInfo:
    name: str
    # "table" or "view"
    type: str = 'table'
    columns: List[ColumnInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'type': self.type, 'columns': [c.to_dict() for c in self.columns]}


@dataclass
class SchemaInfo:
    name: str
    tables: List[TableInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'tables': [t.to_dict() for t in self.tables]}


@dataclass
class ExplainResult:
    """Execution plan as returned by the database"""
    plan: Any
    # "json", "text", "xml" or "rows"
    format: str
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {'plan': self.plan, 'format': self.format, 'durationMs': self.duration_ms}


@dataclass
class SequenceInfo:
    schema: str
    name: str
    data_type: Optional[str] = None
    start_value: Optional[int] = None
    increment: Optional[int] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    last_value: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'schema': self.schema,
            'name': self.name,
            'dataType': self.data_type,
            'startValue': self.start_value,
            'increment': self.increment,
            'minValue': self.min_value,
            'maxValue': self.max_value,
            'lastValue': self.last_value,
        }


@dataclass
class CustomTypeInfo:
    """A user-defined type: enum, domain, composite or range"""
    schema: str
    name: str
    type: str
    values: Optional[List[str]] = None
    base_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'schema': self.schema, 'name': self.name, 'type': self.type}
        if self.values is not None:
            result['values'] = self.values
        if self.base_type is not None:
            result['baseType'] = self.base_type
        return result
