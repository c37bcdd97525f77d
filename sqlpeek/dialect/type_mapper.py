"""
Dialect type mapping between logical column types and native type strings.
"""
import logging
import re
from typing import Optional, Tuple, Union

from ..core.enums import DatabaseType
from ..core.errors import UnsupportedTypeError
from ..core.schema_models import LogicalDataType, ColumnDefinition

logger = logging.getLogger(__name__)

PG = DatabaseType.POSTGRESQL
MYSQL = DatabaseType.MYSQL
MSSQL = DatabaseType.MSSQL
SQLITE = DatabaseType.SQLITE

DEFAULT_VARCHAR_LENGTH = 255
DEFAULT_CHAR_LENGTH = 1
# NVARCHAR(n) tops out at 4000 characters, longer columns become NVARCHAR(MAX)
MSSQL_MAX_NVARCHAR = 4000


_LOGICAL_ALIASES = {
    'int': LogicalDataType.INTEGER,
    'int4': LogicalDataType.INTEGER,
    'int2': LogicalDataType.SMALLINT,
    'int8': LogicalDataType.BIGINT,
    'numeric': LogicalDataType.DECIMAL,
    'float': LogicalDataType.DOUBLE,
    'float4': LogicalDataType.REAL,
    'float8': LogicalDataType.DOUBLE,
    'double precision': LogicalDataType.DOUBLE,
    'bool': LogicalDataType.BOOLEAN,
    'character': LogicalDataType.CHAR,
    'character varying': LogicalDataType.VARCHAR,
    'string': LogicalDataType.VARCHAR,
    'datetime': LogicalDataType.TIMESTAMP,
    'timestamp with time zone': LogicalDataType.TIMESTAMPTZ,
    'guid': LogicalDataType.UUID,
    'blob': LogicalDataType.BINARY,
    'bytea': LogicalDataType.BINARY,
    'varbinary': LogicalDataType.BINARY,
}


_NATIVE_TYPES = {
    PG: {
        LogicalDataType.SMALLINT: 'SMALLINT',
        LogicalDataType.INTEGER: 'INTEGER',
        LogicalDataType.BIGINT: 'BIGINT',
        LogicalDataType.REAL: 'REAL',
        LogicalDataType.DOUBLE: 'DOUBLE PRECISION',
        LogicalDataType.BOOLEAN: 'BOOLEAN',
        LogicalDataType.TEXT: 'TEXT',
        LogicalDataType.DATE: 'DATE',
        LogicalDataType.TIME: 'TIME',
        LogicalDataType.TIMESTAMP: 'TIMESTAMP',
        LogicalDataType.TIMESTAMPTZ: 'TIMESTAMP WITH TIME ZONE',
        LogicalDataType.INTERVAL: 'INTERVAL',
        LogicalDataType.UUID: 'UUID',
        LogicalDataType.JSON: 'JSON',
        LogicalDataType.JSONB: 'JSONB',
        LogicalDataType.BINARY: 'BYTEA',
    },
    MYSQL: {
        LogicalDataType.SMALLINT: 'SMALLINT',
        LogicalDataType.INTEGER: 'INT',
        LogicalDataType.BIGINT: 'BIGINT',
        LogicalDataType.REAL: 'FLOAT',
        LogicalDataType.DOUBLE: 'DOUBLE',
        LogicalDataType.BOOLEAN: 'TINYINT(1)',
        LogicalDataType.TEXT: 'TEXT',
        LogicalDataType.DATE: 'DATE',
        LogicalDataType.TIME: 'TIME',
        LogicalDataType.TIMESTAMP: 'DATETIME',
        LogicalDataType.TIMESTAMPTZ: 'TIMESTAMP',
        LogicalDataType.UUID: 'CHAR(36)',
        LogicalDataType.JSON: 'JSON',
        LogicalDataType.JSONB: 'JSON',
        LogicalDataType.BINARY: 'BLOB',
    },
    MSSQL: {
        LogicalDataType.SMALLINT: 'SMALLINT',
        LogicalDataType.INTEGER: 'INT',
        LogicalDataType.BIGINT: 'BIGINT',
        LogicalDataType.REAL: 'REAL',
        LogicalDataType.DOUBLE: 'FLOAT',
        LogicalDataType.BOOLEAN: 'BIT',
        LogicalDataType.TEXT: 'NVARCHAR(MAX)',
        LogicalDataType.DATE: 'DATE',
        LogicalDataType.TIME: 'TIME',
        LogicalDataType.TIMESTAMP: 'DATETIME2',
        LogicalDataType.TIMESTAMPTZ: 'DATETIMEOFFSET',
        LogicalDataType.UUID: 'UNIQUEIDENTIFIER',
        LogicalDataType.JSON: 'NVARCHAR(MAX)',
        LogicalDataType.JSONB: 'NVARCHAR(MAX)',
        LogicalDataType.BINARY: 'VARBINARY(MAX)',
    },
    # SQLite only enforces affinities; declared types are kept readable
    SQLITE: {
        LogicalDataType.SMALLINT: 'INTEGER',
        LogicalDataType.INTEGER: 'INTEGER',
        LogicalDataType.BIGINT: 'INTEGER',
        LogicalDataType.REAL: 'REAL',
        LogicalDataType.DOUBLE: 'REAL',
        LogicalDataType.BOOLEAN: 'BOOLEAN',
        LogicalDataType.TEXT: 'TEXT',
        LogicalDataType.DATE: 'DATE',
        LogicalDataType.TIME: 'TIME',
        LogicalDataType.TIMESTAMP: 'DATETIME',
        LogicalDataType.TIMESTAMPTZ: 'DATETIME',
        LogicalDataType.UUID: 'TEXT',
        LogicalDataType.JSON: 'TEXT',
        LogicalDataType.JSONB: 'TEXT',
        LogicalDataType.BINARY: 'BLOB',
    },
}


_COMMON_NATIVE_NAMES = {
    'smallint': LogicalDataType.SMALLINT,
    'int2': LogicalDataType.SMALLINT,
    'smallserial': LogicalDataType.SMALLINT,
    'tinyint': LogicalDataType.SMALLINT,
    'integer': LogicalDataType.INTEGER,
    'int': LogicalDataType.INTEGER,
    'int4': LogicalDataType.INTEGER,
    'mediumint': LogicalDataType.INTEGER,
    'serial': LogicalDataType.INTEGER,
    'bigint': LogicalDataType.BIGINT,
    'int8': LogicalDataType.BIGINT,
    'bigserial': LogicalDataType.BIGINT,
    'numeric': LogicalDataType.DECIMAL,
    'decimal': LogicalDataType.DECIMAL,
    'money': LogicalDataType.DECIMAL,
    'real': LogicalDataType.REAL,
    'float4': LogicalDataType.REAL,
    'float': LogicalDataType.DOUBLE,
    'float8': LogicalDataType.DOUBLE,
    'double': LogicalDataType.DOUBLE,
    'double precision': LogicalDataType.DOUBLE,
    'boolean': LogicalDataType.BOOLEAN,
    'bool': LogicalDataType.BOOLEAN,
    'bit': LogicalDataType.BOOLEAN,
    'char': LogicalDataType.CHAR,
    'character': LogicalDataType.CHAR,
    'bpchar': LogicalDataType.CHAR,
    'nchar': LogicalDataType.CHAR,
    'varchar': LogicalDataType.VARCHAR,
    'character varying': LogicalDataType.VARCHAR,
    'nvarchar': LogicalDataType.VARCHAR,
    'text': LogicalDataType.TEXT,
    'ntext': LogicalDataType.TEXT,
    'tinytext': LogicalDataType.TEXT,
    'mediumtext': LogicalDataType.TEXT,
    'longtext': LogicalDataType.TEXT,
    'clob': LogicalDataType.TEXT,
    'date': LogicalDataType.DATE,
    'time': LogicalDataType.TIME,
    'time without time zone': LogicalDataType.TIME,
    'timestamp': LogicalDataType.TIMESTAMP,
    'timestamp without time zone': LogicalDataType.TIMESTAMP,
    'datetime': LogicalDataType.TIMESTAMP,
    'datetime2': LogicalDataType.TIMESTAMP,
    'smalldatetime': LogicalDataType.TIMESTAMP,
    'timestamp with time zone': LogicalDataType.TIMESTAMPTZ,
    'timestamptz': LogicalDataType.TIMESTAMPTZ,
    'datetimeoffset': LogicalDataType.TIMESTAMPTZ,
    'interval': LogicalDataType.INTERVAL,
    'uuid': LogicalDataType.UUID,
    'uniqueidentifier': LogicalDataType.UUID,
    'json': LogicalDataType.JSON,
    'jsonb': LogicalDataType.JSONB,
    'bytea': LogicalDataType.BINARY,
    'blob': LogicalDataType.BINARY,
    'tinyblob': LogicalDataType.BINARY,
    'mediumblob': LogicalDataType.BINARY,
    'longblob': LogicalDataType.BINARY,
    'binary': LogicalDataType.BINARY,
    'varbinary': LogicalDataType.BINARY,
    'image': LogicalDataType.BINARY,
}

_DIALECT_NATIVE_NAMES = {
    PG: {},
    MYSQL: {
        'float': LogicalDataType.REAL,
        # MySQL TIMESTAMP is stored as UTC and converted on read
        'timestamp': LogicalDataType.TIMESTAMPTZ,
    },
    MSSQL: {
        'float': LogicalDataType.DOUBLE,
        'timestamp': LogicalDataType.BINARY,  # rowversion synonym
    },
    SQLITE: {},
}


def resolve_database_type(db_type: Union[str, DatabaseType]) -> DatabaseType:
    """Coerce a dialect name to DatabaseType"""
    try:
        return DatabaseType(db_type)
    except ValueError:
        raise ValueError(f"Unsupported database type: {db_type}")


def normalize_logical_type(logical_type: Union[str, LogicalDataType]) -> LogicalDataType:
    """
    Resolve a logical type name (or one of its aliases) to LogicalDataType.

    Raises:
        UnsupportedTypeError: If the name is not a known logical type
    """
    if isinstance(logical_type, LogicalDataType):
        return logical_type
    normalized = ' '.join(str(logical_type or '').lower().split())
    try:
        return LogicalDataType(normalized)
    except ValueError:
        pass
    if normalized in _LOGICAL_ALIASES:
        return _LOGICAL_ALIASES[normalized]
    raise UnsupportedTypeError(str(logical_type))


def map_logical_type(
    logical_type: Union[str, LogicalDataType],
    db_type: Union[str, DatabaseType],
    length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None
) -> str:
    """
    Map a logical type to the native type text of a dialect.

    Args:
        logical_type: Logical type name, e.g. 'integer', 'varchar', 'uuid'
        db_type: Target dialect
        length: Length for char/varchar/binary types
        precision: Precision for decimal types
        scale: Scale for decimal types

    Returns:
        Native type text, e.g. 'VARCHAR(100)', 'NUMERIC(10,2)'

    Raises:
        UnsupportedTypeError: If the type has no mapping for the dialect
    """
    dialect = resolve_database_type(db_type)
    base_type = normalize_logical_type(logical_type)

    # Handle VARCHAR with custom length
    if base_type == LogicalDataType.VARCHAR:
        size = length or DEFAULT_VARCHAR_LENGTH
        if dialect == MSSQL:
            return 'NVARCHAR(MAX)' if size > MSSQL_MAX_NVARCHAR else f'NVARCHAR({size})'
        return f'VARCHAR({size})'

    # Handle CHAR with custom length
    if base_type == LogicalDataType.CHAR:
        size = length or DEFAULT_CHAR_LENGTH
        if dialect == MSSQL:
            return f'NCHAR({size})'
        return f'CHAR({size})'

    # Handle DECIMAL/NUMERIC with precision and scale
    if base_type == LogicalDataType.DECIMAL:
        name = 'DECIMAL' if dialect in (MYSQL, MSSQL) else 'NUMERIC'
        if precision and scale is not None:
            return f'{name}({precision},{scale})'
        elif precision:
            return f'{name}({precision})'
        if dialect == MYSQL:
            return 'DECIMAL(10,2)'  # MySQL would otherwise default to DECIMAL(10,0)
        return name

    # Sized binary columns
    if base_type == LogicalDataType.BINARY and length and dialect in (MYSQL, MSSQL):
        return f'VARBINARY({length})'

    native = _NATIVE_TYPES[dialect].get(base_type)
    if native is None:
        raise UnsupportedTypeError(base_type.value, dialect.value)
    return native


def map_column_type(column: ColumnDefinition, db_type: Union[str, DatabaseType]) -> str:
    """Native type text for a column definition"""
    return map_logical_type(
        column.data_type,
        db_type,
        length=column.length,
        precision=column.precision,
        scale=column.scale
    )


def _parse_params(native: str) -> list:
    match = re.search(r'\(([^)]*)\)', native)
    if not match:
        return []
    return [p.strip().lower() for p in match.group(1).split(',') if p.strip()]


def _sqlite_affinity(base: str) -> LogicalDataType:
    # https://www.sqlite.org/datatype3.html#determination_of_column_affinity
    upper = base.upper()
    if 'INT' in upper:
        return LogicalDataType.INTEGER
    if 'CHAR' in upper or 'CLOB' in upper or 'TEXT' in upper:
        return LogicalDataType.TEXT
    if not upper or 'BLOB' in upper:
        return LogicalDataType.BINARY
    if 'REAL' in upper or 'FLOA' in upper or 'DOUB' in upper:
        return LogicalDataType.DOUBLE
    return LogicalDataType.DECIMAL


def parse_native_type(
    native_type: str,
    db_type: Union[str, DatabaseType]
) -> Tuple[LogicalDataType, Optional[int], Optional[int], Optional[int]]:
    """
    Parse native type text into (logical type, length, precision, scale).

    Unknown native types (custom enums, domains, ...) fall back to text.
    """
    dialect = resolve_database_type(db_type)
    raw = (native_type or '').strip().lower()
    params = _parse_params(raw)

    # Extract base type without parameters or modifiers
    # e.g., "varchar(100)" -> "varchar", "int(11) unsigned" -> "int"
    base = re.sub(r'\(.*?\)', '', raw)
    base = re.sub(r'\b(unsigned|signed|zerofill)\b', '', base)
    base = ' '.join(base.split())

    if dialect == MYSQL and base == 'tinyint' and params == ['1']:
        logical = LogicalDataType.BOOLEAN
    elif base in _DIALECT_NATIVE_NAMES[dialect]:
        logical = _DIALECT_NATIVE_NAMES[dialect][base]
    elif base in _COMMON_NATIVE_NAMES:
        logical = _COMMON_NATIVE_NAMES[base]
    elif dialect == SQLITE:
        logical = _sqlite_affinity(base)
    else:
        logger.debug(f"No logical mapping for native type '{native_type}' ({dialect.value}), using text")
        logical = LogicalDataType.TEXT

    length = precision = scale = None
    numbers = [int(p) for p in params if p.isdigit()]
    if logical in (LogicalDataType.CHAR, LogicalDataType.VARCHAR, LogicalDataType.BINARY):
        if params == ['max']:
            if logical == LogicalDataType.VARCHAR:
                logical = LogicalDataType.TEXT
        elif numbers:
            length = numbers[0]
    elif logical == LogicalDataType.DECIMAL and numbers:
        precision = numbers[0]
        scale = numbers[1] if len(numbers) > 1 else None

    return logical, length, precision, scale


def map_native_type(native_type: str, db_type: Union[str, DatabaseType]) -> str:
    """
    Map a dialect's native type text back to a logical type name.

    Args:
        native_type: Native type text, e.g. 'character varying(50)', 'tinyint(1)'
        db_type: Dialect the type text comes from

    Returns:
        Logical type name, e.g. 'varchar', 'boolean'
    """
    logical, _, _, _ = parse_native_type(native_type, db_type)
    return logical.value
