"""
Identifier quoting, literal rendering and placeholder tokens per dialect.

Identifiers are always quoted, never emitted bare, so keywords and
mixed-case names survive every dialect unchanged.
"""
import json
import math
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional, Union

from ..core.enums import DatabaseType
from ..core.errors import ValidationError
from .type_mapper import resolve_database_type

_QUOTES = {
    DatabaseType.POSTGRESQL: ('"', '"'),
    DatabaseType.SQLITE: ('"', '"'),
    DatabaseType.MYSQL: ('`', '`'),
    DatabaseType.MSSQL: ('[', ']'),
}

# SQLite's main database needs no qualifier
_SQLITE_DEFAULT_SCHEMAS = ('main',)


def quote_identifier(name: str, db_type: Union[str, DatabaseType]) -> str:
    """
    Quote a single identifier for the dialect.

    PostgreSQL/SQLite use double quotes, MySQL backticks and MSSQL brackets;
    an embedded closing quote character is escaped by doubling it.
    """
    dialect = resolve_database_type(db_type)
    if name is None or str(name) == '':
        raise ValidationError(["Identifier name is required"])
    open_char, close_char = _QUOTES[dialect]
    escaped = str(name).replace(close_char, close_char * 2)
    return f"{open_char}{escaped}{close_char}"


def unquote_identifier(quoted: str, db_type: Union[str, DatabaseType]) -> str:
    """Reverse quote_identifier for a single quoted segment"""
    dialect = resolve_database_type(db_type)
    open_char, close_char = _QUOTES[dialect]
    if len(quoted) < 2 or not (quoted.startswith(open_char) and quoted.endswith(close_char)):
        raise ValueError(f"Not a quoted identifier: {quoted}")
    return quoted[1:-1].replace(close_char * 2, close_char)


def qualify_table_name(
    schema: Optional[str],
    table: str,
    db_type: Union[str, DatabaseType]
) -> str:
    """
    Build a quoted [schema.]table reference.

    MySQL treats the schema segment as the database name; SQLite only keeps it
    for attached databases.
    """
    dialect = resolve_database_type(db_type)
    if dialect == DatabaseType.SQLITE and schema in _SQLITE_DEFAULT_SCHEMAS:
        schema = None
    if schema:
        return f"{quote_identifier(schema, dialect)}.{quote_identifier(table, dialect)}"
    return quote_identifier(table, dialect)


def quote_string(value: str, db_type: Union[str, DatabaseType]) -> str:
    """Render a string literal"""
    dialect = resolve_database_type(db_type)
    escaped = value.replace("'", "''")
    if dialect == DatabaseType.MYSQL:
        # Backslash is an escape character under MySQL's default sql_mode
        escaped = escaped.replace("\\", "\\\\")
    if dialect == DatabaseType.MSSQL:
        return f"N'{escaped}'"
    return f"'{escaped}'"


def _format_bytes(value: bytes, dialect: DatabaseType) -> str:
    hex_value = bytes(value).hex().upper()
    if dialect == DatabaseType.POSTGRESQL:
        return f"'\\x{hex_value}'::bytea"
    if dialect == DatabaseType.MSSQL:
        return f"0x{hex_value}"
    return f"X'{hex_value}'"


def format_literal(value: Any, db_type: Union[str, DatabaseType]) -> str:
    """
    Render a Python value as a SQL literal for the dialect.

    Strings are single-quoted and escaped, numbers unquoted, booleans use
    TRUE/FALSE on PostgreSQL and 1/0 elsewhere, None becomes NULL.
    """
    dialect = resolve_database_type(db_type)

    if value is None:
        return 'NULL'
    # bool before int - bool is an int subclass
    if isinstance(value, bool):
        if dialect == DatabaseType.POSTGRESQL:
            return 'TRUE' if value else 'FALSE'
        return '1' if value else '0'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return quote_string('NaN', dialect)
        if math.isinf(value):
            return quote_string('Infinity' if value > 0 else '-Infinity', dialect)
        return repr(value)
    if isinstance(value, Decimal):
        if value.is_finite():
            return str(value)
        return quote_string(str(value), dialect)
    if isinstance(value, datetime):
        return quote_string(value.isoformat(sep=' '), dialect)
    if isinstance(value, (date, time)):
        return quote_string(value.isoformat(), dialect)
    if isinstance(value, uuid.UUID):
        return quote_string(str(value), dialect)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _format_bytes(value, dialect)
    if isinstance(value, (dict, list)):
        return quote_string(json.dumps(value, default=str), dialect)
    return quote_string(str(value), dialect)


def placeholder(index: int, db_type: Union[str, DatabaseType]) -> str:
    """
    Parameter placeholder for the 1-based parameter ``index``.

    PostgreSQL: $1, $2 ...; MySQL/SQLite: ?; MSSQL: @p1, @p2 ...
    """
    dialect = resolve_database_type(db_type)
    if dialect == DatabaseType.POSTGRESQL:
        return f"${index}"
    if dialect == DatabaseType.MSSQL:
        return f"@p{index}"
    return "?"
