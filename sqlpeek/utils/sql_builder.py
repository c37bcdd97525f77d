"""
DML synthesis for data-grid edits.

Executed (parameterized) SQL and preview (literal) SQL are rendered by the same
code path; only the value writer differs, so the two can never drift apart.
"""
import json
import logging
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..core.enums import DatabaseType, EditOperationType
from ..core.errors import MissingPrimaryKeyError, UnsupportedTypeError, ValidationError
from ..core.edit_models import EditContext, EditOperation, PreviewSql, Query
from ..core.schema_models import LogicalDataType
from ..dialect.quoting import format_literal, placeholder, qualify_table_name, quote_identifier
from ..dialect.type_mapper import normalize_logical_type, parse_native_type, resolve_database_type
from .validation import validate_edit_batch

logger = logging.getLogger(__name__)

_TRUE_WORDS = ('true', 't', '1', 'yes', 'y', 'on')
_FALSE_WORDS = ('false', 'f', '0', 'no', 'n', 'off')


def column_logical_type(column_type: Optional[str], dialect: DatabaseType) -> Optional[LogicalDataType]:
    """Resolve a context column type, given as a logical or a native name"""
    if not column_type:
        return None
    try:
        return normalize_logical_type(column_type)
    except UnsupportedTypeError:
        return parse_native_type(column_type, dialect)[0]


def _parse_timestamp(text: str, keep_zone: bool) -> datetime:
    # fromisoformat only accepts a trailing 'Z' from Python 3.11
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if not keep_zone and parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_boolean(text: str) -> bool:
    word = text.lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"not a boolean: {text}")


_PARSERS: Dict[LogicalDataType, Callable[[str], Any]] = {
    LogicalDataType.SMALLINT: int,
    LogicalDataType.INTEGER: int,
    LogicalDataType.BIGINT: int,
    LogicalDataType.DECIMAL: Decimal,
    LogicalDataType.REAL: float,
    LogicalDataType.DOUBLE: float,
    LogicalDataType.BOOLEAN: _parse_boolean,
    LogicalDataType.DATE: date.fromisoformat,
    LogicalDataType.TIME: time.fromisoformat,
    LogicalDataType.TIMESTAMP: lambda text: _parse_timestamp(text, keep_zone=False),
    LogicalDataType.TIMESTAMPTZ: lambda text: _parse_timestamp(text, keep_zone=True),
    LogicalDataType.UUID: uuid.UUID,
}


def coerce_value(value: Any, logical_type: Optional[LogicalDataType], column: str = '') -> Any:
    """
    Convert a grid string to the Python type of its column.

    Non-string values and columns without a typed parser pass through unchanged.

    Raises:
        ValidationError: If the string is not a valid value of the column type
    """
    parser = _PARSERS.get(logical_type)
    if parser is None or not isinstance(value, str):
        return value
    try:
        return parser(value.strip())
    except (ValueError, ArithmeticError):
        # decimal.InvalidOperation is an ArithmeticError
        raise ValidationError([f"Value {value!r} for column '{column}' is not a valid {logical_type.value}"])


def bind_value(value: Any, dialect: DatabaseType) -> Any:
    """Convert a grid value into something every driver for the dialect can bind"""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, bool) and dialect != DatabaseType.POSTGRESQL:
        return 1 if value else 0
    if isinstance(value, uuid.UUID) and dialect != DatabaseType.POSTGRESQL:
        return str(value)
    if dialect == DatabaseType.SQLITE:
        # sqlite3 has no Decimal adapter and its datetime adapters are deprecated
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat(sep=' ')
        if isinstance(value, (date, time)):
            return value.isoformat()
    return value


class SqlBuilder:
    @staticmethod
    def build(
        operation: EditOperation,
        context: EditContext,
        db_type: Union[str, DatabaseType],
        literal: bool = False
    ) -> Tuple[str, List]:
        """
        Render one edit operation.

        Args:
            operation: Insert, update or delete to render
            context: Table, schema, primary key and column types shared by the batch
            db_type: Target dialect
            literal: Substitute values inline instead of emitting placeholders

        Returns:
            (sql, params) - params is empty when ``literal`` is set

        Raises:
            MissingPrimaryKeyError: If an update/delete cannot be keyed by the primary key
            ValidationError: If a string value does not parse as its column type
        """
        dialect = resolve_database_type(db_type)
        params = []

        column_types = {
            col: column_logical_type(col_type, dialect) for col, col_type in context.column_types.items()
        }

        # Each statement restarts its own parameter index
        def write_value(column: str, value: Any) -> str:
            value = coerce_value(value, column_types.get(column), column)
            if literal:
                return format_literal(value, dialect)
            params.append(bind_value(value, dialect))
            return placeholder(len(params), dialect)

        table = qualify_table_name(operation.schema or context.schema, operation.table or context.table, dialect)

        if operation.type == EditOperationType.INSERT:
            sql = SqlBuilder._build_insert(table, operation.values, dialect, write_value)
        elif operation.type == EditOperationType.UPDATE:
            assignments = [
                f"{quote_identifier(col, dialect)} = {write_value(col, value)}"
                for col, value in operation.values.items()
            ]
            where = SqlBuilder._build_where(operation, context, dialect, write_value)
            sql = f"UPDATE {table} SET {', '.join(assignments)} WHERE {where}"
        elif operation.type == EditOperationType.DELETE:
            where = SqlBuilder._build_where(operation, context, dialect, write_value)
            sql = f"DELETE FROM {table} WHERE {where}"
        else:
            raise ValueError(f"Unsupported edit operation: {operation.type}")

        return sql, params

    @staticmethod
    def _build_insert(
        table: str,
        values: Dict[str, Any],
        dialect: DatabaseType,
        write_value: Callable[[str, Any], str]
    ) -> str:
        if not values:
            if dialect == DatabaseType.MYSQL:
                return f"INSERT INTO {table} () VALUES ()"
            return f"INSERT INTO {table} DEFAULT VALUES"

        columns = ', '.join(quote_identifier(col, dialect) for col in values)
        placeholders = ', '.join(write_value(col, value) for col, value in values.items())
        return f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"

    @staticmethod
    def _build_where(
        operation: EditOperation,
        context: EditContext,
        dialect: DatabaseType,
        write_value: Callable[[str, Any], str]
    ) -> str:
        """Primary-key match in context column order"""
        if not context.primary_key_columns:
            raise MissingPrimaryKeyError(
                f"Cannot {operation.type.value} row in '{context.table}': table has no primary key"
            )

        conditions = []
        for col in context.primary_key_columns:
            if col not in operation.where:
                raise MissingPrimaryKeyError(
                    f"Operation '{operation.id}' is missing primary key value for column '{col}'"
                )
            value = operation.where[col]
            if value is None:
                raise MissingPrimaryKeyError(
                    f"Operation '{operation.id}' has a NULL primary key value for column '{col}'"
                )
            conditions.append(f"{quote_identifier(col, dialect)} = {write_value(col, value)}")
        return ' AND '.join(conditions)


def _validate(operations: List[EditOperation], context: EditContext) -> None:
    result = validate_edit_batch(operations, context)
    if not result.valid:
        raise ValidationError(result.errors)


def build_batch_queries(
    operations: List[EditOperation],
    context: EditContext,
    db_type: Union[str, DatabaseType]
) -> List[Query]:
    """
    One parameterized statement per operation, in input order.

    The whole batch fails if any operation cannot be rendered.
    """
    _validate(operations, context)
    queries = []
    for operation in operations:
        sql, params = SqlBuilder.build(operation, context, db_type)
        queries.append(Query(sql=sql, params=params))
    logger.debug(f"Built {len(queries)} edit statement(s) for {context.table}")
    return queries


def build_preview_sql(
    operation: EditOperation,
    context: EditContext,
    db_type: Union[str, DatabaseType]
) -> PreviewSql:
    """Render an operation with literal values for human review"""
    _validate([operation], context)
    sql, _ = SqlBuilder.build(operation, context, db_type, literal=True)
    return PreviewSql(operation_id=operation.id, sql=sql)
