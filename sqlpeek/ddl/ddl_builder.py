"""
DDL synthesis: CREATE TABLE, ALTER TABLE and DROP TABLE per dialect.

Every ALTER operation becomes exactly one statement on every dialect, and the
preview functions return the text of the statements that would be executed.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Union

from ..core.enums import AlterOperationType, ConstraintType, DatabaseType
from ..core.errors import UnsupportedOperationError, UnsupportedTypeError, ValidationError
from ..core.edit_models import Query
from ..core.schema_models import (
    AlterOperation, AlterTableBatch, CheckConstraint, ColumnDefinition, Constraint,
    ForeignKeyDefinition, LogicalDataType, PrimaryKeyConstraint, TableDefinition,
    UniqueConstraint, INTEGER_TYPES
)
from ..dialect.quoting import format_literal, qualify_table_name, quote_identifier, quote_string
from ..dialect.type_mapper import map_column_type, normalize_logical_type, resolve_database_type
from ..utils.validation import normalize_referential_action, validate_alter_batch, validate_table_definition

logger = logging.getLogger(__name__)

PG = DatabaseType.POSTGRESQL
MYSQL = DatabaseType.MYSQL
MSSQL = DatabaseType.MSSQL
SQLITE = DatabaseType.SQLITE

_NUMBER_RE = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')
# Keyword defaults that MySQL and SQLite accept without parentheses
_BARE_DEFAULT_KEYWORDS = {'CURRENT_TIMESTAMP', 'CURRENT_DATE', 'CURRENT_TIME', 'NULL', 'TRUE', 'FALSE'}


def _coerce_default(value: Any, data_type: str) -> Any:
    """Turn UI-entered default strings into typed values where the column type is known"""
    if not isinstance(value, str):
        return value
    try:
        logical = normalize_logical_type(data_type)
    except UnsupportedTypeError:
        return value
    if logical == LogicalDataType.BOOLEAN and value.strip().lower() in ('true', 'false', '1', '0'):
        return value.strip().lower() in ('true', '1')
    if logical in INTEGER_TYPES + (LogicalDataType.DECIMAL, LogicalDataType.REAL, LogicalDataType.DOUBLE):
        if _NUMBER_RE.match(value.strip()):
            try:
                return Decimal(value.strip())
            except InvalidOperation:
                return value
    return value


def _render_default(column: ColumnDefinition, dialect: DatabaseType) -> Optional[str]:
    if column.default_expression:
        expression = column.default_expression.strip()
        if dialect in (MYSQL, SQLITE) and expression.upper() not in _BARE_DEFAULT_KEYWORDS:
            # MySQL and SQLite only accept parenthesised expression defaults
            if not (expression.startswith('(') and expression.endswith(')')):
                return f"({expression})"
        return expression
    if column.default_value is not None:
        return format_literal(_coerce_default(column.default_value, column.data_type), dialect)
    return None


def build_column_definition(
    column: ColumnDefinition,
    db_type: Union[str, DatabaseType],
    primary_key_columns: Optional[List[str]] = None,
    inline_primary_key: bool = False,
    include_unique: bool = True
) -> str:
    """
    Render one column definition.

    Args:
        column: Column to render
        db_type: Target dialect
        primary_key_columns: Table primary key; its columns are always NOT NULL
        inline_primary_key: Render PRIMARY KEY on the column itself
        include_unique: Render the UNIQUE column constraint
    """
    dialect = resolve_database_type(db_type)
    name = quote_identifier(column.name, dialect)
    in_primary_key = column.name in (primary_key_columns or []) or inline_primary_key

    # SQLite AUTOINCREMENT only exists on the rowid alias "INTEGER PRIMARY KEY"
    if dialect == SQLITE and column.auto_increment:
        return f"{name} INTEGER PRIMARY KEY AUTOINCREMENT"

    parts = [name, map_column_type(column, dialect)]

    if column.auto_increment and dialect == PG:
        parts.append("GENERATED BY DEFAULT AS IDENTITY")
    elif column.auto_increment and dialect == MSSQL:
        parts.append("IDENTITY(1,1)")

    if not column.nullable or in_primary_key:
        parts.append("NOT NULL")

    default = _render_default(column, dialect)
    if default is not None:
        parts.append(f"DEFAULT {default}")

    if column.auto_increment and dialect == MYSQL:
        parts.append("AUTO_INCREMENT")

    if inline_primary_key:
        parts.append("PRIMARY KEY")
    elif column.is_unique and include_unique:
        parts.append("UNIQUE")

    return ' '.join(parts)


def _column_list(columns: List[str], dialect: DatabaseType) -> str:
    return ', '.join(quote_identifier(col, dialect) for col in columns)


def render_constraint(
    constraint: Constraint,
    db_type: Union[str, DatabaseType],
    default_schema: Optional[str] = None
) -> str:
    """
    Render a table constraint clause, e.g. for CREATE TABLE or ADD CONSTRAINT.

    Foreign keys without a referenced schema reference ``default_schema``.
    """
    dialect = resolve_database_type(db_type)
    prefix = f"CONSTRAINT {quote_identifier(constraint.name, dialect)} " if constraint.name else ""

    if isinstance(constraint, PrimaryKeyConstraint):
        return f"{prefix}PRIMARY KEY ({_column_list(constraint.columns, dialect)})"

    if isinstance(constraint, UniqueConstraint):
        return f"{prefix}UNIQUE ({_column_list(constraint.columns, dialect)})"

    if isinstance(constraint, CheckConstraint):
        return f"{prefix}CHECK ({constraint.expression})"

    if isinstance(constraint, ForeignKeyDefinition):
        # SQLite foreign keys cannot be schema-qualified
        ref_schema = None if dialect == SQLITE else (constraint.referenced_schema or default_schema)
        clause = (
            f"{prefix}FOREIGN KEY ({_column_list(constraint.columns, dialect)}) "
            f"REFERENCES {qualify_table_name(ref_schema, constraint.referenced_table, dialect)} "
            f"({_column_list(constraint.referenced_columns, dialect)})"
        )
        if constraint.on_delete:
            clause += f" ON DELETE {normalize_referential_action(constraint.on_delete).value}"
        if constraint.on_update:
            clause += f" ON UPDATE {normalize_referential_action(constraint.on_update).value}"
        return clause

    raise UnsupportedOperationError(f"Unknown constraint type: {type(constraint).__name__}")


def build_create_table(definition: TableDefinition, db_type: Union[str, DatabaseType]) -> Query:
    """
    Generate CREATE TABLE for a validated table definition.

    Columns are emitted in input order, followed by the primary key, unique,
    foreign key and check constraints.

    Raises:
        ValidationError: If the definition fails validation for this dialect
    """
    dialect = resolve_database_type(db_type)
    validation = validate_table_definition(definition, dialect)
    if not validation.valid:
        raise ValidationError(validation.errors)

    table_name = qualify_table_name(definition.schema, definition.name, dialect)
    pk_columns = definition.get_primary_key_columns()
    sqlite_rowid_pk = dialect == SQLITE and any(c.auto_increment for c in definition.columns)

    lines = [
        build_column_definition(column, dialect, primary_key_columns=pk_columns)
        for column in definition.columns
    ]

    # Add primary key constraint
    if pk_columns and not sqlite_rowid_pk:
        lines.append(f"PRIMARY KEY ({_column_list(pk_columns, dialect)})")

    for constraint in [*definition.unique_constraints, *definition.foreign_keys, *definition.check_constraints]:
        lines.append(render_constraint(constraint, dialect, default_schema=definition.schema))

    body = ',\n  '.join(lines)
    sql = f"CREATE TABLE {table_name} (\n  {body}\n);"
    logger.debug(f"Generated CREATE TABLE for {definition.name} ({dialect.value})")
    return Query(sql=sql)


def _add_column(table: str, op: AlterOperation, dialect: DatabaseType) -> str:
    column = op.column
    if dialect == SQLITE:
        if column.is_primary_key or column.auto_increment or column.is_unique:
            raise UnsupportedOperationError(
                f"SQLite cannot add primary key, auto-increment or unique column '{column.name}'"
            )
        if not column.nullable and _render_default(column, dialect) is None:
            raise UnsupportedOperationError(
                f"SQLite cannot add NOT NULL column '{column.name}' without a default value"
            )

    col_def = build_column_definition(column, dialect, inline_primary_key=column.is_primary_key)
    if dialect == MSSQL:
        return f"ALTER TABLE {table} ADD {col_def};"
    return f"ALTER TABLE {table} ADD COLUMN {col_def};"


def _rename_column(table: str, op: AlterOperation, dialect: DatabaseType) -> str:
    if dialect == MSSQL:
        target = f"{table}.{quote_identifier(op.column_name, dialect)}"
        return (
            f"EXEC sp_rename {quote_string(target, dialect)}, "
            f"{quote_string(op.new_name, dialect)}, {quote_string('COLUMN', dialect)};"
        )
    return (
        f"ALTER TABLE {table} RENAME COLUMN {quote_identifier(op.column_name, dialect)} "
        f"TO {quote_identifier(op.new_name, dialect)};"
    )


def _modify_column(table: str, op: AlterOperation, dialect: DatabaseType) -> str:
    column = op.column
    if dialect == SQLITE:
        raise UnsupportedOperationError(
            f"SQLite cannot modify column '{column.name}'; recreate the table instead"
        )
    if dialect == MYSQL:
        # MODIFY redefines the column; a UNIQUE here would add a duplicate index
        col_def = build_column_definition(column, dialect, inline_primary_key=False, include_unique=False)
        return f"ALTER TABLE {table} MODIFY COLUMN {col_def};"

    if column.auto_increment:
        raise UnsupportedOperationError(
            f"Auto-increment cannot be changed on existing column '{column.name}' for {dialect.value}"
        )

    name = quote_identifier(column.name, dialect)
    col_type = map_column_type(column, dialect)
    not_null = not column.nullable or column.is_primary_key
    default = _render_default(column, dialect)

    if dialect == MSSQL:
        if default is not None:
            raise UnsupportedOperationError(
                f"SQL Server column defaults are named constraints; "
                f"drop and add the default constraint for '{column.name}' instead"
            )
        return f"ALTER TABLE {table} ALTER COLUMN {name} {col_type} {'NOT NULL' if not_null else 'NULL'};"

    # PostgreSQL changes type, nullability and default in one statement
    clauses = [
        f"ALTER COLUMN {name} TYPE {col_type} USING {name}::{col_type}",
        f"ALTER COLUMN {name} {'SET NOT NULL' if not_null else 'DROP NOT NULL'}",
        f"ALTER COLUMN {name} SET DEFAULT {default}" if default is not None else f"ALTER COLUMN {name} DROP DEFAULT",
    ]
    return f"ALTER TABLE {table} " + ', '.join(clauses) + ';'


def _drop_constraint(table: str, op: AlterOperation, dialect: DatabaseType) -> str:
    if dialect == SQLITE:
        raise UnsupportedOperationError("SQLite cannot drop constraints; recreate the table instead")

    if dialect == MYSQL:
        if op.constraint_type == ConstraintType.PRIMARY_KEY:
            return f"ALTER TABLE {table} DROP PRIMARY KEY;"
        name = quote_identifier(op.constraint_name, dialect)
        if op.constraint_type == ConstraintType.FOREIGN_KEY:
            return f"ALTER TABLE {table} DROP FOREIGN KEY {name};"
        if op.constraint_type == ConstraintType.UNIQUE:
            return f"ALTER TABLE {table} DROP INDEX {name};"
        if op.constraint_type == ConstraintType.CHECK:
            return f"ALTER TABLE {table} DROP CHECK {name};"
        return f"ALTER TABLE {table} DROP CONSTRAINT {name};"

    if not op.constraint_name:
        raise UnsupportedOperationError(f"{dialect.value} requires the constraint name to drop a constraint")
    return f"ALTER TABLE {table} DROP CONSTRAINT {quote_identifier(op.constraint_name, dialect)};"


def build_alter_statement(
    op: AlterOperation,
    table: str,
    dialect: DatabaseType,
    schema: Optional[str] = None
) -> str:
    """Render one ALTER operation against an already-qualified table reference"""
    if op.type == AlterOperationType.ADD_COLUMN:
        return _add_column(table, op, dialect)

    if op.type == AlterOperationType.DROP_COLUMN:
        return f"ALTER TABLE {table} DROP COLUMN {quote_identifier(op.column_name, dialect)};"

    if op.type == AlterOperationType.RENAME_COLUMN:
        return _rename_column(table, op, dialect)

    if op.type == AlterOperationType.MODIFY_COLUMN:
        return _modify_column(table, op, dialect)

    if op.type == AlterOperationType.ADD_CONSTRAINT:
        if dialect == SQLITE:
            raise UnsupportedOperationError("SQLite cannot add constraints; recreate the table instead")
        return f"ALTER TABLE {table} ADD {render_constraint(op.constraint, dialect, default_schema=schema)};"

    if op.type == AlterOperationType.DROP_CONSTRAINT:
        return _drop_constraint(table, op, dialect)

    raise UnsupportedOperationError(f"Unknown alter operation: {op.type}")


def build_alter_table(batch: AlterTableBatch, db_type: Union[str, DatabaseType]) -> List[Query]:
    """
    Generate one ALTER TABLE statement per operation, in batch order.

    Raises:
        ValidationError: If the batch is malformed
        UnsupportedOperationError: If an operation cannot be expressed in the dialect
    """
    dialect = resolve_database_type(db_type)
    validation = validate_alter_batch(batch, dialect)
    if not validation.valid:
        raise ValidationError(validation.errors)

    table = qualify_table_name(batch.schema, batch.table, dialect)
    queries = [
        Query(sql=build_alter_statement(op, table, dialect, schema=batch.schema))
        for op in batch.operations
    ]
    logger.debug(f"Generated {len(queries)} ALTER statement(s) for {batch.table} ({dialect.value})")
    return queries


def build_drop_table(
    schema: Optional[str],
    table: str,
    cascade: bool,
    db_type: Union[str, DatabaseType],
    if_exists: bool = False
) -> Query:
    """
    Generate DROP TABLE.

    CASCADE is only emitted for PostgreSQL; other dialects accept the flag
    and ignore it.
    """
    dialect = resolve_database_type(db_type)
    if not table or not str(table).strip():
        raise ValidationError(["Table name is required"])

    sql = "DROP TABLE "
    if if_exists:
        sql += "IF EXISTS "
    sql += qualify_table_name(schema, table, dialect)
    if cascade:
        if dialect == PG:
            sql += " CASCADE"
        else:
            logger.debug(f"CASCADE has no effect for {dialect.value}, dropping {table} without it")
    return Query(sql=sql + ";")


def build_preview_ddl(definition: TableDefinition, db_type: Union[str, DatabaseType]) -> str:
    """CREATE TABLE text exactly as build_create_table would execute it"""
    return build_create_table(definition, db_type).sql


def build_alter_preview_ddl(batch: AlterTableBatch, db_type: Union[str, DatabaseType]) -> List[str]:
    """ALTER TABLE statements exactly as build_alter_table would execute them"""
    return [query.sql for query in build_alter_table(batch, db_type)]
