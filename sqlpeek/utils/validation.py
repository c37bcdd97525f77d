"""
Structural validation for table definitions, alter batches and edit batches.

Validators collect every violation instead of stopping at the first one so
the UI can show the complete list.
"""
from typing import Iterable, List, Optional, Union

from ..core.enums import AlterOperationType, ConstraintType, DatabaseType, EditOperationType, ReferentialAction
from ..core.errors import UnsupportedTypeError
from ..core.schema_models import (
    INTEGER_TYPES, AlterTableBatch, CheckConstraint, ColumnDefinition, ForeignKeyDefinition,
    PrimaryKeyConstraint, TableDefinition, UniqueConstraint, ValidationResult
)
from ..core.edit_models import EditContext, EditOperation
from ..dialect.type_mapper import map_column_type, normalize_logical_type, resolve_database_type


def normalize_referential_action(action: str) -> ReferentialAction:
    """Normalize 'cascade', 'set_null', 'SET NULL' ... to ReferentialAction"""
    normalized = ' '.join(str(action).replace('_', ' ').upper().split())
    return ReferentialAction(normalized)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or str(value).strip() == ''


def _duplicates(names: Iterable[str]) -> List[str]:
    seen = set()
    duplicates = []
    for name in names:
        if name in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(name)
    return duplicates


def _check_column(column: ColumnDefinition, label: str, db_type: Optional[DatabaseType], errors: List[str]) -> None:
    """Checks that apply to a single column wherever it appears"""
    if _is_blank(column.name):
        errors.append(f"{label} must have a name")
        return

    logical = None
    try:
        logical = normalize_logical_type(column.data_type)
        if db_type is not None:
            map_column_type(column, db_type)
    except UnsupportedTypeError as e:
        errors.append(f"Column '{column.name}': {e.message}")

    if column.default_value is not None and column.default_expression:
        errors.append(f"Column '{column.name}' cannot have both a default value and a default expression")

    if column.auto_increment:
        if logical is not None and logical not in INTEGER_TYPES:
            errors.append(f"Auto-increment column '{column.name}' must be an integer type")
        if column.default_value is not None or column.default_expression:
            errors.append(f"Auto-increment column '{column.name}' cannot have a default value")


def _check_foreign_key(
    fk: ForeignKeyDefinition,
    label: str,
    column_names: Optional[set],
    db_type: Optional[DatabaseType],
    errors: List[str]
) -> None:
    if not fk.columns:
        errors.append(f"{label} must have at least one column")
    elif column_names is not None:
        for col in fk.columns:
            if col not in column_names:
                errors.append(f"{label} references unknown column '{col}'")
    if _is_blank(fk.referenced_table):
        errors.append(f"{label} must reference a table")
    if not fk.referenced_columns or len(fk.referenced_columns) != len(fk.columns or []):
        errors.append(f"{label} must reference the same number of columns it declares")
    for clause, action in (('ON DELETE', fk.on_delete), ('ON UPDATE', fk.on_update)):
        if action is None:
            continue
        try:
            normalized = normalize_referential_action(action)
        except ValueError:
            errors.append(f"{label} has invalid {clause} action '{action}'")
            continue
        if db_type == DatabaseType.MSSQL and normalized == ReferentialAction.RESTRICT:
            errors.append(f"{label}: SQL Server does not support {clause} RESTRICT, use NO ACTION")


def _check_constraint(constraint, label: str, column_names: Optional[set],
                      db_type: Optional[DatabaseType], errors: List[str]) -> None:
    if isinstance(constraint, ForeignKeyDefinition):
        _check_foreign_key(constraint, label, column_names, db_type, errors)
    elif isinstance(constraint, (UniqueConstraint, PrimaryKeyConstraint)):
        if not constraint.columns:
            errors.append(f"{label} must have at least one column")
        elif column_names is not None:
            for col in constraint.columns:
                if col not in column_names:
                    errors.append(f"{label} references unknown column '{col}'")
    elif isinstance(constraint, CheckConstraint):
        if _is_blank(constraint.expression):
            errors.append(f"{label} must have an expression")
    else:
        errors.append(f"{label} is not a recognised constraint")


def validate_table_definition(
    definition: TableDefinition,
    db_type: Optional[Union[str, DatabaseType]] = None
) -> ValidationResult:
    """
    Validate a table definition before CREATE TABLE synthesis.

    Dialect-specific rules (type availability, SQLite auto-increment,
    MSSQL referential actions) are only checked when ``db_type`` is given.

    Returns:
        ValidationResult listing every violation found
    """
    dialect = resolve_database_type(db_type) if db_type is not None else None
    errors: List[str] = []

    if _is_blank(definition.name):
        errors.append("Table name is required")

    if not definition.columns:
        errors.append("Table must have at least one column")

    for i, column in enumerate(definition.columns):
        _check_column(column, f"Column {i + 1}", dialect, errors)

    names = [c.name for c in definition.columns if not _is_blank(c.name)]
    for name in _duplicates(names):
        errors.append(f"Duplicate column name: {name}")
    column_names = set(names)

    # Primary key - either column flags or a table-level list, never conflicting
    flagged = [c.name for c in definition.columns if c.is_primary_key]
    if definition.primary_key and flagged and set(flagged) != set(definition.primary_key):
        errors.append("Primary key is declared on columns and as a table constraint with different columns")
    pk_columns = definition.get_primary_key_columns()
    if not pk_columns:
        errors.append("Table must have a primary key")
    for col in _duplicates(pk_columns):
        errors.append(f"Primary key column '{col}' is listed more than once")
    for col in pk_columns:
        if col not in column_names:
            errors.append(f"Primary key column '{col}' does not exist")

    auto_columns = [c for c in definition.columns if c.auto_increment]
    if len(auto_columns) > 1:
        errors.append("Only one column can be auto-increment")
    for col in auto_columns:
        if dialect == DatabaseType.SQLITE and (pk_columns != [col.name]):
            errors.append(
                f"SQLite auto-increment column '{col.name}' must be the table's only primary key column"
            )
        if dialect == DatabaseType.MYSQL and col.name not in pk_columns and not col.is_unique:
            errors.append(f"MySQL auto-increment column '{col.name}' must be part of a key")

    for i, fk in enumerate(definition.foreign_keys):
        label = f"Foreign key '{fk.name}'" if fk.name else f"Foreign key {i + 1}"
        _check_foreign_key(fk, label, column_names, dialect, errors)

    for i, uc in enumerate(definition.unique_constraints):
        label = f"Unique constraint '{uc.name}'" if uc.name else f"Unique constraint {i + 1}"
        _check_constraint(uc, label, column_names, dialect, errors)

    for i, cc in enumerate(definition.check_constraints):
        label = f"Check constraint '{cc.name}'" if cc.name else f"Check constraint {i + 1}"
        _check_constraint(cc, label, column_names, dialect, errors)

    constraint_names = [
        c.name.lower()
        for c in [*definition.foreign_keys, *definition.unique_constraints, *definition.check_constraints]
        if not _is_blank(c.name)
    ]
    for name in _duplicates(constraint_names):
        errors.append(f"Duplicate constraint name: {name}")

    return ValidationResult(valid=not errors, errors=errors)


def validate_alter_batch(
    batch: AlterTableBatch,
    db_type: Optional[Union[str, DatabaseType]] = None
) -> ValidationResult:
    """Validate the shape of every operation in an ALTER TABLE batch"""
    dialect = resolve_database_type(db_type) if db_type is not None else None
    errors: List[str] = []

    if _is_blank(batch.table):
        errors.append("Table name is required")

    for i, op in enumerate(batch.operations):
        label = f"Operation {i + 1} ({op.type.value})"

        if op.type in (AlterOperationType.ADD_COLUMN, AlterOperationType.MODIFY_COLUMN):
            if op.column is None:
                errors.append(f"{label} requires a column definition")
            else:
                _check_column(op.column, f"{label} column", dialect, errors)

        elif op.type == AlterOperationType.DROP_COLUMN:
            if _is_blank(op.column_name):
                errors.append(f"{label} requires a column name")

        elif op.type == AlterOperationType.RENAME_COLUMN:
            if _is_blank(op.column_name) or _is_blank(op.new_name):
                errors.append(f"{label} requires the current and the new column name")
            elif op.column_name == op.new_name:
                errors.append(f"{label}: new name must differ from '{op.column_name}'")

        elif op.type == AlterOperationType.ADD_CONSTRAINT:
            if op.constraint is None:
                errors.append(f"{label} requires a constraint")
            else:
                _check_constraint(op.constraint, label, None, dialect, errors)

        elif op.type == AlterOperationType.DROP_CONSTRAINT:
            if _is_blank(op.constraint_name) and op.constraint_type != ConstraintType.PRIMARY_KEY:
                errors.append(f"{label} requires a constraint name")

    return ValidationResult(valid=not errors, errors=errors)


def validate_edit_batch(operations: List[EditOperation], context: EditContext) -> ValidationResult:
    """
    Validate an edit batch against its shared context.

    Primary-key availability is not checked here; the SQL builder raises
    MissingPrimaryKeyError for the offending operation.
    """
    errors: List[str] = []

    if context is None or _is_blank(context.table):
        errors.append("Edit context must specify a table")
        return ValidationResult(valid=False, errors=errors)

    ids = []
    for i, op in enumerate(operations):
        if _is_blank(op.id):
            errors.append(f"Operation {i + 1} must have an id")
            continue
        ids.append(op.id)
        if op.table and op.table != context.table:
            errors.append(
                f"Operation '{op.id}' targets table '{op.table}' but the batch context is '{context.table}'"
            )
        if op.schema and context.schema and op.schema != context.schema:
            errors.append(
                f"Operation '{op.id}' targets schema '{op.schema}' but the batch context is '{context.schema}'"
            )
        if op.type == EditOperationType.UPDATE and not op.values:
            errors.append(f"Update operation '{op.id}' has no values to set")
        if any(_is_blank(col) for col in op.values):
            errors.append(f"Operation '{op.id}' has a value without a column name")

    for op_id in _duplicates(ids):
        errors.append(f"Duplicate operation id: {op_id}")

    return ValidationResult(valid=not errors, errors=errors)
