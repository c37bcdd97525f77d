import os
import re
from typing import Any, Dict, List, Tuple

import yaml

from ..core.enums import DatabaseType
from ..core.edit_models import EditBatch, EditContext, EditOperation
from ..core.models import ConnectionConfig, DataStorage, DataStore
from ..core.schema_models import (
    AlterOperation, AlterTableBatch, CheckConstraint, ColumnDefinition, ForeignKeyDefinition,
    PrimaryKeyConstraint, TableDefinition, UniqueConstraint
)
from ..dialect.type_mapper import resolve_database_type

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])([A-Z])')

# Alternative spellings accepted from the desktop client
_KEY_ALIASES = {
    'is_nullable': 'nullable',
    'references_table': 'referenced_table',
    'references_columns': 'referenced_columns',
    'references_schema': 'referenced_schema',
}


def to_snake_case(key: str) -> str:
    """'isPrimaryKey' -> 'is_primary_key'; snake_case keys pass through"""
    snake = _CAMEL_BOUNDARY.sub(r'_\1', key).lower()
    return _KEY_ALIASES.get(snake, snake)


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {to_snake_case(k): v for k, v in (data or {}).items()}


def _pick(data: Dict[str, Any], cls) -> Dict[str, Any]:
    """Keep only the keys ``cls`` accepts"""
    fields = cls.__dataclass_fields__
    return {k: v for k, v in data.items() if k in fields}


def resolve_env_vars(value: Any) -> Any:
    """Replace "${VAR}" / "${VAR:default}" strings with environment values"""
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]  # Remove ${ and }
        default_value = ""
        if ":" in env_var:
            env_var, default_value = env_var.split(":", 1)
        return os.getenv(env_var, default_value)
    elif isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [resolve_env_vars(item) for item in value]
    return value


class ConfigLoader:
    """Load datastore declarations and DDL/DML payloads from YAML or dictionaries"""

    @staticmethod
    def _load_yaml(file_path: str) -> Any:
        with open(file_path, 'r') as file:
            data = yaml.safe_load(file)

        if data is None:
            raise ValueError(f"Empty or invalid YAML file: {file_path}")
        return data

    # Datastores

    @staticmethod
    def load_datastores_from_yaml(file_path: str) -> DataStorage:
        """Load DataStorage configuration from YAML file"""
        return ConfigLoader.load_datastores_from_dict(ConfigLoader._load_yaml(file_path))

    @staticmethod
    def load_datastores_from_dict(config_dict: Dict[str, Any]) -> DataStorage:
        """Load DataStorage configuration from dictionary"""
        datastores = {}

        for store_name, store_config in (config_dict.get('datastores') or {}).items():
            # Support environment variable substitution for sensitive data
            resolved_config = resolve_env_vars(store_config)

            datastores[store_name] = DataStore(
                name=store_name,
                type=resolve_database_type(resolved_config.get('type', '')),
                connection=ConfigLoader.connection_config_from_dict(resolved_config.get('connection', {})),
                description=resolved_config.get('description'),
                tags=resolved_config.get('tags', [])
            )

        return DataStorage(datastores=datastores)

    @staticmethod
    def connection_config_from_dict(data: Dict[str, Any]) -> ConnectionConfig:
        data = _normalize_keys(data)
        # Aliases used by the desktop client
        if 'user' not in data and 'username' in data:
            data['user'] = data.pop('username')
        if 'path' not in data and 'file_path' in data:
            data['path'] = data.pop('file_path')
        if data.get('port') not in (None, ''):
            data['port'] = int(data['port'])
        else:
            data.pop('port', None)
        return ConnectionConfig(**_pick(data, ConnectionConfig))

    @staticmethod
    def request_config_from_dict(
        data: Dict[str, Any],
        default_db_type: DatabaseType = DatabaseType.POSTGRESQL
    ) -> Tuple[DatabaseType, ConnectionConfig]:
        """Split an API ``config`` object into its dialect and connection settings"""
        normalized = _normalize_keys(data)
        db_type = resolve_database_type(normalized.get('db_type') or default_db_type)
        return db_type, ConfigLoader.connection_config_from_dict(data)

    @staticmethod
    def validate_datastores_config(data_storage: DataStorage) -> List[str]:
        """Validate DataStorage configuration and return list of issues"""
        issues = []

        if not data_storage.datastores:
            issues.append("At least one datastore must be defined")

        for name, datastore in data_storage.datastores.items():
            conn = datastore.connection
            if datastore.type == DatabaseType.SQLITE:
                if not (conn.path or conn.database):
                    issues.append(f"Datastore '{name}' must specify path")
                continue
            if not conn.host:
                issues.append(f"Datastore '{name}' must specify host")
            if not conn.database and datastore.type != DatabaseType.MSSQL:
                issues.append(f"Datastore '{name}' must specify database")
            if not conn.user and datastore.type != DatabaseType.MSSQL:
                issues.append(f"Datastore '{name}' must specify user")

        return issues

    # DDL payloads

    @staticmethod
    def column_from_dict(data: Dict[str, Any]) -> ColumnDefinition:
        data = _normalize_keys(data)
        return ColumnDefinition(**_pick(data, ColumnDefinition))

    @staticmethod
    def constraint_from_dict(data: Dict[str, Any]):
        """Build a constraint from {'type': 'foreign_key' | 'unique' | 'check' | 'primary_key', ...}"""
        data = _normalize_keys(data)
        constraint_type = str(data.pop('type', data.pop('constraint_type', ''))).lower().replace(' ', '_')
        if constraint_type in ('foreign_key', 'foreignkey', 'fk'):
            return ForeignKeyDefinition(**_pick(data, ForeignKeyDefinition))
        if constraint_type == 'unique':
            return UniqueConstraint(**_pick(data, UniqueConstraint))
        if constraint_type == 'check':
            return CheckConstraint(**_pick(data, CheckConstraint))
        if constraint_type in ('primary_key', 'primarykey', 'pk'):
            return PrimaryKeyConstraint(**_pick(data, PrimaryKeyConstraint))
        raise ValueError(f"Unknown constraint type: {constraint_type or '<missing>'}")

    @staticmethod
    def table_definition_from_dict(data: Dict[str, Any]) -> TableDefinition:
        data = _normalize_keys(data)
        return TableDefinition(
            name=data.get('name'),
            schema=data.get('schema'),
            columns=[ConfigLoader.column_from_dict(c) for c in data.get('columns') or []],
            primary_key=data.get('primary_key'),
            foreign_keys=[
                ForeignKeyDefinition(**_pick(_normalize_keys(fk), ForeignKeyDefinition))
                for fk in data.get('foreign_keys') or []
            ],
            unique_constraints=[
                uc if isinstance(uc, list) else UniqueConstraint(**_pick(_normalize_keys(uc), UniqueConstraint))
                for uc in data.get('unique_constraints') or []
            ],
            check_constraints=[
                CheckConstraint(**_pick(_normalize_keys(cc), CheckConstraint))
                for cc in data.get('check_constraints') or []
            ]
        )

    @staticmethod
    def alter_operation_from_dict(data: Dict[str, Any]) -> AlterOperation:
        data = _normalize_keys(data)
        operation_type = to_snake_case(str(data.get('type', '')))
        return AlterOperation(
            type=operation_type,
            column=ConfigLoader.column_from_dict(data['column']) if data.get('column') else None,
            column_name=data.get('column_name') or data.get('old_name'),
            new_name=data.get('new_name'),
            constraint=ConfigLoader.constraint_from_dict(data['constraint']) if data.get('constraint') else None,
            constraint_name=data.get('constraint_name'),
            constraint_type=data.get('constraint_type')
        )

    @staticmethod
    def alter_batch_from_dict(data: Dict[str, Any]) -> AlterTableBatch:
        data = _normalize_keys(data)
        return AlterTableBatch(
            table=data.get('table'),
            schema=data.get('schema'),
            operations=[ConfigLoader.alter_operation_from_dict(op) for op in data.get('operations') or []]
        )

    @staticmethod
    def load_table_definition_from_yaml(file_path: str) -> TableDefinition:
        return ConfigLoader.table_definition_from_dict(ConfigLoader._load_yaml(file_path))

    @staticmethod
    def load_alter_batch_from_yaml(file_path: str) -> AlterTableBatch:
        return ConfigLoader.alter_batch_from_dict(ConfigLoader._load_yaml(file_path))

    # DML payloads

    @staticmethod
    def edit_operation_from_dict(data: Dict[str, Any]) -> EditOperation:
        # Column names inside values/where must stay untouched
        normalized = _normalize_keys(data)
        return EditOperation(
            type=normalized.get('type'),
            id=str(normalized.get('id')) if normalized.get('id') is not None else None,
            values=dict(normalized.get('values') or {}),
            where=dict(normalized.get('where') or normalized.get('primary_key') or {}),
            table=normalized.get('table'),
            schema=normalized.get('schema')
        )

    @staticmethod
    def edit_context_from_dict(data: Dict[str, Any]) -> EditContext:
        data = _normalize_keys(data)
        primary_key = data.get('primary_key_columns') or data.get('primary_keys') or []
        if isinstance(primary_key, str):
            primary_key = [primary_key]
        columns = data.get('column_types') or {}
        # The grid sends columns as [{name, dataType}, ...]
        if isinstance(data.get('columns'), list):
            columns = {
                c.get('name'): c.get('dataType') or c.get('data_type')
                for c in data['columns'] if isinstance(c, dict)
            }
        return EditContext(
            table=data.get('table'),
            schema=data.get('schema'),
            primary_key_columns=list(primary_key),
            column_types=dict(columns)
        )

    @staticmethod
    def edit_batch_from_dict(data: Dict[str, Any]) -> EditBatch:
        data = _normalize_keys(data)
        return EditBatch(
            operations=[ConfigLoader.edit_operation_from_dict(op) for op in data.get('operations') or []],
            context=ConfigLoader.edit_context_from_dict(data.get('context') or {})
        )

    @staticmethod
    def load_edit_batch_from_yaml(file_path: str) -> EditBatch:
        return ConfigLoader.edit_batch_from_dict(ConfigLoader._load_yaml(file_path))

