from typing import Any, Dict

from ..core.models import ConnectionConfig, DataStorage, DataStore
from ..core.schema_models import ColumnDefinition, ForeignKeyDefinition, TableDefinition


class ConfigSerializer:
    """Utility class for serializing definitions back to the client's JSON/YAML shape"""

    @staticmethod
    def table_definition_to_dict(definition: TableDefinition) -> Dict[str, Any]:
        """Convert TableDefinition to the camelCase dictionary ConfigLoader reads back"""
        result = {
            'name': definition.name,
            'columns': [ConfigSerializer._column_to_dict(c) for c in definition.columns],
        }
        if definition.schema:
            result['schema'] = definition.schema
        if definition.primary_key:
            result['primaryKey'] = list(definition.primary_key)
        if definition.foreign_keys:
            result['foreignKeys'] = [ConfigSerializer._foreign_key_to_dict(fk) for fk in definition.foreign_keys]
        if definition.unique_constraints:
            result['uniqueConstraints'] = [
                {'columns': list(uc.columns), **({'name': uc.name} if uc.name else {})}
                for uc in definition.unique_constraints
            ]
        if definition.check_constraints:
            result['checkConstraints'] = [
                {'expression': cc.expression, **({'name': cc.name} if cc.name else {})}
                for cc in definition.check_constraints
            ]
        return result

    @staticmethod
    def _column_to_dict(column: ColumnDefinition) -> Dict[str, Any]:
        """Convert ColumnDefinition to dictionary"""
        result = {
            'name': column.name,
            'dataType': column.data_type,
            'nullable': column.nullable,
            'isPrimaryKey': column.is_primary_key,
        }

        # Only include optional values that are set
        if column.is_unique:
            result['isUnique'] = True
        if column.auto_increment:
            result['autoIncrement'] = True
        if column.default_value is not None:
            result['defaultValue'] = column.default_value
        if column.default_expression:
            result['defaultExpression'] = column.default_expression
        if column.length is not None:
            result['length'] = column.length
        if column.precision is not None:
            result['precision'] = column.precision
        if column.scale is not None:
            result['scale'] = column.scale

        return result

    @staticmethod
    def _foreign_key_to_dict(fk: ForeignKeyDefinition) -> Dict[str, Any]:
        result = {
            'columns': list(fk.columns),
            'referencedTable': fk.referenced_table,
            'referencedColumns': list(fk.referenced_columns),
        }
        if fk.name:
            result['name'] = fk.name
        if fk.referenced_schema:
            result['referencedSchema'] = fk.referenced_schema
        if fk.on_delete:
            result['onDelete'] = fk.on_delete
        if fk.on_update:
            result['onUpdate'] = fk.on_update
        return result

    @staticmethod
    def datastores_to_dict(datastores: DataStorage) -> Dict[str, Any]:
        """Convert DataStorage to dictionary for YAML serialization"""
        return {
            'datastores': {
                name: ConfigSerializer._datastore_to_dict(ds)
                for name, ds in datastores.datastores.items()
            }
        }

    @staticmethod
    def _datastore_to_dict(datastore: DataStore) -> Dict[str, Any]:
        result = {
            'type': datastore.type.value,
            'connection': ConfigSerializer._connection_to_dict(datastore.connection),
        }
        if datastore.description:
            result['description'] = datastore.description
        if datastore.tags:
            result['tags'] = datastore.tags
        return result

    @staticmethod
    def _connection_to_dict(connection: ConnectionConfig) -> Dict[str, Any]:
        """Convert ConnectionConfig to dictionary"""
        result = {}

        # Only include non-None values
        for key in ('host', 'port', 'user', 'password', 'database', 'schema', 'path', 'driver'):
            value = getattr(connection, key)
            if value:
                result[key] = value
        if connection.trust_server_certificate:
            result['trust_server_certificate'] = True
        if connection.max_connections != 10:
            result['max_connections'] = connection.max_connections
        if connection.min_connections != 1:
            result['min_connections'] = connection.min_connections

        return result
