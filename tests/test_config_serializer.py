"""Test cases for ConfigSerializer - serialization of definitions and datastore configs."""

import pytest

from sqlpeek.config.config_loader import ConfigLoader
from sqlpeek.config.config_serializer import ConfigSerializer
from sqlpeek.core.models import ConnectionConfig, DataStorage, DataStore


class TestConfigSerializer:
    """Test suite for ConfigSerializer."""

    @pytest.fixture
    def sample_connection_config(self):
        """Create a sample ConnectionConfig."""
        return ConnectionConfig(
            host='localhost',
            port=5432,
            user='testuser',
            password='testpass',
            database='testdb',
            max_connections=5,
            min_connections=1
        )

    @pytest.fixture
    def sample_data_storage(self, sample_connection_config):
        """Create a sample DataStorage."""
        datastore = DataStore(
            name='test_postgres',
            type='postgresql',
            connection=sample_connection_config,
            description='Test PostgreSQL datastore',
            tags=['test', 'postgres']
        )
        return DataStorage(datastores={'test_postgres': datastore})

    def test_table_definition_to_dict(self, orders_table):
        result = ConfigSerializer.table_definition_to_dict(orders_table)

        assert result['name'] == 'orders'
        assert result['schema'] == 'shop'
        assert result['primaryKey'] == ['order_id']
        assert result['columns'][0] == {
            'name': 'order_id', 'dataType': 'bigint', 'nullable': False, 'isPrimaryKey': False
        }
        assert result['columns'][2]['isUnique'] is True
        assert result['columns'][2]['length'] == 40
        assert result['columns'][3]['precision'] == 12
        assert result['columns'][4]['defaultExpression'] == 'CURRENT_TIMESTAMP'
        assert result['foreignKeys'] == [{
            'columns': ['user_id'],
            'referencedTable': 'users',
            'referencedColumns': ['id'],
            'name': 'fk_orders_user',
            'onDelete': 'cascade',
        }]

    def test_table_definition_round_trip(self, orders_table, users_table):
        for definition in (orders_table, users_table):
            data = ConfigSerializer.table_definition_to_dict(definition)
            assert ConfigLoader.table_definition_from_dict(data) == definition

    def test_datastores_to_dict(self, sample_data_storage):
        result = ConfigSerializer.datastores_to_dict(sample_data_storage)

        assert result == {
            'datastores': {
                'test_postgres': {
                    'type': 'postgresql',
                    'connection': {
                        'host': 'localhost',
                        'port': 5432,
                        'user': 'testuser',
                        'password': 'testpass',
                        'database': 'testdb',
                        'max_connections': 5,
                    },
                    'description': 'Test PostgreSQL datastore',
                    'tags': ['test', 'postgres'],
                }
            }
        }

    def test_datastores_round_trip(self, sample_data_storage):
        data = ConfigSerializer.datastores_to_dict(sample_data_storage)
        loaded = ConfigLoader.load_datastores_from_dict(data)

        assert loaded.get_datastore('test_postgres') == sample_data_storage.get_datastore('test_postgres')
