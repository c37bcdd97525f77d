"""Pytest configuration and fixtures for sqlpeek tests."""

import sys
from pathlib import Path
import logging
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlpeek.api.state import app_state
from sqlpeek.core.edit_models import EditContext, EditOperation
from sqlpeek.core.schema_models import ColumnDefinition, ForeignKeyDefinition, TableDefinition

# Configure logging
logging.basicConfig(level=logging.INFO)


@pytest.fixture
def users_table() -> TableDefinition:
    """Two-column table with an auto-increment primary key."""
    return TableDefinition(
        name='users',
        columns=[
            ColumnDefinition(name='id', data_type='integer', is_primary_key=True, auto_increment=True),
            ColumnDefinition(name='email', data_type='text', nullable=False),
        ]
    )


@pytest.fixture
def orders_table() -> TableDefinition:
    """Table with defaults, a unique column and a foreign key to users."""
    return TableDefinition(
        name='orders',
        schema='shop',
        columns=[
            ColumnDefinition(name='order_id', data_type='bigint', nullable=False),
            ColumnDefinition(name='user_id', data_type='integer', nullable=False),
            ColumnDefinition(name='reference', data_type='varchar', length=40, is_unique=True),
            ColumnDefinition(name='total', data_type='decimal', precision=12, scale=2, default_value='0'),
            ColumnDefinition(name='created_at', data_type='timestamp', default_expression='CURRENT_TIMESTAMP'),
        ],
        primary_key=['order_id'],
        foreign_keys=[
            ForeignKeyDefinition(
                name='fk_orders_user',
                columns=['user_id'],
                referenced_table='users',
                referenced_columns=['id'],
                on_delete='cascade'
            )
        ]
    )


@pytest.fixture
def orders_context() -> EditContext:
    return EditContext(table='orders', primary_key_columns=['order_id'])


@pytest.fixture
def edit_batch_operations():
    """Insert, update and delete in that order."""
    return [
        EditOperation(type='insert', id='op-1', values={'order_id': 10, 'status': 'new'}),
        EditOperation(type='update', id='op-2', values={'status': 'shipped'}, where={'order_id': 7}),
        EditOperation(type='delete', id='op-3', where={'order_id': 3}),
    ]


@pytest.fixture(autouse=True)
def reset_app_state():
    """Isolate the API's application state between tests."""
    app_state.clear()
    yield
    app_state.clear()
