"""
Test cases for the SQLite datastore against a real database file.
"""
import sqlite3

import pytest

from sqlpeek.core.edit_models import EditContext, EditOperation
from sqlpeek.core.errors import MissingQueryError, UnsupportedOperationError
from sqlpeek.core.models import ConnectionConfig
from sqlpeek.core.schema_models import ColumnDefinition, ForeignKeyDefinition, TableDefinition
from sqlpeek.datastore import SQLiteDatastore, create_datastore
from sqlpeek.ddl.ddl_builder import build_create_table
from sqlpeek.tracking.query_tracker import QueryTracker
from sqlpeek.utils.sql_builder import build_batch_queries


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / 'sqlpeek.db')


@pytest.fixture
def notes_table() -> TableDefinition:
    return TableDefinition(
        name='notes',
        columns=[
            ColumnDefinition(name='note_id', data_type='integer', nullable=False),
            ColumnDefinition(name='user_id', data_type='integer', nullable=False),
            ColumnDefinition(name='body', data_type='varchar', length=200, default_value='empty'),
        ],
        primary_key=['note_id'],
        foreign_keys=[
            ForeignKeyDefinition(
                columns=['user_id'], referenced_table='users', referenced_columns=['id'], on_delete='cascade'
            )
        ]
    )


class TestSQLiteDatastore:

    def test_factory_creates_sqlite_datastore(self, db_path):
        datastore = create_datastore('local', 'sqlite', {'path': db_path})

        assert isinstance(datastore, SQLiteDatastore)
        assert not datastore.is_connected

    @pytest.mark.asyncio
    async def test_query_requires_connection(self, db_path):
        datastore = SQLiteDatastore('local', ConnectionConfig(path=db_path))

        with pytest.raises(RuntimeError, match="not connected"):
            await datastore.query('SELECT 1')

    @pytest.mark.asyncio
    async def test_create_and_read_back_table(self, db_path, users_table):
        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            await datastore.query(build_create_table(users_table, 'sqlite').sql)
            definition = await datastore.get_table_definition(None, 'users')

        assert definition.name == 'users'
        assert definition.schema is None
        id_column, email_column = definition.columns
        assert id_column.name == 'id'
        assert id_column.data_type == 'integer'
        assert id_column.is_primary_key and id_column.auto_increment
        assert email_column.data_type == 'text'
        assert email_column.nullable is False

    @pytest.mark.asyncio
    async def test_foreign_keys_and_defaults_read_back(self, db_path, users_table, notes_table):
        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            await datastore.query(build_create_table(users_table, 'sqlite').sql)
            await datastore.query(build_create_table(notes_table, 'sqlite').sql)
            definition = await datastore.get_table_definition('main', 'notes')

        body = definition.columns[2]
        assert body.data_type == 'varchar'
        assert body.length == 200
        assert body.default_expression == "'empty'"
        assert definition.columns[0].is_primary_key
        fk = definition.foreign_keys[0]
        assert fk.columns == ['user_id']
        assert fk.referenced_table == 'users'
        assert fk.referenced_columns == ['id']
        assert fk.on_delete == 'CASCADE'

    @pytest.mark.asyncio
    async def test_missing_table(self, db_path):
        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            with pytest.raises(ValueError, match="does not exist"):
                await datastore.get_table_definition(None, 'nowhere')

    @pytest.mark.asyncio
    async def test_edit_batch_in_transaction(self, db_path, users_table):
        context = EditContext(table='users', primary_key_columns=['id'])
        operations = [
            EditOperation(type='insert', id='op-1', values={'id': 1, 'email': 'a@example.com'}),
            EditOperation(type='insert', id='op-2', values={'id': 2, 'email': 'b@example.com'}),
            EditOperation(type='update', id='op-3', values={'email': 'c@example.com'}, where={'id': 1}),
            EditOperation(type='delete', id='op-4', where={'id': 2}),
        ]

        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            await datastore.query(build_create_table(users_table, 'sqlite').sql)
            result = await datastore.execute_transaction(build_batch_queries(operations, context, 'sqlite'))
            rows = (await datastore.query('SELECT id, email FROM users ORDER BY id')).rows

        assert result.rows_affected == 4
        assert [r['rowsAffected'] for r in result.results] == [1, 1, 1, 1]
        assert rows == [{'id': 1, 'email': 'c@example.com'}]

    @pytest.mark.asyncio
    async def test_failed_transaction_rolls_back(self, db_path, users_table):
        context = EditContext(table='users', primary_key_columns=['id'])
        operations = [
            EditOperation(type='insert', id='op-1', values={'id': 1, 'email': 'a@example.com'}),
            EditOperation(type='insert', id='op-2', values={'id': 1, 'email': 'duplicate@example.com'}),
        ]

        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            await datastore.query(build_create_table(users_table, 'sqlite').sql)
            with pytest.raises(sqlite3.IntegrityError):
                await datastore.execute_transaction(build_batch_queries(operations, context, 'sqlite'))
            count = await datastore.query('SELECT COUNT(*) AS n FROM users')

        assert count.rows == [{'n': 0}]

    @pytest.mark.asyncio
    async def test_query_multiple(self, db_path):
        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            result = await datastore.query_multiple("SELECT 1 AS a; SELECT 'x;y' AS b")

        assert [r.rows for r in result.results] == [[{'a': 1}], [{'b': 'x;y'}]]
        assert result.results[1].columns == ['b']
        assert result.total_duration_ms >= 0

    @pytest.mark.asyncio
    async def test_tracked_query_unregisters(self, db_path):
        tracker = QueryTracker()

        async with SQLiteDatastore('local', ConnectionConfig(path=db_path), tracker) as datastore:
            result = await datastore.query('SELECT 1 AS one', execution_id='exec-1')

        assert result.rows == [{'one': 1}]
        assert not tracker.is_active('exec-1')


class TestSQLiteCatalog:

    @pytest.mark.asyncio
    async def test_schemas_list_tables_views_and_keys(self, db_path, users_table, notes_table):
        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            await datastore.query(build_create_table(users_table, 'sqlite').sql)
            await datastore.query(build_create_table(notes_table, 'sqlite').sql)
            await datastore.query('CREATE VIEW note_bodies AS SELECT body FROM notes')
            schemas = await datastore.get_schemas()

        assert [s.name for s in schemas] == ['main']
        tables = {t.name: t for t in schemas[0].tables}
        # AUTOINCREMENT's sqlite_sequence bookkeeping table is hidden
        assert set(tables) == {'users', 'notes', 'note_bodies'}
        assert tables['users'].type == 'table'
        assert tables['note_bodies'].type == 'view'

        users_id = tables['users'].columns[0]
        assert users_id.name == 'id'
        assert users_id.is_primary_key
        assert not users_id.nullable

        notes = {c.name: c for c in tables['notes'].columns}
        assert notes['note_id'].is_primary_key
        assert notes['user_id'].foreign_key == {'referencedTable': 'users', 'referencedColumn': 'id'}
        assert notes['body'].foreign_key is None
        assert notes['body'].nullable

    @pytest.mark.asyncio
    async def test_explain_returns_query_plan_rows(self, db_path, users_table):
        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            await datastore.query(build_create_table(users_table, 'sqlite').sql)
            result = await datastore.explain('SELECT * FROM users WHERE id = 1;')

        assert result.format == 'rows'
        assert result.plan
        assert 'detail' in result.plan[0]
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_explain_analyze_unsupported(self, db_path):
        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            with pytest.raises(UnsupportedOperationError):
                await datastore.explain('SELECT 1', analyze=True)
            with pytest.raises(MissingQueryError):
                await datastore.explain(' ; ')

    @pytest.mark.asyncio
    async def test_no_sequences_or_types(self, db_path):
        async with SQLiteDatastore('local', ConnectionConfig(path=db_path)) as datastore:
            assert await datastore.get_sequences() == []
            assert await datastore.get_types() == []
