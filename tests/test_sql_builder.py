"""
Test cases for data-edit SQL generation (INSERT/UPDATE/DELETE) and its preview.
"""
import re
import uuid
from datetime import datetime
from decimal import Decimal

import pytest

from sqlpeek.core.edit_models import EditContext, EditOperation
from sqlpeek.core.errors import MissingPrimaryKeyError, ValidationError
from sqlpeek.datastore.param_translation import count_placeholders
from sqlpeek.dialect.quoting import format_literal
from sqlpeek.utils.sql_builder import SqlBuilder, build_batch_queries, build_preview_sql


class TestBuildBatchQueries:

    def test_delete_postgres(self, orders_context):
        operation = EditOperation(type='delete', id='op-1', where={'order_id': 42})
        queries = build_batch_queries([operation], orders_context, 'postgresql')

        assert len(queries) == 1
        assert queries[0].sql == 'DELETE FROM "orders" WHERE "order_id" = $1'
        assert queries[0].params == [42]

    def test_insert_mysql(self, orders_context):
        operation = EditOperation(type='insert', id='op-1', values={'customer': 'ACME', 'total': 9.5})
        query = build_batch_queries([operation], orders_context, 'mysql')[0]

        assert query.sql == 'INSERT INTO `orders` (`customer`, `total`) VALUES (?, ?)'
        assert query.params == ['ACME', 9.5]

    def test_update_mssql(self):
        context = EditContext(table='orders', schema='sales', primary_key_columns=['order_id'])
        operation = EditOperation(type='update', id='op-1', values={'status': 'shipped'}, where={'order_id': 7})
        query = build_batch_queries([operation], context, 'mssql')[0]

        assert query.sql == 'UPDATE [sales].[orders] SET [status] = @p1 WHERE [order_id] = @p2'
        assert query.params == ['shipped', 7]

    def test_composite_key_follows_context_order(self):
        context = EditContext(table='lines', primary_key_columns=['order_id', 'line_no'])
        operation = EditOperation(type='delete', id='op-1', where={'line_no': 2, 'order_id': 1})
        query = build_batch_queries([operation], context, 'postgresql')[0]

        assert query.sql == 'DELETE FROM "lines" WHERE "order_id" = $1 AND "line_no" = $2'
        assert query.params == [1, 2]

    def test_each_statement_restarts_parameter_index(self, orders_context):
        operations = [
            EditOperation(type='update', id='a', values={'status': 'x'}, where={'order_id': 1}),
            EditOperation(type='update', id='b', values={'status': 'y'}, where={'order_id': 2}),
        ]
        queries = build_batch_queries(operations, orders_context, 'postgresql')

        for query in queries:
            assert query.sql == 'UPDATE "orders" SET "status" = $1 WHERE "order_id" = $2'
        assert [q.params for q in queries] == [['x', 1], ['y', 2]]

    def test_batch_order_preserved(self, edit_batch_operations, orders_context):
        queries = build_batch_queries(edit_batch_operations, orders_context, 'sqlite')

        assert [q.sql.split()[0] for q in queries] == ['INSERT', 'UPDATE', 'DELETE']

    def test_values_bound_per_dialect(self, orders_context):
        operation = EditOperation(
            type='insert', id='op-1', values={'paid': True, 'meta': {'source': 'web'}}
        )
        pg = build_batch_queries([operation], orders_context, 'postgresql')[0]
        mysql = build_batch_queries([operation], orders_context, 'mysql')[0]

        assert pg.params == [True, '{"source": "web"}']
        assert mysql.params == [1, '{"source": "web"}']

    def test_empty_insert_uses_defaults(self, orders_context):
        operation = EditOperation(type='insert', id='op-1')

        assert build_batch_queries([operation], orders_context, 'postgresql')[0].sql == 'INSERT INTO "orders" DEFAULT VALUES'
        assert build_batch_queries([operation], orders_context, 'mysql')[0].sql == 'INSERT INTO `orders` () VALUES ()'

    def test_missing_primary_key(self):
        context = EditContext(table='logs')
        operation = EditOperation(type='delete', id='op-1', where={'id': 1})

        with pytest.raises(MissingPrimaryKeyError, match="no primary key"):
            build_batch_queries([operation], context, 'postgresql')

    def test_missing_primary_key_value_fails_whole_batch(self, orders_context):
        operations = [
            EditOperation(type='insert', id='ok', values={'order_id': 1}),
            EditOperation(type='update', id='bad', values={'status': 'x'}, where={}),
        ]
        with pytest.raises(MissingPrimaryKeyError, match="'bad' is missing primary key value"):
            build_batch_queries(operations, orders_context, 'postgresql')

    def test_null_primary_key_value(self, orders_context):
        operation = EditOperation(type='delete', id='op-1', where={'order_id': None})
        with pytest.raises(MissingPrimaryKeyError, match="NULL primary key"):
            build_batch_queries([operation], orders_context, 'mysql')

    def test_invalid_batch(self, orders_context):
        operations = [
            EditOperation(type='delete', id='same', where={'order_id': 1}),
            EditOperation(type='delete', id='same', where={'order_id': 2}),
        ]
        with pytest.raises(ValidationError, match="Duplicate operation id: same"):
            build_batch_queries(operations, orders_context, 'postgresql')


class TestBuildPreviewSql:

    def test_literal_values(self, orders_context):
        operation = EditOperation(
            type='update', id='op-9', values={'note': "it's late", 'discount': None}, where={'order_id': 7}
        )
        preview = build_preview_sql(operation, orders_context, 'postgresql')

        assert preview.operation_id == 'op-9'
        assert preview.sql == 'UPDATE "orders" SET "note" = \'it\'\'s late\', "discount" = NULL WHERE "order_id" = 7'
        assert preview.to_dict() == {'operationId': 'op-9', 'sql': preview.sql}

    def test_mssql_unicode_literals(self, orders_context):
        operation = EditOperation(type='insert', id='op-1', values={'name': 'Zoë', 'active': False})
        preview = build_preview_sql(operation, orders_context, 'mssql')

        assert preview.sql == "INSERT INTO [orders] ([name], [active]) VALUES (N'Zoë', 0)"

    def test_deterministic(self, edit_batch_operations, orders_context):
        first = [build_preview_sql(op, orders_context, 'mysql').sql for op in edit_batch_operations]
        second = [build_preview_sql(op, orders_context, 'mysql').sql for op in edit_batch_operations]
        assert first == second


class TestColumnTypeCoercion:
    """Grid strings are converted to the Python type of their column"""

    @pytest.fixture
    def typed_context(self):
        return EditContext(
            table='orders',
            primary_key_columns=['order_id'],
            column_types={
                'order_id': 'integer',
                'created_at': 'timestamp',
                'shipped_on': 'date',
                'total': 'numeric(10,2)',
                'paid': 'boolean',
                'token': 'uuid',
                'note': 'text',
            }
        )

    def test_params_use_column_types(self, typed_context):
        operation = EditOperation(
            type='update', id='op-1',
            values={'created_at': '2024-03-01T10:30:00', 'total': '19.90', 'paid': 'yes', 'note': '42'},
            where={'order_id': '42'}
        )
        query = build_batch_queries([operation], typed_context, 'postgresql')[0]

        assert query.params == [datetime(2024, 3, 1, 10, 30), Decimal('19.90'), True, '42', 42]

    def test_native_type_names_resolve(self):
        context = EditContext(table='orders', primary_key_columns=['order_id'], column_types={'order_id': 'int4'})
        operation = EditOperation(type='delete', id='op-1', where={'order_id': '7'})

        assert build_batch_queries([operation], context, 'postgresql')[0].params == [7]

    def test_utc_suffix_on_timestamp_becomes_naive_utc(self, typed_context):
        operation = EditOperation(
            type='update', id='op-1', values={'created_at': '2024-03-01T10:30:00+02:00'}, where={'order_id': 1}
        )
        query = build_batch_queries([operation], typed_context, 'postgresql')[0]

        assert query.params[0] == datetime(2024, 3, 1, 8, 30)

    def test_sqlite_binds_text_for_decimals_and_dates(self, typed_context):
        token = uuid.uuid4()
        operation = EditOperation(
            type='insert', id='op-1',
            values={'created_at': '2024-03-01T10:30:00Z', 'shipped_on': '2024-03-02', 'total': '5.5', 'token': str(token)}
        )
        query = build_batch_queries([operation], typed_context, 'sqlite')[0]

        assert query.params == ['2024-03-01 10:30:00', '2024-03-02', '5.5', str(token)]

    def test_preview_renders_typed_literals(self, typed_context):
        operation = EditOperation(
            type='update', id='op-1', values={'paid': 'false', 'created_at': '2024-03-01 10:30'},
            where={'order_id': '42'}
        )
        preview = build_preview_sql(operation, typed_context, 'mysql')

        assert preview.sql == (
            "UPDATE `orders` SET `paid` = 0, `created_at` = '2024-03-01 10:30:00' WHERE `order_id` = 42"
        )

    def test_invalid_value_rejected(self, typed_context):
        operation = EditOperation(type='delete', id='op-1', where={'order_id': 'forty-two'})

        with pytest.raises(ValidationError, match="Value 'forty-two' for column 'order_id' is not a valid integer"):
            build_batch_queries([operation], typed_context, 'postgresql')
        with pytest.raises(ValidationError):
            build_preview_sql(operation, typed_context, 'postgresql')

    def test_untyped_columns_pass_through(self, orders_context):
        operation = EditOperation(type='delete', id='op-1', where={'order_id': '42'})

        assert build_batch_queries([operation], orders_context, 'postgresql')[0].params == ['42']


class TestParameterAlignment:
    """Placeholders and params line up with the literal preview"""

    OPERATIONS = [
        EditOperation(type='insert', id='i', values={'order_id': 5, 'status': 'new', 'paid': True, 'note': None}),
        EditOperation(type='update', id='u', values={'status': 'done', 'total': 12.5}, where={'order_id': 5}),
        EditOperation(type='delete', id='d', where={'order_id': 5}),
    ]

    @pytest.mark.parametrize('db_type,style', [
        ('postgresql', 'numeric'), ('mysql', 'qmark'), ('sqlite', 'qmark'), ('mssql', 'named')
    ])
    def test_placeholder_count_matches_params(self, orders_context, db_type, style):
        for query in build_batch_queries(self.OPERATIONS, orders_context, db_type):
            assert count_placeholders(query.sql, style) == len(query.params)

    def test_substitution_reconstructs_preview_postgres(self, orders_context):
        queries = build_batch_queries(self.OPERATIONS, orders_context, 'postgresql')

        for operation, query in zip(self.OPERATIONS, queries):
            sql = re.sub(
                r'\$(\d+)',
                lambda m: format_literal(query.params[int(m.group(1)) - 1], 'postgresql'),
                query.sql
            )
            assert sql == build_preview_sql(operation, orders_context, 'postgresql').sql

    def test_substitution_reconstructs_preview_mysql(self, orders_context):
        queries = build_batch_queries(self.OPERATIONS, orders_context, 'mysql')

        for operation, query in zip(self.OPERATIONS, queries):
            values = iter(query.params)
            sql = re.sub(r'\?', lambda m: format_literal(next(values), 'mysql'), query.sql)
            assert sql == build_preview_sql(operation, orders_context, 'mysql').sql


class TestSqlBuilder:

    def test_operation_table_overrides_context(self, orders_context):
        operation = EditOperation(type='delete', id='x', where={'order_id': 1}, schema='archive')
        sql, params = SqlBuilder.build(operation, orders_context, 'postgresql')

        assert sql == 'DELETE FROM "archive"."orders" WHERE "order_id" = $1'
        assert params == [1]

    def test_literal_mode_has_no_params(self, orders_context):
        operation = EditOperation(type='delete', id='x', where={'order_id': 1})
        sql, params = SqlBuilder.build(operation, orders_context, 'sqlite', literal=True)

        assert sql == 'DELETE FROM "orders" WHERE "order_id" = 1'
        assert params == []
