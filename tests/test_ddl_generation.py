"""
Test cases for DDL generation across dialects.

Covers CREATE TABLE, ALTER TABLE and DROP TABLE for PostgreSQL, MySQL,
SQL Server and SQLite, and the preview functions that mirror them.
"""
import pytest

from sqlpeek.core.errors import UnsupportedOperationError, ValidationError
from sqlpeek.core.schema_models import (
    AlterOperation, AlterTableBatch, CheckConstraint, ColumnDefinition, ForeignKeyDefinition,
    TableDefinition, UniqueConstraint
)
from sqlpeek.ddl.ddl_builder import (
    build_alter_preview_ddl, build_alter_table, build_column_definition, build_create_table,
    build_drop_table, build_preview_ddl, render_constraint
)


class TestCreateTablePostgres:
    """Test CREATE TABLE generation for PostgreSQL"""

    def test_users_table(self, users_table):
        sql = build_create_table(users_table, 'postgresql').sql

        assert sql == (
            'CREATE TABLE "users" (\n'
            '  "id" INTEGER GENERATED BY DEFAULT AS IDENTITY NOT NULL,\n'
            '  "email" TEXT NOT NULL,\n'
            '  PRIMARY KEY ("id")\n'
            ');'
        )

    def test_column_order_and_constraints(self, orders_table):
        sql = build_create_table(orders_table, 'postgresql').sql
        lines = [line.strip().rstrip(',') for line in sql.split('\n')[1:-1]]

        assert sql.startswith('CREATE TABLE "shop"."orders" (')
        assert lines == [
            '"order_id" BIGINT NOT NULL',
            '"user_id" INTEGER NOT NULL',
            '"reference" VARCHAR(40) UNIQUE',
            '"total" NUMERIC(12,2) DEFAULT 0',
            '"created_at" TIMESTAMP DEFAULT CURRENT_TIMESTAMP',
            'PRIMARY KEY ("order_id")',
            'CONSTRAINT "fk_orders_user" FOREIGN KEY ("user_id") REFERENCES "shop"."users" ("id") ON DELETE CASCADE',
        ]

    def test_composite_primary_key_columns_not_null(self):
        definition = TableDefinition(
            name='memberships',
            columns=[
                ColumnDefinition(name='user_id', data_type='integer'),
                ColumnDefinition(name='group_id', data_type='integer'),
            ],
            primary_key=['user_id', 'group_id']
        )
        sql = build_create_table(definition, 'postgresql').sql

        assert '"user_id" INTEGER NOT NULL' in sql
        assert '"group_id" INTEGER NOT NULL' in sql
        assert 'PRIMARY KEY ("user_id", "group_id")' in sql

    def test_unique_and_check_constraints_follow_foreign_keys(self):
        definition = TableDefinition(
            name='items',
            columns=[
                ColumnDefinition(name='id', data_type='integer', is_primary_key=True),
                ColumnDefinition(name='sku', data_type='varchar', length=20),
                ColumnDefinition(name='vendor_id', data_type='integer'),
                ColumnDefinition(name='price', data_type='decimal', precision=10, scale=2),
            ],
            unique_constraints=[['sku', 'vendor_id']],
            foreign_keys=[ForeignKeyDefinition(columns=['vendor_id'], referenced_table='vendors', referenced_columns=['id'])],
            check_constraints=[CheckConstraint(expression='price >= 0', name='chk_price')]
        )
        sql = build_create_table(definition, 'postgresql').sql

        pk = sql.index('PRIMARY KEY ("id")')
        unique = sql.index('UNIQUE ("sku", "vendor_id")')
        fk = sql.index('FOREIGN KEY ("vendor_id") REFERENCES "vendors" ("id")')
        check = sql.index('CONSTRAINT "chk_price" CHECK (price >= 0)')
        assert pk < unique < fk < check

    def test_default_literals(self):
        definition = TableDefinition(
            name='settings',
            columns=[
                ColumnDefinition(name='id', data_type='uuid', is_primary_key=True, default_expression='gen_random_uuid()'),
                ColumnDefinition(name='enabled', data_type='boolean', default_value='true'),
                ColumnDefinition(name='label', data_type='text', default_value="it's"),
                ColumnDefinition(name='retries', data_type='integer', default_value=3),
            ]
        )
        sql = build_create_table(definition, 'postgresql').sql

        assert '"id" UUID NOT NULL DEFAULT gen_random_uuid()' in sql
        assert '"enabled" BOOLEAN DEFAULT TRUE' in sql
        assert "\"label\" TEXT DEFAULT 'it''s'" in sql
        assert '"retries" INTEGER DEFAULT 3' in sql

    def test_invalid_definition_raises(self):
        definition = TableDefinition(name='empty', columns=[])

        with pytest.raises(ValidationError) as exc_info:
            build_create_table(definition, 'postgresql')
        assert "Table must have at least one column" in exc_info.value.errors


class TestCreateTableMySQL:
    """Test CREATE TABLE generation for MySQL"""

    def test_users_table(self, users_table):
        sql = build_create_table(users_table, 'mysql').sql

        assert '`id` INT NOT NULL AUTO_INCREMENT' in sql
        assert '`email` TEXT NOT NULL' in sql
        assert 'PRIMARY KEY (`id`)' in sql
        assert '"' not in sql
        assert 'IDENTITY' not in sql

    def test_defaults(self, orders_table):
        sql = build_create_table(orders_table, 'mysql').sql

        assert '`total` DECIMAL(12,2) DEFAULT 0' in sql
        assert '`created_at` DATETIME DEFAULT CURRENT_TIMESTAMP' in sql
        assert 'REFERENCES `shop`.`users` (`id`) ON DELETE CASCADE' in sql

    def test_expression_default_is_parenthesised(self):
        column = ColumnDefinition(name='token', data_type='uuid', default_expression='uuid()')
        assert build_column_definition(column, 'mysql') == '`token` CHAR(36) DEFAULT (uuid())'

    def test_boolean_default(self):
        column = ColumnDefinition(name='active', data_type='boolean', default_value=True)
        assert build_column_definition(column, 'mysql') == '`active` TINYINT(1) DEFAULT 1'


class TestCreateTableMSSQL:
    """Test CREATE TABLE generation for SQL Server"""

    def test_users_table(self, users_table):
        sql = build_create_table(users_table, 'mssql').sql

        assert '[id] INT IDENTITY(1,1) NOT NULL' in sql
        assert '[email] NVARCHAR(MAX) NOT NULL' in sql
        assert 'PRIMARY KEY ([id])' in sql

    def test_restrict_action_rejected(self, orders_table):
        orders_table.foreign_keys[0].on_delete = 'restrict'

        with pytest.raises(ValidationError, match="RESTRICT"):
            build_create_table(orders_table, 'mssql')


class TestCreateTableSQLite:
    """Test CREATE TABLE generation for SQLite"""

    def test_autoincrement_primary_key(self, users_table):
        sql = build_create_table(users_table, 'sqlite').sql

        assert sql == (
            'CREATE TABLE "users" (\n'
            '  "id" INTEGER PRIMARY KEY AUTOINCREMENT,\n'
            '  "email" TEXT NOT NULL\n'
            ');'
        )

    def test_autoincrement_with_composite_key_rejected(self):
        definition = TableDefinition(
            name='events',
            columns=[
                ColumnDefinition(name='id', data_type='integer', auto_increment=True),
                ColumnDefinition(name='tenant_id', data_type='integer'),
            ],
            primary_key=['id', 'tenant_id']
        )

        with pytest.raises(ValidationError, match="only primary key column"):
            build_create_table(definition, 'sqlite')

        # The same definition is fine where auto-increment is not tied to the rowid
        assert 'GENERATED BY DEFAULT AS IDENTITY' in build_create_table(definition, 'postgresql').sql

    def test_foreign_keys_unqualified(self, orders_table):
        sql = build_create_table(orders_table, 'sqlite').sql

        assert 'REFERENCES "users" ("id")' in sql


class TestRenderConstraint:

    def test_foreign_key_actions_normalized(self):
        fk = ForeignKeyDefinition(
            columns=['a'], referenced_table='t', referenced_columns=['b'],
            on_delete='set_null', on_update='no action'
        )
        assert render_constraint(fk, 'postgresql') == (
            'FOREIGN KEY ("a") REFERENCES "t" ("b") ON DELETE SET NULL ON UPDATE NO ACTION'
        )

    def test_named_unique(self):
        uc = UniqueConstraint(columns=['email'], name='uq_email')
        assert render_constraint(uc, 'mssql') == 'CONSTRAINT [uq_email] UNIQUE ([email])'


class TestAlterTable:
    """One statement per operation, in batch order"""

    def _batch(self, *operations, schema=None):
        return AlterTableBatch(table='users', schema=schema, operations=list(operations))

    def test_add_column(self):
        batch = self._batch(
            AlterOperation(type='add_column', column=ColumnDefinition(name='age', data_type='integer')),
            schema='public'
        )
        assert build_alter_preview_ddl(batch, 'postgresql') == ['ALTER TABLE "public"."users" ADD COLUMN "age" INTEGER;']
        assert build_alter_preview_ddl(batch, 'mssql') == ['ALTER TABLE [public].[users] ADD [age] INT;']

    def test_drop_column(self):
        batch = self._batch(AlterOperation(type='drop_column', column_name='legacy'))
        assert build_alter_preview_ddl(batch, 'mysql') == ['ALTER TABLE `users` DROP COLUMN `legacy`;']
        assert build_alter_preview_ddl(batch, 'sqlite') == ['ALTER TABLE "users" DROP COLUMN "legacy";']

    def test_rename_column(self):
        batch = self._batch(AlterOperation(type='rename_column', column_name='name', new_name='full_name'))
        assert build_alter_preview_ddl(batch, 'postgresql') == [
            'ALTER TABLE "users" RENAME COLUMN "name" TO "full_name";'
        ]

    def test_rename_column_mssql(self):
        batch = self._batch(
            AlterOperation(type='rename_column', column_name='name', new_name='full_name'),
            schema='dbo'
        )
        assert build_alter_preview_ddl(batch, 'mssql') == [
            "EXEC sp_rename N'[dbo].[users].[name]', N'full_name', N'COLUMN';"
        ]

    def test_modify_column(self):
        column = ColumnDefinition(name='name', data_type='varchar', length=100, nullable=False)
        batch = self._batch(AlterOperation(type='modify_column', column=column))

        assert build_alter_preview_ddl(batch, 'postgresql') == [
            'ALTER TABLE "users" ALTER COLUMN "name" TYPE VARCHAR(100) USING "name"::VARCHAR(100), '
            'ALTER COLUMN "name" SET NOT NULL, ALTER COLUMN "name" DROP DEFAULT;'
        ]
        assert build_alter_preview_ddl(batch, 'mysql') == [
            'ALTER TABLE `users` MODIFY COLUMN `name` VARCHAR(100) NOT NULL;'
        ]
        assert build_alter_preview_ddl(batch, 'mssql') == [
            'ALTER TABLE [users] ALTER COLUMN [name] NVARCHAR(100) NOT NULL;'
        ]

    def test_mysql_modify_unique_column_keeps_existing_index(self):
        column = ColumnDefinition(name='email', data_type='varchar', length=120, nullable=False, is_unique=True)
        batch = self._batch(AlterOperation(type='modify_column', column=column))

        assert build_alter_preview_ddl(batch, 'mysql') == [
            'ALTER TABLE `users` MODIFY COLUMN `email` VARCHAR(120) NOT NULL;'
        ]

    def test_modify_column_unsupported(self):
        column = ColumnDefinition(name='name', data_type='text')
        batch = self._batch(AlterOperation(type='modify_column', column=column))
        with pytest.raises(UnsupportedOperationError):
            build_alter_table(batch, 'sqlite')

        column_with_default = ColumnDefinition(name='name', data_type='text', default_value='x')
        batch = self._batch(AlterOperation(type='modify_column', column=column_with_default))
        with pytest.raises(UnsupportedOperationError):
            build_alter_table(batch, 'mssql')

    def test_add_and_drop_constraint(self):
        batch = self._batch(
            AlterOperation(type='add_constraint', constraint=UniqueConstraint(columns=['email'], name='uq_users_email')),
            AlterOperation(type='drop_constraint', constraint_name='uq_users_email', constraint_type='unique'),
        )
        assert build_alter_preview_ddl(batch, 'postgresql') == [
            'ALTER TABLE "users" ADD CONSTRAINT "uq_users_email" UNIQUE ("email");',
            'ALTER TABLE "users" DROP CONSTRAINT "uq_users_email";',
        ]
        assert build_alter_preview_ddl(batch, 'mysql')[1] == 'ALTER TABLE `users` DROP INDEX `uq_users_email`;'

    def test_mysql_drop_primary_and_foreign_key(self):
        batch = self._batch(
            AlterOperation(type='drop_constraint', constraint_name='fk_user', constraint_type='foreign_key'),
            AlterOperation(type='drop_constraint', constraint_type='primary_key'),
        )
        assert build_alter_preview_ddl(batch, 'mysql') == [
            'ALTER TABLE `users` DROP FOREIGN KEY `fk_user`;',
            'ALTER TABLE `users` DROP PRIMARY KEY;',
        ]

    def test_drop_unnamed_primary_key_needs_name_outside_mysql(self):
        batch = self._batch(AlterOperation(type='drop_constraint', constraint_type='primary_key'))
        with pytest.raises(UnsupportedOperationError):
            build_alter_table(batch, 'postgresql')

    def test_sqlite_add_column_restrictions(self):
        required = ColumnDefinition(name='status', data_type='text', nullable=False)
        with pytest.raises(UnsupportedOperationError):
            build_alter_table(self._batch(AlterOperation(type='add_column', column=required)), 'sqlite')

        required.default_value = 'new'
        statements = build_alter_preview_ddl(self._batch(AlterOperation(type='add_column', column=required)), 'sqlite')
        assert statements == ['ALTER TABLE "users" ADD COLUMN "status" TEXT NOT NULL DEFAULT \'new\';']

    def test_operations_keep_batch_order(self):
        batch = self._batch(
            AlterOperation(type='rename_column', column_name='name', new_name='full_name'),
            AlterOperation(type='modify_column', column=ColumnDefinition(name='full_name', data_type='text')),
            AlterOperation(type='drop_column', column_name='nickname'),
        )
        statements = build_alter_preview_ddl(batch, 'postgresql')

        assert len(statements) == 3
        assert 'RENAME COLUMN "name" TO "full_name"' in statements[0]
        assert 'ALTER COLUMN "full_name" TYPE TEXT' in statements[1]
        assert 'DROP COLUMN "nickname"' in statements[2]

    def test_malformed_batch_raises(self):
        batch = self._batch(AlterOperation(type='drop_column'))
        with pytest.raises(ValidationError) as exc_info:
            build_alter_table(batch, 'postgresql')
        assert exc_info.value.errors == ["Operation 1 (drop_column) requires a column name"]


class TestDropTable:

    def test_cascade_postgres_only(self):
        assert build_drop_table('public', 'users', True, 'postgresql').sql == 'DROP TABLE "public"."users" CASCADE;'
        assert build_drop_table(None, 'users', True, 'mysql').sql == 'DROP TABLE `users`;'
        assert build_drop_table('dbo', 'users', True, 'mssql').sql == 'DROP TABLE [dbo].[users];'

    def test_if_exists(self):
        assert build_drop_table(None, 'users', False, 'sqlite', if_exists=True).sql == 'DROP TABLE IF EXISTS "users";'

    def test_table_name_required(self):
        with pytest.raises(ValidationError, match="Table name is required"):
            build_drop_table('public', '  ', False, 'postgresql')


class TestPreviewDDL:
    """Preview text matches what would be executed"""

    @pytest.mark.parametrize('db_type', ['postgresql', 'mysql', 'mssql', 'sqlite'])
    def test_preview_matches_create(self, users_table, db_type):
        assert build_preview_ddl(users_table, db_type) == build_create_table(users_table, db_type).sql

    def test_preview_matches_alter(self):
        batch = AlterTableBatch(
            table='users',
            operations=[
                AlterOperation(type='add_column', column=ColumnDefinition(name='age', data_type='integer')),
                AlterOperation(type='drop_column', column_name='legacy'),
            ]
        )
        assert build_alter_preview_ddl(batch, 'mysql') == [q.sql for q in build_alter_table(batch, 'mysql')]

    def test_deterministic(self, orders_table):
        assert build_preview_ddl(orders_table, 'mssql') == build_preview_ddl(orders_table, 'mssql')
