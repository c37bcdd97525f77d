"""
MySQL datastore implementation.
"""
import json
from typing import Any, List, Optional, Tuple

from .base_datastore import BaseDatastore
from .param_translation import qmark_to_format
from ..core.enums import DatabaseType
from ..core.edit_models import Query
from ..core.models import QueryResult, SchemaInfo, TransactionResult
from ..core.schema_models import TableDefinition

_COLUMNS_QUERY = """
SELECT COLUMN_NAME AS name,
       COLUMN_TYPE AS native_type,
       IS_NULLABLE AS is_nullable,
       COLUMN_DEFAULT AS column_default,
       EXTRA AS extra
FROM information_schema.COLUMNS
WHERE TABLE_SCHEMA = COALESCE(?, DATABASE()) AND TABLE_NAME = ?
ORDER BY ORDINAL_POSITION
"""

_PRIMARY_KEY_QUERY = """
SELECT COLUMN_NAME AS column_name
FROM information_schema.KEY_COLUMN_USAGE
WHERE TABLE_SCHEMA = COALESCE(?, DATABASE()) AND TABLE_NAME = ? AND CONSTRAINT_NAME = 'PRIMARY'
ORDER BY ORDINAL_POSITION
"""

_FOREIGN_KEYS_QUERY = """
SELECT k.CONSTRAINT_NAME AS name,
       k.COLUMN_NAME AS `column`,
       k.REFERENCED_TABLE_SCHEMA AS referenced_schema,
       k.REFERENCED_TABLE_NAME AS referenced_table,
       k.REFERENCED_COLUMN_NAME AS referenced_column,
       r.DELETE_RULE AS on_delete,
       r.UPDATE_RULE AS on_update
FROM information_schema.KEY_COLUMN_USAGE k
JOIN information_schema.REFERENTIAL_CONSTRAINTS r
  ON r.CONSTRAINT_SCHEMA = k.CONSTRAINT_SCHEMA AND r.CONSTRAINT_NAME = k.CONSTRAINT_NAME
WHERE k.TABLE_SCHEMA = COALESCE(?, DATABASE()) AND k.TABLE_NAME = ?
  AND k.REFERENCED_TABLE_NAME IS NOT NULL
ORDER BY k.CONSTRAINT_NAME, k.ORDINAL_POSITION
"""

_SCHEMA_COLUMNS_QUERY = """
SELECT c.TABLE_SCHEMA AS table_schema, c.TABLE_NAME AS table_name, t.TABLE_TYPE AS table_type,
       c.COLUMN_NAME AS column_name, c.COLUMN_TYPE AS data_type, c.IS_NULLABLE = 'YES' AS nullable
FROM information_schema.COLUMNS c
JOIN information_schema.TABLES t
  ON t.TABLE_SCHEMA = c.TABLE_SCHEMA AND t.TABLE_NAME = c.TABLE_NAME
WHERE c.TABLE_SCHEMA = COALESCE(?, DATABASE())
ORDER BY c.TABLE_NAME, c.ORDINAL_POSITION
"""

_SCHEMA_KEYS_QUERY = """
SELECT TABLE_SCHEMA AS table_schema, TABLE_NAME AS table_name, COLUMN_NAME AS column_name,
       CONSTRAINT_NAME AS constraint_name,
       REFERENCED_TABLE_SCHEMA AS referenced_schema, REFERENCED_TABLE_NAME AS referenced_table,
       REFERENCED_COLUMN_NAME AS referenced_column
FROM information_schema.KEY_COLUMN_USAGE
WHERE TABLE_SCHEMA = COALESCE(?, DATABASE())
  AND (CONSTRAINT_NAME = 'PRIMARY' OR REFERENCED_TABLE_NAME IS NOT NULL)
"""

# Defaults MySQL reports without quoting that are expressions, not literals
_EXPRESSION_DEFAULTS = ('CURRENT_TIMESTAMP', 'CURRENT_DATE', 'CURRENT_TIME', 'NOW()')


def _translate(sql: str, params: Optional[List[Any]]) -> str:
    # aiomysql only interpolates (and expects '%' escaping) when args are passed
    return qmark_to_format(sql) if params else sql


class MySQLDatastore(BaseDatastore):
    """
    MySQL datastore implementation using aiomysql.

    Builder placeholders ('?') are translated to aiomysql's '%s' before execution.
    """
    db_type = DatabaseType.MYSQL

    async def _create_connection(self) -> None:
        """Create MySQL connection pool using aiomysql"""
        try:
            import aiomysql
        except ImportError:
            raise ImportError(
                "aiomysql is required for MySQL datastore. "
                "Install it with: pip install aiomysql"
            )

        self._connection_pool = await aiomysql.create_pool(
            host=self.connection_config.host,
            port=self.connection_config.port or 3306,
            user=self.connection_config.user,
            password=self.connection_config.password,
            db=self.connection_config.database,
            autocommit=True,
            minsize=self.connection_config.min_connections,
            maxsize=self.connection_config.max_connections
        )

        # Test connection
        async with self._connection_pool.acquire() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
                result = await cur.fetchone()
                if not result or result[0] != 1:
                    raise RuntimeError("MySQL connection test failed")

    async def _cleanup_connections(self) -> None:
        """Clean up MySQL connection pool"""
        if self._connection_pool:
            self._connection_pool.close()
            await self._connection_pool.wait_closed()
            self._connection_pool = None

    async def _execute(self, sql: str, params: Optional[List[Any]], execution_id: Optional[str]) -> QueryResult:
        pool = self._require_connection()
        async with pool.acquire() as conn:
            # Closing the socket aborts the running statement
            with self._tracked(execution_id, conn.close):
                async with conn.cursor() as cur:
                    await cur.execute(_translate(sql, params), params)
                    if cur.description:
                        columns = [desc[0] for desc in cur.description]
                        rows = await cur.fetchall()
                        return QueryResult(
                            rows=[dict(zip(columns, row)) for row in rows],
                            columns=columns,
                            row_count=len(rows)
                        )
                    return QueryResult(row_count=max(cur.rowcount, 0))

    async def execute_transaction(self, statements: List[Query]) -> TransactionResult:
        pool = self._require_connection()
        results = []
        total = 0
        async with pool.acquire() as conn:
            await conn.begin()
            try:
                async with conn.cursor() as cur:
                    for statement in statements:
                        self._logger.info(f"Executing MySQL statement: {statement.sql}")
                        if statement.params:
                            self._logger.debug(f"Query parameters: {statement.params}")
                        await cur.execute(_translate(statement.sql, statement.params), statement.params or None)
                        affected = max(cur.rowcount, 0)
                        total += affected
                        results.append({'sql': statement.sql, 'rowsAffected': affected})
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise
        return TransactionResult(rows_affected=total, results=results)

    async def get_table_definition(self, schema: Optional[str], table: str) -> TableDefinition:
        schema = schema or self.connection_config.schema

        columns = []
        for row in (await self.query(_COLUMNS_QUERY, [schema, table])).rows:
            extra = (row.get('extra') or '').lower()
            default = row.get('column_default')
            is_expression = default is not None and (
                'default_generated' in extra or str(default).upper() in _EXPRESSION_DEFAULTS
            )
            columns.append({
                'name': row['name'],
                'native_type': row['native_type'],
                'nullable': row['is_nullable'] == 'YES',
                'auto_increment': 'auto_increment' in extra,
                'default': default if is_expression else None,
                'default_value': None if is_expression else default,
            })

        primary_key = [row['column_name'] for row in (await self.query(_PRIMARY_KEY_QUERY, [schema, table])).rows]
        fk_rows = (await self.query(_FOREIGN_KEYS_QUERY, [schema, table])).rows

        return self._build_table_definition(
            schema, table, columns, primary_key, self._group_foreign_keys(fk_rows)
        )

    async def get_schemas(self) -> List[SchemaInfo]:
        params = [self.connection_config.schema]
        key_rows = (await self.query(_SCHEMA_KEYS_QUERY, params)).rows
        return self._build_schemas(
            (await self.query(_SCHEMA_COLUMNS_QUERY, params)).rows,
            [row for row in key_rows if row['constraint_name'] == 'PRIMARY'],
            [row for row in key_rows if row['referenced_table']]
        )

    async def _explain(self, sql: str, analyze: bool) -> Tuple[Any, str]:
        if analyze:
            # EXPLAIN ANALYZE only produces the tree format
            result = await self.query(f"EXPLAIN ANALYZE {sql}")
            return '\n'.join(str(next(iter(row.values()))) for row in result.rows), 'text'

        result = await self.query(f"EXPLAIN FORMAT=JSON {sql}")
        plan = next(iter(result.rows[0].values())) if result.rows else '{}'
        return json.loads(plan), 'json'
