"""
SQLite datastore implementation.
"""
import asyncio
import re
import sqlite3
from typing import Any, List, Optional, Tuple

from .base_datastore import BaseDatastore
from ..core.enums import DatabaseType
from ..core.edit_models import Query
from ..core.errors import UnsupportedOperationError
from ..core.models import QueryResult, SchemaInfo, TransactionResult
from ..core.schema_models import TableDefinition
from ..dialect.quoting import quote_identifier

_COLUMNS_QUERY = """
SELECT name, type, "notnull" AS not_null, dflt_value, pk
FROM pragma_table_info(?, ?)
ORDER BY cid
"""

_FOREIGN_KEYS_QUERY = """
SELECT id, seq, "table" AS referenced_table, "from" AS column_name, "to" AS referenced_column,
       on_update, on_delete
FROM pragma_foreign_key_list(?, ?)
ORDER BY id, seq
"""

_SCHEMA_COLUMNS_QUERY = """
SELECT m.name AS table_name, m.type AS table_type, p.name AS column_name, p.type AS data_type,
       p."notnull" AS not_null, p.pk
FROM sqlite_master m
JOIN pragma_table_info(m.name) p
WHERE m.type IN ('table', 'view') AND m.name NOT LIKE 'sqlite_%'
ORDER BY m.name, p.cid
"""

_SCHEMA_FOREIGN_KEYS_QUERY = """
SELECT m.name AS table_name, f."from" AS column_name, f."table" AS referenced_table, f."to" AS referenced_column
FROM sqlite_master m
JOIN pragma_foreign_key_list(m.name) f
WHERE m.type = 'table'
ORDER BY m.name, f.id, f.seq
"""

_AUTOINCREMENT_RE = re.compile(r'\bAUTOINCREMENT\b', re.IGNORECASE)


class SQLiteDatastore(BaseDatastore):
    """
    SQLite datastore implementation using aiosqlite.

    One connection in autocommit mode; transactions are issued explicitly and
    serialised with the other statements on the connection.
    """
    db_type = DatabaseType.SQLITE

    def __init__(self, name, connection_config, tracker=None):
        super().__init__(name, connection_config, tracker)
        self._statement_lock = asyncio.Lock()

    async def _create_connection(self) -> None:
        """Open the SQLite database using aiosqlite"""
        try:
            import aiosqlite
        except ImportError:
            raise ImportError(
                "aiosqlite is required for SQLite datastore. "
                "Install it with: pip install aiosqlite"
            )

        path = self.connection_config.path or self.connection_config.database or ":memory:"
        self._connection_pool = await aiosqlite.connect(path, isolation_level=None)
        self._connection_pool.row_factory = sqlite3.Row
        await self._connection_pool.execute("PRAGMA foreign_keys = ON")

    async def _cleanup_connections(self) -> None:
        if self._connection_pool:
            await self._connection_pool.close()
            self._connection_pool = None

    async def _execute(self, sql: str, params: Optional[List[Any]], execution_id: Optional[str]) -> QueryResult:
        conn = self._require_connection()
        # SQLite runs statements to completion; there is nothing to cancel
        async with self._statement_lock:
            with self._tracked(execution_id, None):
                async with conn.execute(sql, params or []) as cursor:
                    if cursor.description:
                        columns = [desc[0] for desc in cursor.description]
                        rows = await cursor.fetchall()
                        return QueryResult(
                            rows=[dict(row) for row in rows],
                            columns=columns,
                            row_count=len(rows)
                        )
                    return QueryResult(row_count=max(cursor.rowcount, 0))

    async def execute_transaction(self, statements: List[Query]) -> TransactionResult:
        conn = self._require_connection()
        results = []
        total = 0
        async with self._statement_lock:
            await conn.execute("BEGIN")
            try:
                for statement in statements:
                    self._logger.info(f"Executing SQLite statement: {statement.sql}")
                    if statement.params:
                        self._logger.debug(f"Query parameters: {statement.params}")
                    async with conn.execute(statement.sql, statement.params) as cursor:
                        affected = max(cursor.rowcount, 0)
                    total += affected
                    results.append({'sql': statement.sql, 'rowsAffected': affected})
                await conn.execute("COMMIT")
            except Exception:
                await conn.execute("ROLLBACK")
                raise
        return TransactionResult(rows_affected=total, results=results)

    async def get_table_definition(self, schema: Optional[str], table: str) -> TableDefinition:
        schema = schema or 'main'

        table_info = (await self.query(_COLUMNS_QUERY, [table, schema])).rows
        primary_key = [row['name'] for row in sorted(table_info, key=lambda r: r['pk']) if row['pk']]

        master = f"{quote_identifier(schema, self.db_type)}.sqlite_master"
        create_sql = (await self.query(
            f"SELECT sql FROM {master} WHERE type = 'table' AND name = ?", [table]
        )).rows
        has_autoincrement = bool(create_sql and _AUTOINCREMENT_RE.search(create_sql[0]['sql'] or ''))

        columns = [
            {
                'name': row['name'],
                'native_type': row['type'],
                # INTEGER PRIMARY KEY aliases the rowid and is never NULL
                'nullable': not row['not_null'] and not row['pk'],
                'default': row['dflt_value'],
                'auto_increment': (
                    has_autoincrement and primary_key == [row['name']]
                    and (row['type'] or '').upper() == 'INTEGER'
                ),
            }
            for row in table_info
        ]

        fk_rows = [
            {
                'key': row['id'],
                'name': None,
                'column': row['column_name'],
                'referenced_table': row['referenced_table'],
                'referenced_column': row['referenced_column'],
                'on_delete': row['on_delete'],
                'on_update': row['on_update'],
            }
            for row in (await self.query(_FOREIGN_KEYS_QUERY, [table, schema])).rows
        ]

        return self._build_table_definition(
            None if schema == 'main' else schema, table, columns, primary_key, self._group_foreign_keys(fk_rows)
        )

    async def get_schemas(self) -> List[SchemaInfo]:
        rows = (await self.query(_SCHEMA_COLUMNS_QUERY)).rows
        column_rows = [
            {
                'table_schema': 'main',
                'table_name': row['table_name'],
                'table_type': row['table_type'],
                'column_name': row['column_name'],
                'data_type': row['data_type'] or '',
                'nullable': not row['not_null'] and not row['pk'],
            }
            for row in rows
        ]
        pk_rows = [
            {'table_schema': 'main', 'table_name': row['table_name'], 'column_name': row['column_name']}
            for row in rows if row['pk']
        ]
        fk_rows = [
            {'table_schema': 'main', **row}
            for row in (await self.query(_SCHEMA_FOREIGN_KEYS_QUERY)).rows
        ]
        return self._build_schemas(column_rows, pk_rows, fk_rows)

    async def _explain(self, sql: str, analyze: bool) -> Tuple[Any, str]:
        if analyze:
            raise UnsupportedOperationError("SQLite does not support EXPLAIN ANALYZE")
        result = await self.query(f"EXPLAIN QUERY PLAN {sql}")
        return result.rows, 'rows'
