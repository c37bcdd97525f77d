"""
PostgreSQL datastore implementation.
"""
import json
from typing import Any, List, Optional, Tuple

from .base_datastore import BaseDatastore
from ..core.enums import DatabaseType
from ..core.edit_models import Query
from ..core.models import CustomTypeInfo, QueryResult, SchemaInfo, SequenceInfo, TransactionResult
from ..core.schema_models import TableDefinition

# pg_constraint.confdeltype / confupdtype codes
_FK_ACTIONS = {
    'a': 'NO ACTION',
    'r': 'RESTRICT',
    'c': 'CASCADE',
    'n': 'SET NULL',
    'd': 'SET DEFAULT',
}

_COLUMNS_QUERY = """
SELECT a.attname AS name,
       format_type(a.atttypid, a.atttypmod) AS native_type,
       NOT a.attnotnull AS nullable,
       pg_get_expr(d.adbin, d.adrelid) AS "default",
       (a.attidentity <> '' OR coalesce(pg_get_expr(d.adbin, d.adrelid), '') LIKE 'nextval(%') AS auto_increment
FROM pg_attribute a
JOIN pg_class c ON c.oid = a.attrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
WHERE n.nspname = $1 AND c.relname = $2 AND a.attnum > 0 AND NOT a.attisdropped
ORDER BY a.attnum
"""

_PRIMARY_KEY_QUERY = """
SELECT kcu.column_name
FROM information_schema.table_constraints tc
JOIN information_schema.key_column_usage kcu
  ON tc.constraint_name = kcu.constraint_name
 AND tc.table_schema = kcu.table_schema
 AND tc.table_name = kcu.table_name
WHERE tc.constraint_type = 'PRIMARY KEY' AND tc.table_schema = $1 AND tc.table_name = $2
ORDER BY kcu.ordinal_position
"""

_FOREIGN_KEYS_QUERY = """
SELECT con.conname AS name,
       att.attname AS "column",
       fn.nspname AS referenced_schema,
       fc.relname AS referenced_table,
       fatt.attname AS referenced_column,
       con.confdeltype AS on_delete,
       con.confupdtype AS on_update
FROM pg_constraint con
JOIN pg_class c ON c.oid = con.conrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
JOIN pg_class fc ON fc.oid = con.confrelid
JOIN pg_namespace fn ON fn.oid = fc.relnamespace
CROSS JOIN LATERAL unnest(con.conkey, con.confkey) WITH ORDINALITY AS k(attnum, fattnum, ord)
JOIN pg_attribute att ON att.attrelid = con.conrelid AND att.attnum = k.attnum
JOIN pg_attribute fatt ON fatt.attrelid = con.confrelid AND fatt.attnum = k.fattnum
WHERE con.contype = 'f' AND n.nspname = $1 AND c.relname = $2
ORDER BY con.conname, k.ord
"""

_USER_SCHEMA_FILTER = "NOT IN ('pg_catalog', 'information_schema', 'pg_toast')"

_SCHEMA_COLUMNS_QUERY = f"""
SELECT c.table_schema, c.table_name, t.table_type, c.column_name,
       c.data_type, c.is_nullable = 'YES' AS nullable
FROM information_schema.columns c
JOIN information_schema.tables t
  ON t.table_schema = c.table_schema AND t.table_name = c.table_name
WHERE c.table_schema {_USER_SCHEMA_FILTER}
ORDER BY c.table_schema, c.table_name, c.ordinal_position
"""

_SCHEMA_PRIMARY_KEYS_QUERY = f"""
SELECT kcu.table_schema, kcu.table_name, kcu.column_name
FROM information_schema.table_constraints tc
JOIN information_schema.key_column_usage kcu
  ON tc.constraint_name = kcu.constraint_name
 AND tc.table_schema = kcu.table_schema
 AND tc.table_name = kcu.table_name
WHERE tc.constraint_type = 'PRIMARY KEY' AND tc.table_schema {_USER_SCHEMA_FILTER}
"""

_SCHEMA_FOREIGN_KEYS_QUERY = f"""
SELECT n.nspname AS table_schema, c.relname AS table_name, att.attname AS column_name,
       fn.nspname AS referenced_schema, fc.relname AS referenced_table, fatt.attname AS referenced_column
FROM pg_constraint con
JOIN pg_class c ON c.oid = con.conrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
JOIN pg_class fc ON fc.oid = con.confrelid
JOIN pg_namespace fn ON fn.oid = fc.relnamespace
CROSS JOIN LATERAL unnest(con.conkey, con.confkey) AS k(attnum, fattnum)
JOIN pg_attribute att ON att.attrelid = con.conrelid AND att.attnum = k.attnum
JOIN pg_attribute fatt ON fatt.attrelid = con.confrelid AND fatt.attnum = k.fattnum
WHERE con.contype = 'f' AND n.nspname {_USER_SCHEMA_FILTER}
"""

_SEQUENCES_QUERY = f"""
SELECT schemaname, sequencename, data_type::text AS data_type, start_value, increment_by,
       min_value, max_value, last_value
FROM pg_sequences
WHERE schemaname {_USER_SCHEMA_FILTER}
ORDER BY schemaname, sequencename
"""

# typtype: e = enum, d = domain, c = composite, r = range
_TYPES_QUERY = f"""
SELECT n.nspname AS schema, t.typname AS name, t.typtype::text AS kind,
       CASE WHEN t.typtype = 'd' THEN format_type(t.typbasetype, t.typtypmod) END AS base_type,
       (SELECT array_agg(e.enumlabel::text ORDER BY e.enumsortorder)
        FROM pg_enum e WHERE e.enumtypid = t.oid) AS enum_values
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
LEFT JOIN pg_class cls ON cls.oid = t.typrelid
WHERE n.nspname {_USER_SCHEMA_FILTER}
  AND (t.typtype IN ('e', 'd', 'r') OR (t.typtype = 'c' AND cls.relkind = 'c'))
ORDER BY n.nspname, t.typname
"""

_TYPE_KINDS = {'e': 'enum', 'd': 'domain', 'c': 'composite', 'r': 'range'}


def _affected_rows(status: Optional[str]) -> int:
    # asyncpg returns a status string like "INSERT 0 5" or "UPDATE 3"
    if not status:
        return 0
    parts = status.split()
    if len(parts) >= 2 and parts[-1].isdigit():
        return int(parts[-1])
    return 0


class PostgresDatastore(BaseDatastore):
    """
    PostgreSQL datastore implementation using asyncpg.

    Builder placeholders ($1, $2 ...) are asyncpg's native paramstyle.
    """
    db_type = DatabaseType.POSTGRESQL

    async def _create_connection(self) -> None:
        """Create PostgreSQL connection pool using asyncpg"""
        try:
            import asyncpg
        except ImportError:
            raise ImportError(
                "asyncpg is required for PostgreSQL datastore. "
                "Install it with: pip install asyncpg"
            )

        self._connection_pool = await asyncpg.create_pool(
            host=self.connection_config.host,
            port=self.connection_config.port or 5432,
            user=self.connection_config.user,
            password=self.connection_config.password,
            database=self.connection_config.database,
            min_size=self.connection_config.min_connections,
            max_size=self.connection_config.max_connections
        )

        # Test connection
        async with self._connection_pool.acquire() as conn:
            await conn.fetchval("SELECT 1")

    async def _cleanup_connections(self) -> None:
        """Clean up PostgreSQL connection pool"""
        if self._connection_pool:
            await self._connection_pool.close()
            self._connection_pool = None

    async def _execute(self, sql: str, params: Optional[List[Any]], execution_id: Optional[str]) -> QueryResult:
        pool = self._require_connection()
        async with pool.acquire() as conn:
            # Terminating the connection aborts the running statement
            with self._tracked(execution_id, conn.terminate):
                statement = await conn.prepare(sql)
                rows = await statement.fetch(*(params or []))
                columns = [attr.name for attr in statement.get_attributes()]
                status = statement.get_statusmsg()

        if columns:
            return QueryResult(rows=[dict(row) for row in rows], columns=columns, row_count=len(rows))
        return QueryResult(row_count=_affected_rows(status))

    async def execute_transaction(self, statements: List[Query]) -> TransactionResult:
        pool = self._require_connection()
        results = []
        total = 0
        async with pool.acquire() as conn:
            async with conn.transaction():
                for statement in statements:
                    self._logger.info(f"Executing PostgreSQL statement: {statement.sql}")
                    if statement.params:
                        self._logger.debug(f"Query parameters: {statement.params}")
                    affected = _affected_rows(await conn.execute(statement.sql, *statement.params))
                    total += affected
                    results.append({'sql': statement.sql, 'rowsAffected': affected})
        return TransactionResult(rows_affected=total, results=results)

    async def get_table_definition(self, schema: Optional[str], table: str) -> TableDefinition:
        schema = schema or self.connection_config.schema or 'public'

        columns = (await self.query(_COLUMNS_QUERY, [schema, table])).rows
        primary_key = [row['column_name'] for row in (await self.query(_PRIMARY_KEY_QUERY, [schema, table])).rows]
        fk_rows = (await self.query(_FOREIGN_KEYS_QUERY, [schema, table])).rows
        for row in fk_rows:
            row['on_delete'] = _FK_ACTIONS.get(row['on_delete'])
            row['on_update'] = _FK_ACTIONS.get(row['on_update'])

        return self._build_table_definition(
            schema, table, columns, primary_key, self._group_foreign_keys(fk_rows)
        )

    async def get_schemas(self) -> List[SchemaInfo]:
        return self._build_schemas(
            (await self.query(_SCHEMA_COLUMNS_QUERY)).rows,
            (await self.query(_SCHEMA_PRIMARY_KEYS_QUERY)).rows,
            (await self.query(_SCHEMA_FOREIGN_KEYS_QUERY)).rows
        )

    async def _explain(self, sql: str, analyze: bool) -> Tuple[Any, str]:
        options = "FORMAT JSON, ANALYZE" if analyze else "FORMAT JSON"
        result = await self.query(f"EXPLAIN ({options}) {sql}")
        plan = result.rows[0]['QUERY PLAN'] if result.rows else []
        # asyncpg hands json columns back as text
        return (json.loads(plan) if isinstance(plan, str) else plan), 'json'

    async def get_sequences(self) -> List[SequenceInfo]:
        return [
            SequenceInfo(
                schema=row['schemaname'],
                name=row['sequencename'],
                data_type=row['data_type'],
                start_value=row['start_value'],
                increment=row['increment_by'],
                min_value=row['min_value'],
                max_value=row['max_value'],
                last_value=row['last_value']
            )
            for row in (await self.query(_SEQUENCES_QUERY)).rows
        ]

    async def get_types(self) -> List[CustomTypeInfo]:
        return [
            CustomTypeInfo(
                schema=row['schema'],
                name=row['name'],
                type=_TYPE_KINDS[row['kind']],
                values=list(row['enum_values']) if row['enum_values'] is not None else None,
                base_type=row['base_type']
            )
            for row in (await self.query(_TYPES_QUERY)).rows
        ]
