"""
Microsoft SQL Server datastore implementation.
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple

from .base_datastore import BaseDatastore
from .param_translation import named_to_qmark
from ..core.enums import DatabaseType
from ..core.edit_models import Query
from ..core.models import CustomTypeInfo, QueryResult, SchemaInfo, SequenceInfo, TransactionResult
from ..core.schema_models import TableDefinition

DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

_COLUMNS_QUERY = """
SELECT c.COLUMN_NAME AS name,
       c.DATA_TYPE AS data_type,
       c.CHARACTER_MAXIMUM_LENGTH AS max_length,
       c.NUMERIC_PRECISION AS numeric_precision,
       c.NUMERIC_SCALE AS numeric_scale,
       c.IS_NULLABLE AS is_nullable,
       c.COLUMN_DEFAULT AS column_default,
       COLUMNPROPERTY(OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME)),
                      c.COLUMN_NAME, 'IsIdentity') AS is_identity
FROM INFORMATION_SCHEMA.COLUMNS c
WHERE c.TABLE_SCHEMA = @p1 AND c.TABLE_NAME = @p2
ORDER BY c.ORDINAL_POSITION
"""

_PRIMARY_KEY_QUERY = """
SELECT kcu.COLUMN_NAME AS column_name
FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
  ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
 AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
 AND tc.TABLE_NAME = kcu.TABLE_NAME
WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY' AND tc.TABLE_SCHEMA = @p1 AND tc.TABLE_NAME = @p2
ORDER BY kcu.ORDINAL_POSITION
"""

_FOREIGN_KEYS_QUERY = """
SELECT fk.name AS name,
       pc.name AS column_name,
       rs.name AS referenced_schema,
       rt.name AS referenced_table,
       rc.name AS referenced_column,
       REPLACE(fk.delete_referential_action_desc, '_', ' ') AS on_delete,
       REPLACE(fk.update_referential_action_desc, '_', ' ') AS on_update
FROM sys.foreign_keys fk
JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
JOIN sys.tables pt ON pt.object_id = fk.parent_object_id
JOIN sys.schemas ps ON ps.schema_id = pt.schema_id
JOIN sys.columns pc ON pc.object_id = fkc.parent_object_id AND pc.column_id = fkc.parent_column_id
JOIN sys.tables rt ON rt.object_id = fk.referenced_object_id
JOIN sys.schemas rs ON rs.schema_id = rt.schema_id
JOIN sys.columns rc ON rc.object_id = fkc.referenced_object_id AND rc.column_id = fkc.referenced_column_id
WHERE ps.name = @p1 AND pt.name = @p2
ORDER BY fk.name, fkc.constraint_column_id
"""

_SCHEMA_COLUMNS_QUERY = """
SELECT c.TABLE_SCHEMA AS table_schema, c.TABLE_NAME AS table_name, t.TABLE_TYPE AS table_type,
       c.COLUMN_NAME AS column_name, c.DATA_TYPE AS data_type,
       CASE WHEN c.IS_NULLABLE = 'YES' THEN 1 ELSE 0 END AS nullable
FROM INFORMATION_SCHEMA.COLUMNS c
JOIN INFORMATION_SCHEMA.TABLES t
  ON t.TABLE_SCHEMA = c.TABLE_SCHEMA AND t.TABLE_NAME = c.TABLE_NAME
ORDER BY c.TABLE_SCHEMA, c.TABLE_NAME, c.ORDINAL_POSITION
"""

_SCHEMA_PRIMARY_KEYS_QUERY = """
SELECT kcu.TABLE_SCHEMA AS table_schema, kcu.TABLE_NAME AS table_name, kcu.COLUMN_NAME AS column_name
FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
  ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
 AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
 AND tc.TABLE_NAME = kcu.TABLE_NAME
WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
"""

_SCHEMA_FOREIGN_KEYS_QUERY = """
SELECT ps.name AS table_schema, pt.name AS table_name, pc.name AS column_name,
       rs.name AS referenced_schema, rt.name AS referenced_table, rc.name AS referenced_column
FROM sys.foreign_keys fk
JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
JOIN sys.tables pt ON pt.object_id = fk.parent_object_id
JOIN sys.schemas ps ON ps.schema_id = pt.schema_id
JOIN sys.columns pc ON pc.object_id = fkc.parent_object_id AND pc.column_id = fkc.parent_column_id
JOIN sys.tables rt ON rt.object_id = fk.referenced_object_id
JOIN sys.schemas rs ON rs.schema_id = rt.schema_id
JOIN sys.columns rc ON rc.object_id = fkc.referenced_object_id AND rc.column_id = fkc.referenced_column_id
"""

_SEQUENCES_QUERY = """
SELECT s.name AS [schema], seq.name AS name, TYPE_NAME(seq.user_type_id) AS data_type,
       CAST(seq.start_value AS bigint) AS start_value,
       CAST(seq.increment AS bigint) AS increment,
       CAST(seq.minimum_value AS bigint) AS min_value,
       CAST(seq.maximum_value AS bigint) AS max_value,
       CAST(seq.current_value AS bigint) AS last_value
FROM sys.sequences seq
JOIN sys.schemas s ON s.schema_id = seq.schema_id
ORDER BY s.name, seq.name
"""

_TYPES_QUERY = """
SELECT s.name AS [schema], t.name AS name, t.is_table_type,
       TYPE_NAME(t.system_type_id) AS base_type
FROM sys.types t
JOIN sys.schemas s ON s.schema_id = t.schema_id
WHERE t.is_user_defined = 1
ORDER BY s.name, t.name
"""

_SIZED_TYPES = ('char', 'varchar', 'nchar', 'nvarchar', 'binary', 'varbinary')


def _native_type(row: Dict[str, Any]) -> str:
    """Rebuild 'nvarchar(50)' / 'decimal(10,2)' from INFORMATION_SCHEMA columns"""
    data_type = row['data_type']
    if data_type in _SIZED_TYPES and row.get('max_length') is not None:
        length = row['max_length']
        return f"{data_type}(max)" if length == -1 else f"{data_type}({length})"
    if data_type in ('decimal', 'numeric') and row.get('numeric_precision') is not None:
        return f"{data_type}({row['numeric_precision']},{row['numeric_scale'] or 0})"
    return data_type


def _fetch_plans(cursor) -> List[str]:
    """Collect the showplan XML from every result set, skipping the query's own rows"""
    plans = []
    while True:
        if cursor.description and 'showplan' in cursor.description[0][0].lower():
            plans.extend(str(row[0]) for row in cursor.fetchall())
        if not cursor.nextset():
            return plans


def _fetch(cursor) -> Tuple[List[str], List[Dict[str, Any]], int]:
    if cursor.description:
        columns = [desc[0] for desc in cursor.description]
        rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        return columns, rows, len(rows)
    return [], [], max(cursor.rowcount, 0)


class MSSQLDatastore(BaseDatastore):
    """
    SQL Server datastore implementation using pyodbc.

    pyodbc is blocking, so every call runs in a worker thread. Builder
    placeholders (@p1, @p2 ...) are translated to pyodbc's '?'.
    """
    db_type = DatabaseType.MSSQL

    def __init__(self, name, connection_config, tracker=None):
        super().__init__(name, connection_config, tracker)
        # A pyodbc connection must not be used by two threads at once
        self._statement_lock = asyncio.Lock()

    def _connection_string(self) -> str:
        config = self.connection_config
        parts = [
            f"DRIVER={{{config.driver or DEFAULT_ODBC_DRIVER}}}",
            f"SERVER={config.host or 'localhost'},{config.port or 1433}",
        ]
        if config.database:
            parts.append(f"DATABASE={config.database}")
        if config.user:
            parts.append(f"UID={config.user}")
            parts.append(f"PWD={config.password or ''}")
        else:
            parts.append("Trusted_Connection=yes")
        if config.trust_server_certificate:
            parts.append("TrustServerCertificate=yes")
        return ';'.join(parts)

    async def _create_connection(self) -> None:
        """Open a SQL Server connection using pyodbc"""
        try:
            import pyodbc
        except ImportError:
            raise ImportError(
                "pyodbc is required for MSSQL datastore. "
                "Install it with: pip install pyodbc"
            )

        self._connection_pool = await asyncio.to_thread(
            pyodbc.connect, self._connection_string(), autocommit=True
        )

    async def _cleanup_connections(self) -> None:
        if self._connection_pool:
            await asyncio.to_thread(self._connection_pool.close)
            self._connection_pool = None

    async def _execute(self, sql: str, params: Optional[List[Any]], execution_id: Optional[str]) -> QueryResult:
        conn = self._require_connection()
        sql, ordered = named_to_qmark(sql, params)

        async with self._statement_lock:
            cursor = conn.cursor()
            try:
                # pyodbc supports cancelling a cursor from another thread
                with self._tracked(execution_id, cursor.cancel):
                    await asyncio.to_thread(cursor.execute, sql, *ordered)
                    columns, rows, row_count = await asyncio.to_thread(_fetch, cursor)
            finally:
                cursor.close()
        return QueryResult(rows=rows, columns=columns, row_count=row_count)

    def _run_transaction(self, conn, statements: List[Query]) -> TransactionResult:
        results = []
        total = 0
        conn.autocommit = False
        cursor = conn.cursor()
        try:
            for statement in statements:
                sql, ordered = named_to_qmark(statement.sql, statement.params)
                cursor.execute(sql, *ordered)
                affected = max(cursor.rowcount, 0)
                total += affected
                results.append({'sql': statement.sql, 'rowsAffected': affected})
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.autocommit = True
        return TransactionResult(rows_affected=total, results=results)

    async def execute_transaction(self, statements: List[Query]) -> TransactionResult:
        conn = self._require_connection()
        for statement in statements:
            self._logger.info(f"Executing MSSQL statement: {statement.sql}")
            if statement.params:
                self._logger.debug(f"Query parameters: {statement.params}")
        async with self._statement_lock:
            return await asyncio.to_thread(self._run_transaction, conn, statements)

    async def get_table_definition(self, schema: Optional[str], table: str) -> TableDefinition:
        schema = schema or self.connection_config.schema or 'dbo'

        columns = [
            {
                'name': row['name'],
                'native_type': _native_type(row),
                'nullable': row['is_nullable'] == 'YES',
                'default': row['column_default'],
                'auto_increment': row['is_identity'] == 1,
            }
            for row in (await self.query(_COLUMNS_QUERY, [schema, table])).rows
        ]
        primary_key = [row['column_name'] for row in (await self.query(_PRIMARY_KEY_QUERY, [schema, table])).rows]
        fk_rows = [
            {**row, 'column': row['column_name']}
            for row in (await self.query(_FOREIGN_KEYS_QUERY, [schema, table])).rows
        ]

        return self._build_table_definition(
            schema, table, columns, primary_key, self._group_foreign_keys(fk_rows)
        )

    async def get_schemas(self) -> List[SchemaInfo]:
        return self._build_schemas(
            (await self.query(_SCHEMA_COLUMNS_QUERY)).rows,
            (await self.query(_SCHEMA_PRIMARY_KEYS_QUERY)).rows,
            (await self.query(_SCHEMA_FOREIGN_KEYS_QUERY)).rows
        )

    def _run_showplan(self, conn, sql: str, analyze: bool) -> str:
        # SHOWPLAN_XML compiles without executing; STATISTICS XML executes and reports actuals
        option = "STATISTICS XML" if analyze else "SHOWPLAN_XML"
        cursor = conn.cursor()
        try:
            cursor.execute(f"SET {option} ON")
            try:
                cursor.execute(sql)
                plans = _fetch_plans(cursor)
            finally:
                cursor.execute(f"SET {option} OFF")
        finally:
            cursor.close()
        return '\n'.join(plans)

    async def _explain(self, sql: str, analyze: bool) -> Tuple[Any, str]:
        conn = self._require_connection()
        async with self._statement_lock:
            plan = await asyncio.to_thread(self._run_showplan, conn, sql, analyze)
        return plan, 'xml'

    async def get_sequences(self) -> List[SequenceInfo]:
        return [
            SequenceInfo(
                schema=row['schema'],
                name=row['name'],
                data_type=row['data_type'],
                start_value=row['start_value'],
                increment=row['increment'],
                min_value=row['min_value'],
                max_value=row['max_value'],
                last_value=row['last_value']
            )
            for row in (await self.query(_SEQUENCES_QUERY)).rows
        ]

    async def get_types(self) -> List[CustomTypeInfo]:
        # Alias types behave like domains; table types are row types
        return [
            CustomTypeInfo(
                schema=row['schema'],
                name=row['name'],
                type='composite' if row['is_table_type'] else 'domain',
                base_type=None if row['is_table_type'] else row['base_type']
            )
            for row in (await self.query(_TYPES_QUERY)).rows
        ]
