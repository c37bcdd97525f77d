"""
Base datastore interface for all database connection implementations.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.enums import DatabaseType
from ..core.errors import MissingQueryError
from ..core.edit_models import Query
from ..core.models import (
    ColumnInfo, ConnectionConfig, CustomTypeInfo, ExplainResult, MultiQueryResult, QueryResult, SchemaInfo,
    SequenceInfo, TableInfo, TransactionResult
)
from ..core.schema_models import ColumnDefinition, ForeignKeyDefinition, TableDefinition
from ..dialect.type_mapper import parse_native_type
from ..tracking.query_tracker import CancellableHandle, QueryTracker
from ..utils.sql_formatter import split_statements


class BaseDatastore(ABC):
    """
    Abstract base class for all datastore implementations.

    Provides common interface for database connection management with:
    - Lazy loading of database drivers
    - Idempotent connect/disconnect operations
    - Optional registration of running queries with a QueryTracker
    """
    db_type: DatabaseType = None

    def __init__(self, name: str, connection_config: ConnectionConfig, tracker: Optional[QueryTracker] = None):
        self.name = name
        self.connection_config = connection_config
        self.tracker = tracker
        self._connection_pool = None
        self._connection_lock = asyncio.Lock()
        self._is_connected = False
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def is_connected(self) -> bool:
        """Check if the datastore is currently connected"""
        return self._is_connected

    @abstractmethod
    async def _create_connection(self) -> None:
        """Create the actual database connection - implemented by subclasses"""
        pass

    @abstractmethod
    async def _cleanup_connections(self) -> None:
        """Clean up database connections - implemented by subclasses"""
        pass

    @abstractmethod
    async def _execute(self, sql: str, params: Optional[List[Any]], execution_id: Optional[str]) -> QueryResult:
        """Run one statement on a pooled connection - implemented by subclasses"""
        pass

    @abstractmethod
    async def execute_transaction(self, statements: List[Query]) -> TransactionResult:
        """
        Execute statements in order inside one transaction.

        Either every statement is committed or none is.

        Returns:
            TransactionResult with the summed affected-row count
        """
        pass

    @abstractmethod
    async def get_table_definition(self, schema: Optional[str], table: str) -> TableDefinition:
        """
        Read a table's structure from the catalog.

        Raises:
            ValueError: If the table does not exist
        """
        pass

    @abstractmethod
    async def get_schemas(self) -> List[SchemaInfo]:
        """List user schemas with their tables, views and columns"""
        pass

    @abstractmethod
    async def _explain(self, sql: str, analyze: bool) -> Tuple[Any, str]:
        """Return the dialect's plan for ``sql`` and its format - implemented by subclasses"""
        pass

    async def explain(self, sql: str, analyze: bool = False) -> ExplainResult:
        """
        Fetch the execution plan of one statement.

        Args:
            sql: Statement to explain; a trailing semicolon is ignored
            analyze: Also execute the statement and report actual timings

        Raises:
            MissingQueryError: If sql is blank
            UnsupportedOperationError: If the dialect cannot analyze
        """
        statement = (sql or '').strip().rstrip(';').strip()
        if not statement:
            raise MissingQueryError("SQL query is required")
        self._require_connection()
        self._logger.info(f"Explaining {self.db_type.value} query (analyze={analyze}): {statement}")

        start = time.perf_counter()
        plan, plan_format = await self._explain(statement, analyze)
        return ExplainResult(plan=plan, format=plan_format, duration_ms=(time.perf_counter() - start) * 1000)

    async def get_sequences(self) -> List[SequenceInfo]:
        """Sequences in user schemas; empty where the dialect has none"""
        return []

    async def get_types(self) -> List[CustomTypeInfo]:
        """User-defined types; empty where the dialect has none"""
        return []

    @staticmethod
    def _build_schemas(
        column_rows: List[Dict[str, Any]],
        primary_key_rows: List[Dict[str, Any]],
        foreign_key_rows: List[Dict[str, Any]]
    ) -> List[SchemaInfo]:
        """
        Assemble SchemaInfos from catalog rows, keeping catalog order.

        Column rows carry table_schema, table_name, table_type, column_name,
        data_type and nullable. Key rows carry table_schema, table_name and
        column_name; foreign key rows add referenced_schema, referenced_table
        and referenced_column.
        """
        primary_keys = {(r['table_schema'], r['table_name'], r['column_name']) for r in primary_key_rows}
        foreign_keys = {}
        for row in foreign_key_rows:
            reference = {'referencedTable': row['referenced_table'], 'referencedColumn': row['referenced_column']}
            if row.get('referenced_schema'):
                reference = {'referencedSchema': row['referenced_schema'], **reference}
            foreign_keys[(row['table_schema'], row['table_name'], row['column_name'])] = reference

        schemas: Dict[str, SchemaInfo] = {}
        tables: Dict[Tuple[str, str], TableInfo] = {}
        for row in column_rows:
            schema_name, table_name = row['table_schema'], row['table_name']
            schema = schemas.get(schema_name)
            if schema is None:
                schema = schemas[schema_name] = SchemaInfo(name=schema_name)
            table = tables.get((schema_name, table_name))
            if table is None:
                table_type = 'view' if 'VIEW' in str(row.get('table_type') or '').upper() else 'table'
                table = tables[(schema_name, table_name)] = TableInfo(name=table_name, type=table_type)
                schema.tables.append(table)
            key = (schema_name, table_name, row['column_name'])
            table.columns.append(ColumnInfo(
                name=row['column_name'],
                data_type=row['data_type'],
                nullable=bool(row.get('nullable', True)),
                is_primary_key=key in primary_keys,
                foreign_key=foreign_keys.get(key)
            ))
        return list(schemas.values())

    async def connect(self, logger: Optional[logging.Logger] = None) -> None:
        """
        Connect to the datastore - idempotent operation.

        Args:
            logger: Optional logger for connection messages
        """
        logger = logger or self._logger
        async with self._connection_lock:
            if self._is_connected:
                return

            logger.info(f"Connecting to {self.__class__.__name__}: {self.name}")

            try:
                await self._create_connection()
                self._is_connected = True
                logger.info(f"Successfully connected to {self.__class__.__name__}: {self.name}")
            except Exception as e:
                logger.error(f"Failed to connect to {self.__class__.__name__} {self.name}: {e}")
                await self._cleanup_connections()
                raise

    async def disconnect(self, logger: Optional[logging.Logger] = None) -> None:
        """
        Disconnect from the datastore - idempotent operation.

        Args:
            logger: Optional logger for disconnection messages
        """
        logger = logger or self._logger
        async with self._connection_lock:
            if not self._is_connected:
                return

            logger.info(f"Disconnecting from {self.__class__.__name__}: {self.name}")

            try:
                await self._cleanup_connections()
                logger.info(f"Successfully disconnected from {self.__class__.__name__}: {self.name}")
            except Exception as e:
                logger.error(f"Error during disconnect from {self.__class__.__name__} {self.name}: {e}")
            finally:
                # Still mark as disconnected even if cleanup failed
                self._is_connected = False

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    def _require_connection(self):
        if not self._is_connected or self._connection_pool is None:
            raise RuntimeError(f"Datastore {self.name} is not connected. Call connect() first.")
        return self._connection_pool

    @contextmanager
    def _tracked(self, execution_id: Optional[str], cancel: Optional[Callable[[], Any]]):
        """Register the running statement with the tracker for its duration"""
        if self.tracker is None or not execution_id:
            yield
            return
        self.tracker.register(execution_id, CancellableHandle(db_type=self.db_type, cancel=cancel))
        try:
            yield
        finally:
            self.tracker.unregister(execution_id)

    async def query(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        execution_id: Optional[str] = None
    ) -> QueryResult:
        """
        Execute a single statement.

        Args:
            sql: Statement using the dialect's builder placeholders
            params: Optional query parameters
            execution_id: Register the query under this id so it can be cancelled

        Returns:
            QueryResult with rows for row-returning statements, otherwise the affected-row count
        """
        self._require_connection()
        self._logger.info(f"Executing {self.db_type.value} query: {sql}")
        if params:
            self._logger.debug(f"Query parameters: {params}")

        start = time.perf_counter()
        try:
            result = await self._execute(sql, list(params) if params else None, execution_id)
        except Exception as e:
            self._logger.error(f"{self.db_type.value} query failed: {e}")
            raise
        result.duration_ms = (time.perf_counter() - start) * 1000
        return result

    async def query_multiple(self, sql: str, execution_id: Optional[str] = None) -> MultiQueryResult:
        """Split a script into statements and execute them one after another"""
        statements = split_statements(sql)
        if not statements:
            raise MissingQueryError("SQL query is required")

        start = time.perf_counter()
        results = [await self.query(statement, execution_id=execution_id) for statement in statements]
        return MultiQueryResult(results=results, total_duration_ms=(time.perf_counter() - start) * 1000)

    def _build_table_definition(
        self,
        schema: Optional[str],
        table: str,
        columns: List[Dict[str, Any]],
        primary_key: List[str],
        foreign_keys: List[ForeignKeyDefinition]
    ) -> TableDefinition:
        """
        Assemble a TableDefinition from catalog rows.

        Column rows carry name, native_type, nullable, auto_increment and either
        default (SQL expression) or default_value (literal value).
        """
        if not columns:
            raise ValueError(f"Table {schema + '.' if schema else ''}{table} does not exist")

        definitions = []
        for row in columns:
            logical, length, precision, scale = parse_native_type(row['native_type'], self.db_type)
            auto_increment = bool(row.get('auto_increment'))
            default = row.get('default')
            definitions.append(ColumnDefinition(
                name=row['name'],
                data_type=logical.value,
                nullable=bool(row.get('nullable', True)),
                is_primary_key=row['name'] in primary_key and len(primary_key) == 1,
                auto_increment=auto_increment,
                default_value=None if auto_increment else row.get('default_value'),
                default_expression=None if auto_increment or default is None else str(default),
                length=length,
                precision=precision,
                scale=scale
            ))

        return TableDefinition(
            name=table,
            schema=schema,
            columns=definitions,
            primary_key=list(primary_key) if len(primary_key) > 1 else None,
            foreign_keys=foreign_keys
        )

    @staticmethod
    def _group_foreign_keys(rows: List[Dict[str, Any]]) -> List[ForeignKeyDefinition]:
        """Fold one-row-per-column catalog output into ForeignKeyDefinitions"""
        grouped: Dict[str, ForeignKeyDefinition] = {}
        for row in rows:
            key = row.get('key', row.get('name'))
            fk = grouped.get(key)
            if fk is None:
                fk = grouped[key] = ForeignKeyDefinition(
                    name=row.get('name'),
                    columns=[],
                    referenced_schema=row.get('referenced_schema'),
                    referenced_table=row['referenced_table'],
                    referenced_columns=[],
                    on_delete=row.get('on_delete'),
                    on_update=row.get('on_update')
                )
            fk.columns.append(row['column'])
            fk.referenced_columns.append(row['referenced_column'])
        return list(grouped.values())
