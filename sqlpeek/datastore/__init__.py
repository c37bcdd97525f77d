"""
Datastore module: one async adapter per supported database type.

Drivers are imported lazily on connect, so only the drivers for the
databases actually used need to be installed.
"""
from typing import Dict, Optional, Type, Union

from .base_datastore import BaseDatastore
from .postgres_datastore import PostgresDatastore
from .mysql_datastore import MySQLDatastore
from .sqlite_datastore import SQLiteDatastore
from .mssql_datastore import MSSQLDatastore
from ..core.enums import DatabaseType
from ..core.models import ConnectionConfig
from ..dialect.type_mapper import resolve_database_type
from ..tracking.query_tracker import QueryTracker

DATASTORE_CLASSES: Dict[DatabaseType, Type[BaseDatastore]] = {
    DatabaseType.POSTGRESQL: PostgresDatastore,
    DatabaseType.MYSQL: MySQLDatastore,
    DatabaseType.SQLITE: SQLiteDatastore,
    DatabaseType.MSSQL: MSSQLDatastore,
}


def create_datastore(
    name: str,
    db_type: Union[str, DatabaseType],
    connection: Union[ConnectionConfig, dict],
    tracker: Optional[QueryTracker] = None
) -> BaseDatastore:
    """Create the (unconnected) datastore for ``db_type``"""
    if isinstance(connection, dict):
        connection = ConnectionConfig(**connection)
    return DATASTORE_CLASSES[resolve_database_type(db_type)](name, connection, tracker)


__all__ = [
    'BaseDatastore',
    'PostgresDatastore',
    'MySQLDatastore',
    'SQLiteDatastore',
    'MSSQLDatastore',
    'DATASTORE_CLASSES',
    'create_datastore',
]
