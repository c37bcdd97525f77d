"""
Shared dependencies and helpers for the API routers.
"""
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import HTTPException

from .state import app_state
from ..config.config_loader import ConfigLoader
from ..config.global_config_loader import GlobalConfig, get_global_config
from ..core.enums import DatabaseType
from ..core.errors import SqlPeekError, ValidationError
from ..datastore import create_datastore
from ..tracking.query_tracker import QueryTracker

logger = logging.getLogger(__name__)


def get_app_config() -> GlobalConfig:
    if "global_config" not in app_state:
        app_state["global_config"] = get_global_config()
    return app_state["global_config"]


def get_query_tracker() -> QueryTracker:
    if "tracker" not in app_state:
        app_state["tracker"] = QueryTracker()
    return app_state["tracker"]


def get_datastore_factory() -> Callable:
    """Dependency returning the datastore factory; tests override it"""
    return create_datastore


def default_db_type() -> DatabaseType:
    return DatabaseType(get_app_config().defaults.database_type)


def parse_payload(loader: Callable, data: Any):
    """Run a ConfigLoader conversion, reporting malformed payloads as validation errors"""
    try:
        return loader(data)
    except SqlPeekError:
        raise
    except (ValueError, TypeError, KeyError) as e:
        raise ValidationError([f"Invalid request payload: {e}"])


def parse_request_config(config: Dict[str, Any]) -> Tuple[DatabaseType, Any]:
    return parse_payload(
        lambda data: ConfigLoader.request_config_from_dict(data, default_db_type()),
        config
    )


@asynccontextmanager
async def open_datastore(
    factory: Callable,
    config: Dict[str, Any],
    tracker: Optional[QueryTracker] = None
):
    """Create and connect a datastore for one request, always disconnecting afterwards"""
    db_type, connection = parse_request_config(config)
    datastore = factory("request", db_type, connection, tracker)
    await datastore.connect()
    try:
        yield datastore
    finally:
        await datastore.disconnect()


@contextmanager
def api_errors(action: str):
    """Turn unexpected failures into HTTP 500 responses"""
    try:
        yield
    except (HTTPException, SqlPeekError):
        raise
    except Exception as e:
        logger.error(f"{action} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e) or f"{action} failed")


def success(data: Any = None) -> Dict[str, Any]:
    return {"success": True, "data": data}
