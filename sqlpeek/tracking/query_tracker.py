"""
Registry of in-flight queries that can be cancelled by execution id.

The tracker is an ordinary object owned by whoever runs queries (the API
application state, a CLI session); there is no module-level registry.
"""
import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..core.enums import DatabaseType

logger = logging.getLogger(__name__)


@dataclass
class CancellableHandle:
    """
    What the tracker needs to abort one running query.

    ``cancel`` may be a plain callable or a coroutine function; ``None``
    means the driver offers no way to interrupt the query.
    """
    db_type: DatabaseType
    cancel: Optional[Callable[[], Any]] = None


@dataclass
class ActiveQuery:
    execution_id: str
    handle: CancellableHandle
    started_at: float = field(default_factory=time.time)


@dataclass
class CancelResult:
    cancelled: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'cancelled': self.cancelled}
        if self.error:
            result['error'] = self.error
        return result


class QueryTracker:
    """Tracks active queries and cancels them on request"""

    def __init__(self):
        self._active: Dict[str, ActiveQuery] = {}

    def register(self, execution_id: str, handle: CancellableHandle) -> None:
        self._active[execution_id] = ActiveQuery(execution_id=execution_id, handle=handle)
        logger.info(f"Registered query {execution_id}")

    def unregister(self, execution_id: str) -> None:
        if self._active.pop(execution_id, None) is not None:
            logger.info(f"Unregistered query {execution_id}")

    async def cancel(self, execution_id: str) -> CancelResult:
        """
        Cancel a running query.

        The query is removed from the registry whether or not the driver
        call succeeds.
        """
        query = self._active.get(execution_id)
        if query is None:
            return CancelResult(cancelled=False, error="Query not found or already completed")

        logger.info(f"Cancelling query {execution_id}")
        try:
            if query.handle.cancel is None:
                logger.info(f"{query.handle.db_type.value} query {execution_id} cannot be cancelled")
                return CancelResult(
                    cancelled=False,
                    error=f"Query cancellation is not supported for {query.handle.db_type.value}"
                )
            outcome = query.handle.cancel()
            if inspect.isawaitable(outcome):
                await outcome
            return CancelResult(cancelled=True)
        except Exception as e:
            logger.error(f"Error cancelling query {execution_id}: {e}")
            return CancelResult(cancelled=False, error=str(e))
        finally:
            self._active.pop(execution_id, None)

    def is_active(self, execution_id: str) -> bool:
        return execution_id in self._active

    @property
    def active_count(self) -> int:
        return len(self._active)

    @staticmethod
    def generate_execution_id() -> str:
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
