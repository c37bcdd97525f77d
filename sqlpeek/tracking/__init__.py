from .query_tracker import QueryTracker, CancellableHandle, CancelResult

__all__ = ['QueryTracker', 'CancellableHandle', 'CancelResult']
