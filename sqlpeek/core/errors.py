"""
Error taxonomy for statement synthesis and benchmarking.

Every error carries a machine-readable ``kind`` so callers can branch on it
without string matching, plus a human-readable message.
"""
from typing import Any, Dict, List, Optional


class SqlPeekError(Exception):
    """Base class for all sqlpeek errors"""
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {'success': False, 'error': self.message, 'kind': self.kind}


class ValidationError(SqlPeekError):
    """A table definition, alter batch or edit batch failed structural checks"""
    kind = "validation"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(", ".join(self.errors) if self.errors else "Validation failed")


class UnsupportedTypeError(SqlPeekError):
    """A logical type has no native mapping in the target dialect"""
    kind = "unsupported_type"

    def __init__(self, logical_type: str, db_type: Optional[str] = None):
        self.logical_type = logical_type
        self.db_type = db_type
        if db_type:
            message = f"Type '{logical_type}' is not supported for {db_type}"
        else:
            message = f"Unknown column type '{logical_type}'"
        super().__init__(message)


class UnsupportedOperationError(SqlPeekError):
    """An ALTER operation (or part of one) cannot be expressed in the target dialect"""
    kind = "unsupported_operation"


class MissingPrimaryKeyError(SqlPeekError):
    """The edit context cannot identify a unique target row"""
    kind = "missing_primary_key"


class InvalidRunCountError(SqlPeekError):
    kind = "invalid_run_count"


class MissingQueryError(SqlPeekError):
    kind = "missing_query"


class BenchmarkAbortedError(SqlPeekError):
    """
    A benchmark run failed part way through.

    ``partial_result`` holds the statistics of the runs that completed before
    the failure (``None`` if the very first run failed). The original error is
    chained as ``__cause__``.
    """
    kind = "benchmark_aborted"

    def __init__(self, message: str, partial_result=None, completed_runs: int = 0):
        super().__init__(message)
        self.partial_result = partial_result
        self.completed_runs = completed_runs

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['completedRuns'] = self.completed_runs
        if self.partial_result is not None:
            result['partialResult'] = self.partial_result.to_dict()
        return result
