from .sql_builder import SqlBuilder, build_batch_queries, build_preview_sql
from .sql_formatter import format_sql, get_query_type, is_valid_sql, split_statements
from .validation import validate_table_definition, validate_alter_batch, validate_edit_batch

__all__ = [
    'SqlBuilder',
    'build_batch_queries',
    'build_preview_sql',
    'format_sql',
    'split_statements',
    'is_valid_sql',
    'get_query_type',
    'validate_table_definition',
    'validate_alter_batch',
    'validate_edit_batch',
]
