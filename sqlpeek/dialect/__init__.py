"""
Dialect-aware type mapping and quoting.
"""

from .type_mapper import (
    resolve_database_type,
    normalize_logical_type,
    map_logical_type,
    map_column_type,
    map_native_type,
    parse_native_type,
)
from .quoting import (
    quote_identifier,
    unquote_identifier,
    qualify_table_name,
    quote_string,
    format_literal,
    placeholder,
)

__all__ = [
    'resolve_database_type',
    'normalize_logical_type',
    'map_logical_type',
    'map_column_type',
    'map_native_type',
    'parse_native_type',
    'quote_identifier',
    'unquote_identifier',
    'qualify_table_name',
    'quote_string',
    'format_literal',
    'placeholder',
]
