"""
SQL text helpers: pretty-printing, statement splitting and statement classification.
"""
import logging
import re
from typing import List, Optional

import sqlparse

logger = logging.getLogger(__name__)

_STATEMENT_PATTERNS = [
    re.compile(r'^\s*(SELECT|INSERT|UPDATE|DELETE|CREATE|ALTER|DROP|TRUNCATE|WITH)\s', re.IGNORECASE),
    re.compile(r'^\s*--'),
    re.compile(r'^\s*/\*'),
]

_QUERY_TYPES = ('INSERT', 'UPDATE', 'DELETE', 'CREATE', 'ALTER', 'DROP', 'TRUNCATE')


def format_sql(sql: str, keyword_case: str = "upper", indent_width: int = 2) -> str:
    """
    Pretty-print SQL.

    Args:
        sql: SQL text, possibly several statements
        keyword_case: "upper", "lower" or "preserve"
        indent_width: Spaces per indentation level

    Returns:
        Formatted SQL, or the input unchanged if it cannot be formatted
    """
    if not sql or not sql.strip():
        return sql

    try:
        return sqlparse.format(
            sql,
            reindent=True,
            keyword_case=None if keyword_case == "preserve" else keyword_case,
            indent_width=indent_width,
            use_space_around_operators=True
        )
    except (sqlparse.exceptions.SQLParseError, ValueError) as e:
        logger.warning(f"SQL formatting failed, returning original text: {e}")
        return sql


def split_statements(sql: str) -> List[str]:
    """Split a script into statements, dropping empty ones and trailing semicolons"""
    statements = []
    for statement in sqlparse.split(sql or ''):
        statement = statement.strip().rstrip(';').strip()
        if statement:
            statements.append(statement)
    return statements


def is_valid_sql(sql: str) -> bool:
    """Cheap check that the text starts like a SQL statement or comment"""
    if not sql or not sql.strip():
        return False
    return any(pattern.match(sql.strip()) for pattern in _STATEMENT_PATTERNS)


def get_query_type(sql: str) -> Optional[str]:
    trimmed = (sql or '').strip().upper()
    if trimmed.startswith('SELECT') or trimmed.startswith('WITH'):
        return 'SELECT'
    for query_type in _QUERY_TYPES:
        if trimmed.startswith(query_type):
            return query_type
    return None
