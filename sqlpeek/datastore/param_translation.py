"""
Placeholder translation between the builder's dialect placeholders and the
paramstyle of the driver that executes them.

Quoted strings, quoted identifiers and comments are copied verbatim so a
literal '?' or '@p1' inside them is never touched.
"""
import re
from typing import Any, Iterator, List, Optional, Sequence, Tuple

_NAMED_PARAM = re.compile(r'@p(\d+)')


def _segments(sql: str, backslash_escapes: bool = False) -> Iterator[Tuple[bool, str]]:
    """
    Yield (is_code, text) chunks of ``sql``.

    Non-code chunks are string literals, quoted identifiers and comments.
    ``backslash_escapes`` follows MySQL string rules.
    """
    i = 0
    start = 0
    length = len(sql)
    while i < length:
        ch = sql[i]
        end = None
        if ch in ("'", '"', '`'):
            end = i + 1
            while end < length:
                if sql[end] == ch:
                    # Doubled quote is an escaped quote
                    if end + 1 < length and sql[end + 1] == ch:
                        end += 2
                        continue
                    break
                if backslash_escapes and ch == "'" and sql[end] == '\\' and end + 1 < length:
                    end += 2
                    continue
                end += 1
            end = min(end + 1, length)
        elif ch == '[':
            close = sql.find(']', i + 1)
            end = length if close == -1 else close + 1
        elif sql.startswith('--', i):
            newline = sql.find('\n', i)
            end = length if newline == -1 else newline
        elif sql.startswith('/*', i):
            close = sql.find('*/', i + 2)
            end = length if close == -1 else close + 2

        if end is None:
            i += 1
            continue
        if i > start:
            yield True, sql[start:i]
        yield False, sql[i:end]
        i = start = end
    if start < length:
        yield True, sql[start:]


def qmark_to_format(sql: str) -> str:
    """
    '?' placeholders to '%s' for format-paramstyle drivers (aiomysql).

    Literal '%' characters are doubled everywhere because the driver
    interpolates the whole statement text.
    """
    parts = []
    for is_code, text in _segments(sql, backslash_escapes=True):
        text = text.replace('%', '%%')
        if is_code:
            text = text.replace('?', '%s')
        parts.append(text)
    return ''.join(parts)


def named_to_qmark(sql: str, params: Optional[Sequence[Any]]) -> Tuple[str, List[Any]]:
    """
    '@pN' placeholders to '?' for qmark drivers (pyodbc).

    Parameters are reordered to follow placeholder occurrence, so '@p2'
    before '@p1' or a repeated '@p1' still binds the right values.
    """
    params = list(params or [])
    ordered: List[Any] = []

    def replace(match: 're.Match') -> str:
        # Leave @@variables and longer names such as @page alone
        before = match.string[match.start() - 1] if match.start() > 0 else ''
        if before == '@' or before.isalnum() or before == '_':
            return match.group(0)
        index = int(match.group(1))
        if index < 1 or index > len(params):
            raise ValueError(f"Placeholder @p{index} has no matching parameter")
        ordered.append(params[index - 1])
        return '?'

    parts = []
    for is_code, text in _segments(sql):
        if is_code:
            text = _NAMED_PARAM.sub(replace, text)
        parts.append(text)
    return ''.join(parts), ordered


def count_placeholders(sql: str, style: str) -> int:
    """Number of placeholder tokens outside literals and comments"""
    code = ''.join(text for is_code, text in _segments(sql) if is_code)
    if style == 'qmark':
        return code.count('?')
    if style == 'numeric':
        return len(re.findall(r'\$\d+', code))
    if style == 'named':
        return len(_NAMED_PARAM.findall(code))
    raise ValueError(f"Unknown placeholder style: {style}")
