from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List
from fieldservice.lifecycle.errors import ValidationError


def parse_sort_expr(sort_expr: str | None, allowed: Iterable[str]) -> List[tuple]:
    """Split 'a,-b' into [('a', False), ('b', True)]; unknown keys raise ValidationError."""
    allowed = set(allowed)
    tokens = []
    for raw in (sort_expr or '').split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token[1:] if desc else token
        if key not in allowed:
            raise ValidationError(f'Invalid sort field {key}')
        tokens.append((key, desc))
    return tokens


def apply_multi_sort(items: Iterable[Any], sort_expr: str | None, allowed: Dict[str, Callable[[Any], Any]], tie_breaker: Callable[[Any], Any]) -> List[Any]:
    """Apply multi-field sort to a sequence of records.
    sort_expr: comma-separated tokens, each optionally prefixed with '-'.
    allowed: mapping of field key -> key function.
    tie_breaker: key function applied first (ascending) for deterministic ordering.

    Key functions must never return None; map missing values to a sentinel that
    compares with the rest of the column.
    """
    rows = sorted(items, key=tie_breaker)
    # Python's sort is stable: sort by least significant key first
    for key, desc in reversed(parse_sort_expr(sort_expr, allowed)):
        rows.sort(key=allowed[key], reverse=desc)
    return rows
