from __future__ import annotations
from typing import Any, Dict, Iterable, List
from fieldservice.lifecycle.errors import ValidationError


def apply_filters(items: Iterable[Any], specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]) -> List[Any]:
    """Generic in-memory filter builder.

    specs: { param_name: { 'op': callable(items, value)->items, 'coerce': type/func, 'validate': callable(optional) } }
    """
    rows = list(items)
    for name, meta in specs.items():
        if name not in params or params[name] is None:
            continue
        val = params[name]
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                raise ValidationError(f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            raise ValidationError(f'{name} invalid')
        rows = list(meta['op'](rows, val))
    return rows


def parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in ('1', 'true', 'yes'):
        return True
    if value in ('0', 'false', 'no'):
        return False
    raise ValueError(raw)
