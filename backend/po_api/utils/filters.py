from __future__ import annotations
from typing import Any, Dict, Optional
from po_api.errors import NotFound, ValidationError


def live(query, model):
    """Base predicate for every list/get: soft-deleted rows behave as nonexistent."""
    return query.filter(model.deleted_at.is_(None))


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic filter builder.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': type/func, 'validate': callable(optional) } }
    Parameters absent from ``params`` (or blank) contribute no predicate.
    """
    for name, meta in specs.items():
        if name not in params or params[name] is None or params[name] == '':
            continue
        val = params[name]
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError):
                raise ValidationError.for_field(name, 'invalid')
        if 'validate' in meta and not meta['validate'](val):
            raise ValidationError.for_field(name, 'invalid')
        query = meta['op'](query, val)
    return query


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ('true', '1', 'yes'):
        return True
    if lowered in ('false', '0', 'no'):
        return False
    raise ValueError(f'not a boolean: {value!r}')


def ilike_any(*columns):
    """Build an ``op`` matching a case-insensitive substring against any of ``columns``."""
    from sqlalchemy import or_

    def op(query, value):
        pattern = f'%{value}%'
        return query.filter(or_(*[c.ilike(pattern) for c in columns]))
    return op


def get_live(session, model, obj_id: int, label: Optional[str] = None):
    """Fetch a non-deleted row by id or raise 404 (deleted and missing look the same)."""
    from sqlalchemy import select
    obj = session.execute(
        select(model).where(model.id == obj_id, model.deleted_at.is_(None))
    ).scalar_one_or_none()
    if obj is None:
        raise NotFound(f'{label or model.__name__} not found')
    return obj
