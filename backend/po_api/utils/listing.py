from __future__ import annotations
from typing import Callable, Tuple
from flask import request
from sqlalchemy.orm import Query
from po_api.config.pagination import normalize_pagination
from po_api.errors import ValidationError


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        page, limit, offset = normalize_pagination(request.args.get('page'), request.args.get('limit'))
    except ValueError as e:
        raise ValidationError(str(e), {'page': 'int', 'limit': 'int'})
    total = q.count()
    return q.offset(offset).limit(limit), total, page, limit


def build_list_payload(rows: list, total: int, page: int, limit: int):
    return {
        'data': rows,
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'total_pages': (total + limit - 1) // limit,
            'returned': len(rows)
        }
    }


def list_response(q: Query, serialize: Callable):
    paged_q, total, page, limit = apply_pagination(q)
    rows = [serialize(r) for r in paged_q.all()]
    return build_list_payload(rows, total, page, limit)
