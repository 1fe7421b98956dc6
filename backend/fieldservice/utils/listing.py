"""List response helpers: pagination envelope, ETag and conditional GET.

Ticket lists are built from the manager's in-memory collection, so
pagination slices a Python list rather than a query.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, Sequence, Tuple
from flask import request, abort, make_response
from fieldservice.config.pagination import normalize_pagination
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """UTC tz-aware, whole seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def _iso(dt: datetime) -> str:
    return canonicalize_timestamp(dt).isoformat().replace('+00:00', 'Z')


def paginate(items: Sequence) -> Tuple[List, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    return list(items[offset:offset + limit]), len(items), limit, offset


def compute_etag(ids: Iterable[str], total: int, limit: int, offset: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def _http_date(dt: datetime) -> str:
    return format_datetime(canonicalize_timestamp(dt), usegmt=True)


def _stamp(resp, etag: str, latest_ts: Optional[datetime]):
    resp.headers['ETag'] = etag
    if latest_ts is not None:
        resp.headers['Last-Modified'] = _http_date(latest_ts)
        resp.headers['X-Last-Modified-ISO'] = _iso(latest_ts)
    return resp


def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    """Build the list response; returns (response, etag)."""
    etag = compute_etag([r.get('id') for r in rows], total, limit, offset, _iso(latest_ts) if latest_ts else '')
    resp = make_response(build_list_payload(rows, total, limit, offset))
    return _stamp(resp, etag, latest_ts), etag


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Return a 304 response when the client's copy is current, else None.

    If-None-Match takes precedence over If-Modified-Since.
    """
    inm = request.headers.get('If-None-Match')
    if inm:
        if inm.strip('"') == etag_value:
            return _stamp(make_response('', 304), etag_value, latest_ts)
        return None
    ims = _parse_if_modified_since(request.headers.get('If-Modified-Since', ''))
    if ims and latest_ts and canonicalize_timestamp(latest_ts) <= canonicalize_timestamp(ims) + TIMESTAMP_TOLERANCE:
        return _stamp(make_response('', 304), etag_value, latest_ts)
    return None
