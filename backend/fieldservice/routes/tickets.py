from __future__ import annotations
from flask import Blueprint, request, abort
from fieldservice import get_session_factory
from fieldservice.decorators.auth import require_permissions
from fieldservice.lifecycle import views
from fieldservice.lifecycle.errors import ValidationError
from fieldservice.lifecycle.records import (
    ALL_PRIORITIES, ALL_STATUSES, ALL_TYPES, PRIORITY_RANK, utcnow,
)
from fieldservice.services.policy import find_profile, has_permissions
from fieldservice.services.tickets import open_manager, with_notices
from fieldservice.utils.filters import apply_filters, parse_bool
from fieldservice.utils.listing import make_cached_list_response, handle_conditional, paginate
from fieldservice.utils.sorting import apply_multi_sort

tickets_bp = Blueprint('tickets', __name__)

SORT_FIELDS = {
    'created_at': lambda t: t.created_at,
    'updated_at': lambda t: t.updated_at,
    'priority': lambda t: PRIORITY_RANK.get(t.priority, 0),
    'status': lambda t: ALL_STATUSES.index(t.status) if t.status in ALL_STATUSES else len(ALL_STATUSES),
    'title': lambda t: t.title.lower(),
}

FILTERS = {
    'status': {'op': views.by_status, 'validate': lambda v: v in ALL_STATUSES},
    'priority': {'op': views.by_priority, 'validate': lambda v: v in ALL_PRIORITIES},
    'type': {'op': lambda rows, v: [t for t in rows if t.type == v], 'validate': lambda v: v in ALL_TYPES},
    'assigned_to': {'op': lambda rows, v: [t for t in rows if t.assigned_to == v]},
    'overdue': {
        'coerce': parse_bool,
        'op': lambda rows, v: [t for t in rows if views.is_overdue(t, utcnow()) == v],
    },
}


def _body() -> dict:
    data = request.json or {}
    if not isinstance(data, dict):
        raise ValidationError('JSON object body required')
    return data


@tickets_bp.get('')
@require_permissions('TKT.READ')
async def list_tickets():
    async with open_manager() as manager:
        rows = apply_filters(manager.tickets, FILTERS, request.args.to_dict())
    # collection order (newest created first) breaks ties
    position = {t.id: i for i, t in enumerate(rows)}
    rows = apply_multi_sort(rows, request.args.get('sort'), SORT_FIELDS, lambda t: position[t.id])
    page, total, limit, offset = paginate(rows)
    latest_ts = max((t.updated_at for t in page), default=None)
    resp, etag = make_cached_list_response([t.to_dict() for t in page], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@tickets_bp.post('')
@require_permissions('TKT.CREATE')
async def create_ticket():
    data = _body()
    async with open_manager() as manager:
        ticket = await manager.create(data)
        return with_notices({'data': ticket.to_dict()}, manager), 201


@tickets_bp.get('/<ticket_id>')
@require_permissions('TKT.READ')
async def get_ticket(ticket_id: str):
    async with open_manager() as manager:
        return {'data': manager.get(ticket_id).to_dict()}


@tickets_bp.patch('/<ticket_id>')
@require_permissions('TKT.UPDATE')
async def update_ticket(ticket_id: str):
    data = _body()
    if 'assigned_to' in data and not has_permissions('TKT.ASSIGN'):
        abort(403, description='Missing permission')
    async with open_manager() as manager:
        ticket = await manager.update(ticket_id, data)
        return with_notices({'data': ticket.to_dict()}, manager)


@tickets_bp.post('/<ticket_id>/status')
@require_permissions('TKT.UPDATE')
async def change_status(ticket_id: str):
    data = _body()
    if 'status' not in data:
        raise ValidationError('status required')
    async with open_manager() as manager:
        ticket = await manager.change_status(ticket_id, data['status'])
        return with_notices({'data': ticket.to_dict()}, manager)


@tickets_bp.post('/<ticket_id>/assign')
@require_permissions('TKT.ASSIGN')
async def assign_ticket(ticket_id: str):
    data = _body()
    if 'assigned_to' not in data:
        raise ValidationError('assigned_to required')
    assignee = data['assigned_to']
    if isinstance(assignee, (str, int)) and not isinstance(assignee, bool):
        assignee = str(assignee).strip() or None
    elif assignee is not None:
        raise ValidationError('assigned_to invalid')
    if assignee is not None:
        with get_session_factory()() as session:
            profile = find_profile(session, user_id=assignee)
            if profile is None or not profile.is_active:
                raise ValidationError('assigned_to must be an active profile')
    async with open_manager() as manager:
        ticket = await manager.assign(ticket_id, assignee)
        return with_notices({'data': ticket.to_dict()}, manager)


@tickets_bp.post('/<ticket_id>/comments')
@require_permissions('TKT.COMMENT')
async def add_comment(ticket_id: str):
    data = _body()
    async with open_manager() as manager:
        activity = await manager.add_comment(ticket_id, data.get('text'))
        return with_notices({'data': activity.to_dict()}, manager), 201


@tickets_bp.get('/<ticket_id>/activities')
@require_permissions('TKT.READ')
async def list_activities(ticket_id: str):
    async with open_manager() as manager:
        manager.get(ticket_id)
        return {'data': [a.to_dict() for a in manager.get_ticket_activities(ticket_id)]}


@tickets_bp.post('/<ticket_id>/media')
@require_permissions('TKT.UPDATE')
async def add_media(ticket_id: str):
    data = _body()
    async with open_manager() as manager:
        media = await manager.add_media(ticket_id, data.get('file_name'), data.get('url'), data.get('content_type'))
        return with_notices({'data': media.to_dict()}, manager), 201


@tickets_bp.get('/<ticket_id>/media')
@require_permissions('TKT.READ')
async def list_media(ticket_id: str):
    async with open_manager() as manager:
        media = await manager.get_ticket_media(ticket_id)
        return {'data': [m.to_dict() for m in media]}


@tickets_bp.delete('/<ticket_id>')
@require_permissions('TKT.DELETE')
async def delete_ticket(ticket_id: str):
    async with open_manager() as manager:
        deleted = await manager.delete(ticket_id)
        return with_notices({'deleted': deleted}, manager)
