from flask import Blueprint, request, abort
from fieldservice.config.pagination import NOTIFICATIONS_DEFAULT_LIMIT, NOTIFICATIONS_MAX_LIMIT, normalize_pagination
from fieldservice.decorators.auth import require_permissions
from fieldservice.services.tickets import open_manager

stats_bp = Blueprint('stats', __name__)


@stats_bp.get('/stats/me')
@require_permissions('STATS.READ')
async def my_stats():
    async with open_manager() as manager:
        return {'data': manager.user_stats()}


@stats_bp.get('/stats/dashboard')
@require_permissions('STATS.READ')
async def dashboard():
    async with open_manager() as manager:
        return {'data': manager.dashboard_stats()}


@stats_bp.get('/notifications')
@require_permissions('TKT.READ')
async def notifications():
    try:
        limit, _ = normalize_pagination(request.args.get('limit'), None,
                                        NOTIFICATIONS_DEFAULT_LIMIT, NOTIFICATIONS_MAX_LIMIT)
    except ValueError as e:
        abort(400, description=str(e))
    async with open_manager(load=False) as manager:
        rows = await manager.get_notifications(limit)
        return {'data': [n.to_dict() for n in rows]}
