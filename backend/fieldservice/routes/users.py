from flask import Blueprint, request, abort
from flask_jwt_extended import get_jwt_identity, jwt_required
from sqlalchemy import select, func
from fieldservice import get_db
from fieldservice.config.pagination import normalize_pagination
from fieldservice.decorators.auth import require_permissions
from fieldservice.lifecycle.errors import ValidationError
from fieldservice.lifecycle.records import ALL_ROLES, utcnow
from fieldservice.models.profile import ProfileModel
from fieldservice.services.policy import find_profile, has_permissions
from fieldservice.utils.listing import handle_conditional, make_cached_list_response
from fieldservice.utils.validation import optional_text, validate_status

users_bp = Blueprint('users', __name__)

EDITABLE_FIELDS = {'full_name'}


def _profile_or_404(session, user_id: str) -> ProfileModel:
    profile = find_profile(session, user_id=user_id)
    if not profile:
        abort(404)
    return profile


def _refuse_self(user_id: str, action: str):
    # the acting admin always stays an active admin
    if str(get_jwt_identity()) == user_id:
        raise ValidationError(f'cannot {action} your own profile')


@users_bp.get('')
@require_permissions('USR.READ')
def list_users():
    """Active profiles ordered by name, optionally narrowed to one role (assignee picker)."""
    session = get_db()
    q = select(ProfileModel).where(ProfileModel.is_active.is_(True))
    role = request.args.get('role')
    if role:
        q = q.where(ProfileModel.role == validate_status(role, ALL_ROLES, 'role'))
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = session.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = session.execute(
        q.order_by(ProfileModel.full_name.asc(), ProfileModel.id.asc()).offset(offset).limit(limit)
    ).scalars().all()
    latest_ts = max((p.updated_at for p in rows if p.updated_at), default=None)
    resp, etag = make_cached_list_response([p.to_dict() for p in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@users_bp.patch('/<user_id>')
@jwt_required()
def update_user(user_id: str):
    if str(get_jwt_identity()) != user_id and not has_permissions('USR.MANAGE'):
        abort(403, description='Missing permission')
    data = request.json or {}
    unknown = set(data) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f'fields not editable: {sorted(unknown)}')
    session = get_db()
    profile = _profile_or_404(session, user_id)
    if 'full_name' in data:
        full_name = optional_text(data['full_name'], 'full_name')
        profile.full_name = full_name.strip() if full_name and full_name.strip() else None
    profile.updated_at = utcnow()
    session.commit()
    return {'data': profile.to_dict()}


@users_bp.patch('/<user_id>/role')
@require_permissions('USR.MANAGE')
def update_user_role(user_id: str):
    data = request.json or {}
    role = validate_status(data.get('role'), ALL_ROLES, 'role')
    _refuse_self(user_id, 'change the role of')
    session = get_db()
    profile = _profile_or_404(session, user_id)
    profile.role = role
    profile.updated_at = utcnow()
    session.commit()
    return {'data': profile.to_dict()}


@users_bp.post('/<user_id>/deactivate')
@require_permissions('USR.MANAGE')
def deactivate_user(user_id: str):
    _refuse_self(user_id, 'deactivate')
    session = get_db()
    profile = _profile_or_404(session, user_id)
    if profile.is_active:
        profile.is_active = False
        profile.updated_at = utcnow()
        session.commit()
    return {'data': profile.to_dict()}
