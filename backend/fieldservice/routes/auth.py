from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from fieldservice import get_db
from fieldservice.services.policy import compute_effective_permissions, find_profile

auth_bp = Blueprint('auth', __name__)


@auth_bp.post('/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    profile = find_profile(session, email=email)
    if not profile or not profile.verify_password(password):
        abort(401, description='invalid credentials')
    if not profile.is_active:
        abort(403, description='profile inactive')
    eff = compute_effective_permissions(profile)
    claims = {
        'role': eff['role'],
        'perms': eff['perms'],
        'email': profile.email,
    }
    token = create_access_token(identity=profile.id, additional_claims=claims)
    return {'access_token': token}


@auth_bp.get('/me')
@jwt_required()
def me():
    session = get_db()
    profile = find_profile(session, user_id=get_jwt_identity())
    if not profile:
        abort(404)
    eff = compute_effective_permissions(profile)
    return {
        'id': profile.id,
        'email': profile.email,
        'full_name': profile.full_name,
        'role': eff['role'],
        'perms': eff['perms'],
        'is_active': profile.is_active,
    }
