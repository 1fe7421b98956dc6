from __future__ import annotations
from typing import Optional, Set
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select
from fieldservice.models.profile import ProfileModel
from fieldservice.constants.permissions import permissions_for_role
from fieldservice.lifecycle.records import CurrentUser, Identity


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def compute_effective_permissions(profile: ProfileModel):
    return {
        'role': profile.role,
        'perms': permissions_for_role(profile.role),
    }


def find_profile(session, *, user_id: Optional[str] = None, email: Optional[str] = None) -> Optional[ProfileModel]:
    q = select(ProfileModel)
    if user_id is not None:
        q = q.where(ProfileModel.id == user_id)
    if email is not None:
        q = q.where(ProfileModel.email == email)
    return session.execute(q).scalar_one_or_none()


def current_identity() -> Identity:
    """Identity for the JWT subject, with the profile read fresh from the database.

    A deleted or deactivated profile yields an unauthenticated identity even
    while the token is still valid.
    """
    from fieldservice import get_session_factory
    user_id = get_jwt_identity()
    if user_id is None:
        return Identity()
    with get_session_factory()() as session:
        row = find_profile(session, user_id=str(user_id))
        profile = row.to_record() if row else None
        email = row.email if row else get_jwt().get('email')
    return Identity(user=CurrentUser(id=str(user_id), email=email), profile=profile)
