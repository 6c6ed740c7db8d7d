# facility_booking/api/dependencies/auth.py
"""
Actor resolution.

Authentication happens upstream; the gateway forwards the authenticated
identity in ``X-User-Id`` and ``X-User-Role``.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from ...core.enums import ActorRole
from ...core.exceptions import ForbiddenException
from ...principal import Actor


def get_current_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Actor:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    try:
        role = ActorRole((x_user_role or ActorRole.USER.value).strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role: {x_user_role}",
        )
    return Actor(id=x_user_id.strip(), role=role)


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise ForbiddenException("Administrator access required")
    return actor


def require_privileged(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Admins and internal integrations (payment collaborator, jobs)."""
    if not actor.is_privileged:
        raise ForbiddenException("This endpoint is reserved for platform integrations")
    return actor
