from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.orm import Session

from . import models

# purpose: centralize workspace role checks shared by the route modules
# status: active

WRITE_ROLES = ("scientist", "manager", "admin")
MANAGE_ROLES = ("manager", "admin")


def check_workspace_role(user: models.User, roles: list[str] | tuple[str, ...]):
    if user.role not in roles:
        raise HTTPException(status_code=403, detail="Not authorized")


def require_admin(user: models.User):
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")


def ensure_can_write(user: models.User):
    check_workspace_role(user, WRITE_ROLES)


def get_workspace_user(db: Session, user: models.User, user_id: UUID) -> models.User:
    """Return a live user of the caller's workspace or raise 404."""
    member = (
        db.query(models.User)
        .filter(
            models.User.id == user_id,
            models.User.workspace_id == user.workspace_id,
            models.User.deleted_at.is_(None),
        )
        .first()
    )
    if not member:
        raise HTTPException(status_code=404, detail="User not found")
    return member
