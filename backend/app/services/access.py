"""Object-level access grants within a workspace."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas

# purpose: record per-user access levels on individual projects, samples, batches and analyses
# status: active
# depends_on: backend.app.models.ObjectAccess

logger = logging.getLogger(__name__)

OBJECT_MODELS = {
    "project": (models.Project, models.Project.workspace_id),
    "sample": (models.Sample, models.Sample.workspace_id),
    "derived_sample": (models.DerivedSample, models.DerivedSample.owner_workspace_id),
    "batch": (models.Batch, models.Batch.workspace_id),
    "analysis": (models.Analysis, models.Analysis.workspace_id),
}


class AccessError(RuntimeError):
    """Base error for access grants."""


class AccessNotFound(AccessError):
    """Raised when a grant, user or target object is not visible."""


class AccessAlreadyExists(AccessError):
    """Raised when the user already holds a grant on the object."""


def ensure_object(db: Session, workspace_id: UUID, object_type: str, object_id: UUID) -> None:
    model, workspace_column = OBJECT_MODELS[object_type]
    found = (
        db.query(model.id)
        .filter(
            model.id == object_id,
            workspace_column == workspace_id,
            model.deleted_at.is_(None),
        )
        .first()
    )
    if not found:
        raise AccessNotFound(f"{object_type.replace('_', ' ').capitalize()} not found")


def _grant_query(db: Session, workspace_id: UUID, object_type: str, object_id: UUID):
    return db.query(models.ObjectAccess).filter(
        models.ObjectAccess.workspace_id == workspace_id,
        models.ObjectAccess.object_type == object_type,
        models.ObjectAccess.object_id == object_id,
    )


def get_grant(
    db: Session, workspace_id: UUID, object_type: str, object_id: UUID, user_id: UUID
) -> models.ObjectAccess:
    grant = (
        _grant_query(db, workspace_id, object_type, object_id)
        .filter(models.ObjectAccess.user_id == user_id)
        .first()
    )
    if not grant:
        raise AccessNotFound("Access grant not found")
    return grant


def grant_access(
    db: Session, actor: models.User, payload: schemas.AccessGrantCreate
) -> models.ObjectAccess:
    member = (
        db.query(models.User)
        .filter(
            models.User.id == payload.user_id,
            models.User.workspace_id == actor.workspace_id,
            models.User.deleted_at.is_(None),
        )
        .first()
    )
    if not member:
        raise AccessNotFound("User not found")
    ensure_object(db, actor.workspace_id, payload.object_type, payload.object_id)
    existing = (
        _grant_query(db, actor.workspace_id, payload.object_type, payload.object_id)
        .filter(models.ObjectAccess.user_id == member.id)
        .first()
    )
    if existing:
        raise AccessAlreadyExists("User already has access to this object")
    grant = models.ObjectAccess(
        workspace_id=actor.workspace_id,
        user_id=member.id,
        object_type=payload.object_type,
        object_id=payload.object_id,
        access_level=payload.access_level,
        granted_by=actor.id,
    )
    db.add(grant)
    db.flush()
    logger.info(
        "Access %s on %s %s granted to %s",
        grant.access_level, grant.object_type, grant.object_id, member.id,
    )
    return grant


def list_grants(db: Session, workspace_id: UUID, object_type: str, object_id: UUID):
    return (
        _grant_query(db, workspace_id, object_type, object_id)
        .order_by(models.ObjectAccess.created_at.desc(), models.ObjectAccess.id.desc())
        .all()
    )


def access_level_for(
    db: Session, user: models.User, object_type: str, object_id: UUID
) -> str | None:
    grant = (
        _grant_query(db, user.workspace_id, object_type, object_id)
        .filter(models.ObjectAccess.user_id == user.id)
        .first()
    )
    return grant.access_level if grant else None


def revoke_access(db: Session, grant: models.ObjectAccess) -> None:
    db.delete(grant)
    db.flush()
    logger.info("Access on %s %s revoked from %s", grant.object_type, grant.object_id, grant.user_id)
