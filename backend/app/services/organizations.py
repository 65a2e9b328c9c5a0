"""Organization registry services and default execution org resolution."""

from __future__ import annotations

import logging
import re
import secrets
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import models, schemas

# purpose: manage workspace organizations and resolve which org executes lab work
# status: active
# depends_on: backend.app.models.Organization, backend.app.models.Project

logger = logging.getLogger(__name__)

DEFAULT_EXECUTION_ORG_NAME = "Default Internal Lab"


class OrganizationError(RuntimeError):
    """Base error for organization management."""


class OrganizationNotFound(OrganizationError):
    """Raised when an organization is missing, deleted or foreign."""


class OrganizationInUse(OrganizationError):
    """Raised when deleting an organization still referenced by projects."""


def generate_slug(name: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")[:48] or "org"
    return f"{base}-{secrets.token_hex(3)}"


def live_organizations(db: Session, workspace_id: UUID):
    return db.query(models.Organization).filter(
        models.Organization.workspace_id == workspace_id,
        models.Organization.deleted_at.is_(None),
    )


def get_organization(db: Session, workspace_id: UUID, org_id: UUID) -> models.Organization:
    org = live_organizations(db, workspace_id).filter(models.Organization.id == org_id).first()
    if not org:
        raise OrganizationNotFound("Organization not found")
    return org


def create_organization(
    db: Session,
    workspace_id: UUID,
    payload: schemas.OrganizationCreate,
) -> models.Organization:
    org = models.Organization(
        workspace_id=workspace_id,
        name=payload.name,
        slug=generate_slug(payload.name),
        type=payload.type,
        is_platform_workspace=payload.is_platform_workspace,
        contact_info=payload.contact_info,
    )
    db.add(org)
    db.flush()
    logger.info("Organization created: %s", org.id)
    return org


def update_organization(
    org: models.Organization, payload: schemas.OrganizationUpdate
) -> models.Organization:
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key != "contact_info":
            continue
        setattr(org, key, value if value is not None else {})
    return org


def delete_organization(db: Session, org: models.Organization) -> None:
    in_use = (
        db.query(models.Project.id)
        .filter(
            models.Project.deleted_at.is_(None),
            sa.or_(
                models.Project.client_org_id == org.id,
                models.Project.executing_org_id == org.id,
            ),
        )
        .first()
    )
    if in_use:
        raise OrganizationInUse("Organization is referenced by active projects")
    org.deleted_at = models.utcnow()
    org.is_active = False


def default_execution_org(db: Session, workspace_id: UUID) -> models.Organization:
    """Return the workspace's first organization, creating an internal lab if none exists."""
    org = (
        live_organizations(db, workspace_id)
        .order_by(models.Organization.created_at.asc(), models.Organization.id.asc())
        .first()
    )
    if org:
        return org
    org = models.Organization(
        workspace_id=workspace_id,
        name=DEFAULT_EXECUTION_ORG_NAME,
        slug=generate_slug(DEFAULT_EXECUTION_ORG_NAME),
        type="analyzer",
        is_platform_workspace=True,
        contact_info={},
    )
    db.add(org)
    db.flush()
    logger.info("Default execution organization created for workspace %s", workspace_id)
    return org


def resolve_execution_org(
    db: Session,
    workspace_id: UUID,
    requested_id: UUID | None,
    inherited_id: UUID | None = None,
) -> UUID:
    """Pick the executing org: explicit request, then inherited, then the workspace default."""
    if requested_id:
        return get_organization(db, workspace_id, requested_id).id
    if inherited_id:
        return inherited_id
    return default_execution_org(db, workspace_id).id
