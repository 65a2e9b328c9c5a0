"""Derived sample lineage services."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from . import organizations, stages

# purpose: derive sample portions up to a fixed depth and expose their ancestry
# status: active
# depends_on: backend.app.models.DerivedSample, backend.app.services.organizations

logger = logging.getLogger(__name__)

MAX_DERIVATION_DEPTH = 2


class LineageError(RuntimeError):
    """Base error for derived sample lineage."""


class DerivedSampleNotFound(LineageError):
    """Raised when a derived sample is missing, deleted or foreign."""


class InvalidDerivation(LineageError):
    """Raised when a derivation request is malformed or crosses lineages."""


class DerivationDepthExceeded(InvalidDerivation):
    """Raised when a derivation would nest deeper than the allowed depth."""


class DerivedSampleInUse(LineageError):
    """Raised when deleting a derived sample that has children or batch membership."""


def visible_derived(db: Session, workspace_id: UUID):
    return db.query(models.DerivedSample).filter(
        models.DerivedSample.owner_workspace_id == workspace_id,
        models.DerivedSample.deleted_at.is_(None),
    )


def get_derived(db: Session, workspace_id: UUID, derived_id: UUID) -> models.DerivedSample:
    derived = visible_derived(db, workspace_id).filter(models.DerivedSample.id == derived_id).first()
    if not derived:
        raise DerivedSampleNotFound("Derived sample not found")
    return derived


def create_derived(
    db: Session,
    user: models.User,
    sample: models.Sample,
    payload: schemas.DerivedSampleCreate,
) -> models.DerivedSample:
    label = (payload.derived_id or payload.name or "").strip()
    if not label:
        raise InvalidDerivation("Derived sample ID is required")
    if payload.execution_mode == "external" and not payload.external_reference:
        raise InvalidDerivation("External execution requires external_reference")

    depth = 0
    parent_id = None
    if payload.parent_derived_id:
        parent = get_derived(db, user.workspace_id, payload.parent_derived_id)
        if parent.root_sample_id != sample.id:
            raise InvalidDerivation("Parent derived sample belongs to a different root sample")
        depth = parent.depth + 1
        parent_id = parent.id
    if depth > MAX_DERIVATION_DEPTH:
        raise DerivationDepthExceeded("Maximum derivation depth exceeded")

    if payload.stage_id:
        stages.check_sample_placement(db, user.workspace_id, sample.project_id, payload.stage_id)

    try:
        executed_by = organizations.resolve_execution_org(
            db,
            user.workspace_id,
            payload.executed_by_org_id,
            sample.project.executing_org_id if sample.project else None,
        )
    except organizations.OrganizationNotFound as exc:
        raise InvalidDerivation("Executing organization not found in workspace") from exc

    meta = dict(payload.metadata)
    if payload.derivation_method:
        meta["derivation_method"] = payload.derivation_method

    derived = models.DerivedSample(
        owner_workspace_id=user.workspace_id,
        root_sample_id=sample.id,
        parent_id=parent_id,
        stage_id=payload.stage_id,
        derived_id=label,
        process_notes=payload.description,
        meta=meta,
        depth=depth,
        execution_mode=payload.execution_mode,
        executed_by_org_id=executed_by,
        external_reference=payload.external_reference,
        performed_at=payload.performed_at,
        created_by=user.id,
    )
    db.add(derived)
    db.flush()
    logger.info("Derived sample %s created at depth %d from sample %s", derived.id, depth, sample.id)
    return derived


def list_for_sample(db: Session, sample: models.Sample) -> list[models.DerivedSample]:
    return (
        visible_derived(db, sample.workspace_id)
        .filter(models.DerivedSample.root_sample_id == sample.id)
        .order_by(
            models.DerivedSample.depth.asc(),
            models.DerivedSample.created_at.asc(),
            models.DerivedSample.id.asc(),
        )
        .all()
    )


def lineage(derived: models.DerivedSample) -> dict:
    chain: list[UUID] = []
    node = derived.parent
    while node is not None:
        chain.append(node.id)
        node = node.parent
    return {
        "id": derived.id,
        "derived_id": derived.derived_id,
        "root_sample_id": derived.root_sample_id,
        "depth": derived.depth,
        "parent_chain": chain,
    }


def delete_derived(db: Session, derived: models.DerivedSample) -> None:
    children = (
        db.query(models.DerivedSample.id)
        .filter(
            models.DerivedSample.parent_id == derived.id,
            models.DerivedSample.deleted_at.is_(None),
        )
        .count()
    )
    if children:
        raise DerivedSampleInUse(f"Derived sample has {children} live child samples")
    in_batch = (
        db.query(models.BatchItem.id)
        .join(models.Batch, models.Batch.id == models.BatchItem.batch_id)
        .filter(
            models.BatchItem.derived_id == derived.id,
            models.Batch.deleted_at.is_(None),
        )
        .first()
    )
    if in_batch:
        raise DerivedSampleInUse("Derived sample is assigned to an active batch")
    derived.deleted_at = models.utcnow()
