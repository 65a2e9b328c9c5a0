"""Analysis batch assembly services."""

from __future__ import annotations

import logging
import secrets
import string
import time
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from . import organizations

# purpose: group derived samples into ordered batches that travel to an executing lab
# status: active
# depends_on: backend.app.models.Batch, backend.app.models.BatchItem

logger = logging.getLogger(__name__)

_LABEL_ALPHABET = string.ascii_lowercase + string.digits


class BatchError(RuntimeError):
    """Base error for batch management."""


class BatchNotFound(BatchError):
    """Raised when a batch or batch item cannot be located."""


class InvalidBatch(BatchError):
    """Raised when a batch payload is incomplete or references unknown samples."""


class BatchItemConflict(BatchError):
    """Raised when a derived sample is already part of the batch."""


def generate_label() -> str:
    suffix = "".join(secrets.choice(_LABEL_ALPHABET) for _ in range(9))
    return f"BATCH-{int(time.time() * 1000)}-{suffix}"


def visible_batches(db: Session, workspace_id: UUID):
    return db.query(models.Batch).filter(
        models.Batch.workspace_id == workspace_id,
        models.Batch.deleted_at.is_(None),
    )


def get_batch(db: Session, workspace_id: UUID, batch_id: UUID) -> models.Batch:
    batch = visible_batches(db, workspace_id).filter(models.Batch.id == batch_id).first()
    if not batch:
        raise BatchNotFound("Batch not found")
    return batch


def _resolve_derived(db: Session, workspace_id: UUID, ids: list[UUID]) -> list[models.DerivedSample]:
    if len(set(ids)) != len(ids):
        raise InvalidBatch("Duplicate derived sample ids in request")
    rows = (
        db.query(models.DerivedSample)
        .filter(
            models.DerivedSample.id.in_(ids),
            models.DerivedSample.owner_workspace_id == workspace_id,
            models.DerivedSample.deleted_at.is_(None),
        )
        .all()
    )
    by_id = {row.id: row for row in rows}
    missing = [str(i) for i in ids if i not in by_id]
    if missing:
        raise InvalidBatch(f"Derived samples not found: {', '.join(missing)}")
    return [by_id[i] for i in ids]


def _stamp_status(batch: models.Batch, status: str) -> None:
    batch.status = status
    if status == "sent" and batch.sent_at is None:
        batch.sent_at = models.utcnow()
    if status == "completed" and batch.completed_at is None:
        batch.completed_at = models.utcnow()


def create_batch(
    db: Session, user: models.User, payload: schemas.BatchCreate
) -> models.Batch:
    if payload.execution_mode == "external" and not payload.external_reference:
        raise InvalidBatch("external_reference is required for external execution")
    derived = _resolve_derived(db, user.workspace_id, payload.sample_ids) if payload.sample_ids else []
    try:
        executed_by = organizations.resolve_execution_org(
            db, user.workspace_id, payload.executed_by_org_id
        )
    except organizations.OrganizationNotFound as exc:
        raise InvalidBatch("Executing organization not found in workspace") from exc

    batch = models.Batch(
        workspace_id=user.workspace_id,
        original_workspace_id=user.workspace_id,
        batch_id=payload.batch_id or generate_label(),
        description=payload.description,
        parameters=payload.parameters,
        execution_mode=payload.execution_mode,
        executed_by_org_id=executed_by,
        external_reference=payload.external_reference,
        performed_at=payload.performed_at,
        created_by=user.id,
    )
    _stamp_status(batch, payload.status)
    for sequence, row in enumerate(derived, start=1):
        batch.items.append(models.BatchItem(derived_id=row.id, sequence=sequence))
    db.add(batch)
    db.flush()
    logger.info("Batch %s created with %d items", batch.id, len(derived))
    return batch


def update_batch(
    db: Session, batch: models.Batch, payload: schemas.BatchUpdate
) -> models.Batch:
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("executed_by_org_id"):
        try:
            organizations.get_organization(db, batch.workspace_id, changes["executed_by_org_id"])
        except organizations.OrganizationNotFound as exc:
            raise InvalidBatch("Executing organization not found in workspace") from exc
    status = changes.pop("status", None)
    for key, value in changes.items():
        if value is None and key in ("execution_mode", "executed_by_org_id", "parameters"):
            continue
        setattr(batch, key, value)
    if batch.execution_mode == "external" and not batch.external_reference:
        raise InvalidBatch("external_reference is required for external execution")
    if status:
        _stamp_status(batch, status)
    return batch


def delete_batch(batch: models.Batch) -> None:
    batch.deleted_at = models.utcnow()


def add_items(
    db: Session, batch: models.Batch, derived_ids: list[UUID]
) -> list[models.BatchItem]:
    derived = _resolve_derived(db, batch.workspace_id, derived_ids)
    present = {item.derived_id for item in batch.items}
    duplicates = [str(row.id) for row in derived if row.id in present]
    if duplicates:
        raise BatchItemConflict(f"Derived samples already in batch: {', '.join(duplicates)}")
    next_sequence = max((item.sequence for item in batch.items), default=0) + 1
    added = []
    for offset, row in enumerate(derived):
        item = models.BatchItem(derived_id=row.id, sequence=next_sequence + offset)
        batch.items.append(item)
        added.append(item)
    db.flush()
    return added


def remove_item(db: Session, batch: models.Batch, derived_id: UUID) -> None:
    for item in batch.items:
        if item.derived_id == derived_id:
            batch.items.remove(item)
            db.flush()
            return
    raise BatchNotFound("Batch item not found")
