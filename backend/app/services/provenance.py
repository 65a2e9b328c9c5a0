"""Analysis catalog and provenance services.

Analyses are immutable once uploaded. Corrections are recorded as revisions
that point back through ``supersedes_id``; authority over a batch moves to the
newest revision while the superseded rows keep their original results. Each
batch has at most one live authoritative analysis.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from . import organizations

# purpose: enforce result immutability, single-authority and linear revision chains for analyses
# status: active
# depends_on: backend.app.models.Analysis, backend.app.models.Batch, backend.app.models.AnalysisType

logger = logging.getLogger(__name__)

UPLOADABLE_BATCH_STATUSES = {"created", "ready", "in_progress"}
IMMUTABLE_FIELDS = ("results", "file_path", "file_checksum", "file_size_bytes", "analysis_type_id")
DEFAULT_REVISION_REASON = "Correction"


def _flush_authority(db: Session) -> None:
    # a concurrent writer can win the partial unique index on batch_id
    try:
        db.flush()
    except IntegrityError as exc:
        raise AnalysisConflict("Batch already has an authoritative analysis") from exc


class AnalysisError(RuntimeError):
    """Base error for analysis provenance."""


class AnalysisNotFound(AnalysisError):
    """Raised when an analysis, batch or analysis type cannot be located."""


class InvalidAnalysis(AnalysisError):
    """Raised when an upload or update payload breaks an analysis rule."""


class CrossWorkspaceBatch(AnalysisError):
    """Raised when an upload references a batch owned by another workspace."""


class AnalysisConflict(AnalysisError):
    """Raised when authority or immutability rules reject a change."""

    def __init__(self, message: str, existing_analysis_id: UUID | None = None):
        super().__init__(message)
        self.existing_analysis_id = existing_analysis_id

    def detail(self) -> dict[str, Any] | str:
        if self.existing_analysis_id is None:
            return str(self)
        return {"message": str(self), "existing_analysis_id": str(self.existing_analysis_id)}


class AnalysisTypeConflict(AnalysisError):
    """Raised when an analysis type name is already taken."""


def get_analysis_type(db: Session, type_id: UUID) -> models.AnalysisType:
    analysis_type = db.get(models.AnalysisType, type_id)
    if not analysis_type:
        raise AnalysisNotFound("Analysis type not found")
    return analysis_type


def _assert_type_name_free(db: Session, name: str, exclude_id: UUID | None = None) -> None:
    query = db.query(models.AnalysisType.id).filter(models.AnalysisType.name == name)
    if exclude_id:
        query = query.filter(models.AnalysisType.id != exclude_id)
    if query.first():
        raise AnalysisTypeConflict("Analysis type name already exists")


def create_analysis_type(db: Session, payload: schemas.AnalysisTypeCreate) -> models.AnalysisType:
    _assert_type_name_free(db, payload.name)
    analysis_type = models.AnalysisType(**payload.model_dump())
    db.add(analysis_type)
    db.flush()
    return analysis_type


def update_analysis_type(
    db: Session, analysis_type: models.AnalysisType, payload: schemas.AnalysisTypeUpdate
) -> models.AnalysisType:
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name"):
        _assert_type_name_free(db, changes["name"], exclude_id=analysis_type.id)
    for key, value in changes.items():
        if value is None and key in ("name", "is_active", "methods", "equipment_required"):
            continue
        setattr(analysis_type, key, value)
    return analysis_type


def visible_analyses(db: Session, workspace_id: UUID):
    return db.query(models.Analysis).filter(
        models.Analysis.workspace_id == workspace_id,
        models.Analysis.deleted_at.is_(None),
    )


def get_analysis(db: Session, workspace_id: UUID, analysis_id: UUID) -> models.Analysis:
    analysis = visible_analyses(db, workspace_id).filter(models.Analysis.id == analysis_id).first()
    if not analysis:
        raise AnalysisNotFound("Analysis not found")
    return analysis


def current_authority(
    db: Session, batch_id: UUID, exclude_id: UUID | None = None
) -> models.Analysis | None:
    query = db.query(models.Analysis).filter(
        models.Analysis.batch_id == batch_id,
        models.Analysis.is_authoritative.is_(True),
        models.Analysis.deleted_at.is_(None),
    )
    if exclude_id:
        query = query.filter(models.Analysis.id != exclude_id)
    return query.first()


def _upload_batch(db: Session, workspace_id: UUID, batch_id: UUID) -> models.Batch:
    batch = (
        db.query(models.Batch)
        .filter(models.Batch.id == batch_id, models.Batch.deleted_at.is_(None))
        .first()
    )
    if not batch:
        raise AnalysisNotFound("Batch not found")
    if batch.workspace_id != workspace_id:
        raise CrossWorkspaceBatch("Batch belongs to another workspace")
    return batch


def _check_execution(execution_mode: str, external_reference: str | None) -> None:
    if execution_mode == "external" and not external_reference:
        raise InvalidAnalysis("External analyses require external_reference")
    if execution_mode == "platform" and external_reference:
        raise InvalidAnalysis("Platform analyses must not carry external_reference")


def create_analysis(
    db: Session, user: models.User, payload: schemas.AnalysisCreate
) -> models.Analysis:
    batch = _upload_batch(db, user.workspace_id, payload.batch_id)
    if batch.status not in UPLOADABLE_BATCH_STATUSES:
        raise InvalidAnalysis(f"Cannot upload analyses to a batch in {batch.status} status")
    analysis_type = db.get(models.AnalysisType, payload.analysis_type_id)
    if not analysis_type or not analysis_type.is_active:
        raise InvalidAnalysis("Analysis type not found or inactive")
    _check_execution(payload.execution_mode, payload.external_reference)

    try:
        executed_by = organizations.resolve_execution_org(
            db, user.workspace_id, payload.executed_by_org_id, batch.executed_by_org_id
        )
        source_org = (
            organizations.get_organization(db, user.workspace_id, payload.source_org_id).id
            if payload.source_org_id
            else executed_by
        )
    except organizations.OrganizationNotFound as exc:
        raise InvalidAnalysis("Organization not found in workspace") from exc

    if payload.is_authoritative:
        existing = current_authority(db, batch.id)
        if existing:
            raise AnalysisConflict(
                "Batch already has an authoritative analysis",
                existing_analysis_id=existing.id,
            )

    analysis = models.Analysis(
        workspace_id=user.workspace_id,
        batch_id=batch.id,
        analysis_type_id=analysis_type.id,
        status=payload.status,
        results=payload.results,
        file_path=payload.file_path,
        file_checksum=payload.file_checksum,
        file_size_bytes=payload.file_size_bytes,
        execution_mode=payload.execution_mode,
        executed_by_org_id=executed_by,
        source_org_id=source_org,
        external_reference=payload.external_reference,
        performed_at=payload.performed_at,
        uploaded_by=user.id,
        is_authoritative=payload.is_authoritative,
    )
    db.add(analysis)
    _flush_authority(db)
    logger.info("Analysis %s created for batch %s", analysis.id, batch.id)
    return analysis


def update_analysis(
    analysis: models.Analysis, payload: schemas.AnalysisUpdate
) -> models.Analysis:
    extra = set(payload.model_extra or {})
    if extra.intersection(IMMUTABLE_FIELDS):
        raise AnalysisConflict("Analysis results are immutable")
    if extra:
        raise InvalidAnalysis(f"Unsupported fields: {', '.join(sorted(extra))}")
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise InvalidAnalysis("At least one field must be provided")
    if "external_reference" in changes:
        _check_execution(analysis.execution_mode, changes["external_reference"])
    for key, value in changes.items():
        if value is None and key == "status":
            continue
        setattr(analysis, key, value)
    return analysis


def revise_analysis(
    db: Session,
    user: models.User,
    original: models.Analysis,
    payload: schemas.AnalysisRevise,
) -> models.Analysis:
    """Record a correction of ``original`` as a new analysis that supersedes it."""
    successor = (
        db.query(models.Analysis.id)
        .filter(models.Analysis.supersedes_id == original.id)
        .first()
    )
    if successor:
        raise AnalysisConflict(
            "Analysis has already been superseded", existing_analysis_id=successor.id
        )

    takes_authority = bool(original.is_authoritative)
    if takes_authority:
        original.is_authoritative = False
        db.flush()

    revision = models.Analysis(
        workspace_id=original.workspace_id,
        batch_id=original.batch_id,
        analysis_type_id=original.analysis_type_id,
        status="pending",
        results=payload.results,
        file_path=payload.file_path,
        file_checksum=payload.file_checksum,
        file_size_bytes=payload.file_size_bytes,
        execution_mode=original.execution_mode,
        executed_by_org_id=original.executed_by_org_id,
        source_org_id=original.source_org_id,
        external_reference=original.external_reference,
        performed_at=payload.performed_at or original.performed_at,
        uploaded_by=user.id,
        is_authoritative=takes_authority,
        supersedes_id=original.id,
        revision_reason=payload.revision_reason or DEFAULT_REVISION_REASON,
    )
    db.add(revision)
    _flush_authority(db)
    logger.info("Analysis %s revised by %s", original.id, revision.id)
    return revision


def set_authority(
    db: Session, analysis: models.Analysis, is_authoritative: bool
) -> models.Analysis:
    if is_authoritative and not analysis.is_authoritative:
        existing = current_authority(db, analysis.batch_id, exclude_id=analysis.id)
        if existing:
            raise AnalysisConflict(
                "Batch already has an authoritative analysis",
                existing_analysis_id=existing.id,
            )
    analysis.is_authoritative = is_authoritative
    _flush_authority(db)
    return analysis


def revision_chain(db: Session, analysis: models.Analysis) -> list[models.Analysis]:
    """Return every analysis in the revision chain of ``analysis``, oldest first."""
    root = analysis
    seen = {root.id}
    while root.supersedes_id is not None:
        parent = db.get(models.Analysis, root.supersedes_id)
        if parent is None or parent.id in seen:
            break
        seen.add(parent.id)
        root = parent

    # soft-deleted revisions still link the chain and are only hidden from the result
    chain = [root]
    current = root
    while True:
        child = (
            db.query(models.Analysis)
            .filter(models.Analysis.supersedes_id == current.id)
            .order_by(models.Analysis.created_at.asc(), models.Analysis.id.asc())
            .first()
        )
        if child is None or child.id in {row.id for row in chain}:
            break
        chain.append(child)
        current = child
    return [row for row in chain if row.deleted_at is None]


def delete_analysis(analysis: models.Analysis) -> None:
    analysis.deleted_at = models.utcnow()
