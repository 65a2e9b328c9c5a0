"""Sample registry services with lineage-protected deletion."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from . import projects, stages

# purpose: register samples against projects, trials and stages and guard their lineage
# status: active
# depends_on: backend.app.services.projects, backend.app.services.stages

logger = logging.getLogger(__name__)


class SampleError(RuntimeError):
    """Base error for sample management."""


class SampleNotFound(SampleError):
    """Raised when a sample is missing, deleted or foreign."""


class InvalidSample(SampleError):
    """Raised when a sample references a trial outside its project."""


class SampleInUse(SampleError):
    """Raised when deleting a sample that still has live derived samples."""


def visible_samples(db: Session, workspace_id: UUID):
    return db.query(models.Sample).filter(
        models.Sample.workspace_id == workspace_id,
        models.Sample.deleted_at.is_(None),
    )


def get_sample(db: Session, workspace_id: UUID, sample_id: UUID) -> models.Sample:
    sample = visible_samples(db, workspace_id).filter(models.Sample.id == sample_id).first()
    if not sample:
        raise SampleNotFound("Sample not found")
    return sample


def _check_trial(db: Session, project: models.Project, trial_id: UUID) -> None:
    try:
        projects.get_trial(db, project, trial_id)
    except projects.TrialNotFound as exc:
        raise InvalidSample("Trial does not belong to this project") from exc


def create_sample(
    db: Session, user: models.User, payload: schemas.SampleCreate
) -> models.Sample:
    project = projects.get_project(db, user.workspace_id, payload.project_id)
    if payload.trial_id:
        _check_trial(db, project, payload.trial_id)
    if payload.stage_id:
        stages.check_sample_placement(db, user.workspace_id, project.id, payload.stage_id)
    sample = models.Sample(
        workspace_id=user.workspace_id,
        project_id=project.id,
        trial_id=payload.trial_id,
        stage_id=payload.stage_id,
        sample_id=payload.sample_id,
        type=payload.type,
        description=payload.description,
        meta=payload.metadata,
        created_by=user.id,
    )
    db.add(sample)
    db.flush()
    logger.info("Sample created: %s", sample.id)
    return sample


def update_sample(
    db: Session, sample: models.Sample, payload: schemas.SampleUpdate
) -> models.Sample:
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("trial_id"):
        _check_trial(db, sample.project, changes["trial_id"])
    if changes.get("stage_id"):
        stages.check_sample_placement(
            db,
            sample.workspace_id,
            sample.project_id,
            changes["stage_id"],
            current_stage_id=sample.stage_id,
        )
    if "metadata" in changes:
        sample.meta = changes.pop("metadata") or {}
    for key, value in changes.items():
        if value is None and key in ("sample_id", "status"):
            continue
        setattr(sample, key, value)
    return sample


def _live_derived(db: Session, sample: models.Sample):
    return db.query(models.DerivedSample).filter(
        models.DerivedSample.root_sample_id == sample.id,
        models.DerivedSample.deleted_at.is_(None),
    )


def delete_sample(db: Session, sample: models.Sample) -> None:
    remaining = _live_derived(db, sample).count()
    if remaining:
        raise SampleInUse(
            f"Sample has {remaining} derived samples; delete them first or use cascade"
        )
    sample.deleted_at = models.utcnow()


def cascade_delete_sample(db: Session, sample: models.Sample) -> int:
    """Soft-delete the sample and every live derived sample rooted at it."""
    now = models.utcnow()
    derived = _live_derived(db, sample).all()
    for row in derived:
        row.deleted_at = now
    sample.deleted_at = now
    logger.info("Cascade deleted sample %s with %d derived samples", sample.id, len(derived))
    return len(derived) + 1
