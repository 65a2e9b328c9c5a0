"""Project stage services and the stage rules applied to samples."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas

# purpose: ordered project stages with forward-only sample progression
# status: active
# depends_on: backend.app.models.ProjectStage, backend.app.models.Sample

logger = logging.getLogger(__name__)


class StageError(RuntimeError):
    """Base error for project stage management."""


class StageNotFound(StageError):
    """Raised when a stage is missing or belongs to another workspace."""


class StageConflict(StageError):
    """Raised when a stage order collides or the stage still holds samples."""


class StageRuleViolation(StageError):
    """Raised when a sample placement breaks the stage rules."""


def get_stage(db: Session, workspace_id: UUID, stage_id: UUID) -> models.ProjectStage:
    stage = (
        db.query(models.ProjectStage)
        .join(models.Project, models.Project.id == models.ProjectStage.project_id)
        .filter(
            models.ProjectStage.id == stage_id,
            models.ProjectStage.owner_workspace_id == workspace_id,
            models.Project.deleted_at.is_(None),
        )
        .first()
    )
    if not stage:
        raise StageNotFound("Stage not found")
    return stage


def list_stages(db: Session, project: models.Project) -> list[models.ProjectStage]:
    return (
        db.query(models.ProjectStage)
        .filter(models.ProjectStage.project_id == project.id)
        .order_by(models.ProjectStage.order_index.asc(), models.ProjectStage.id.asc())
        .all()
    )


def _assert_order_free(
    db: Session, project_id: UUID, order_index: int, exclude_id: UUID | None = None
) -> None:
    query = db.query(models.ProjectStage.id).filter(
        models.ProjectStage.project_id == project_id,
        models.ProjectStage.order_index == order_index,
    )
    if exclude_id:
        query = query.filter(models.ProjectStage.id != exclude_id)
    if query.first():
        raise StageConflict(f"A stage with order_index {order_index} already exists")


def create_stage(
    db: Session, project: models.Project, payload: schemas.StageCreate
) -> models.ProjectStage:
    _assert_order_free(db, project.id, payload.order_index)
    stage = models.ProjectStage(
        project_id=project.id,
        owner_workspace_id=project.workspace_id,
        name=payload.name,
        order_index=payload.order_index,
        status="planned",
    )
    db.add(stage)
    db.flush()
    logger.info("Stage %s created for project %s", stage.id, project.id)
    return stage


def update_stage(
    db: Session, stage: models.ProjectStage, payload: schemas.StageUpdate
) -> models.ProjectStage:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "order_index" in changes and changes["order_index"] != stage.order_index:
        _assert_order_free(db, stage.project_id, changes["order_index"], exclude_id=stage.id)
    for key, value in changes.items():
        setattr(stage, key, value)
    return stage


def delete_stage(db: Session, stage: models.ProjectStage) -> None:
    assigned = (
        db.query(models.Sample.id)
        .filter(models.Sample.stage_id == stage.id, models.Sample.deleted_at.is_(None))
        .count()
    )
    if assigned:
        raise StageConflict(f"Stage has {assigned} assigned samples")
    db.delete(stage)


def check_sample_placement(
    db: Session,
    workspace_id: UUID,
    project_id: UUID,
    stage_id: UUID,
    current_stage_id: UUID | None = None,
) -> models.ProjectStage:
    """Validate placing a sample into ``stage_id``.

    The target stage must belong to the sample's project and be active. A
    sample that already sits in a stage may only move to a stage with an equal
    or higher ``order_index``.
    """
    try:
        target = get_stage(db, workspace_id, stage_id)
    except StageNotFound as exc:
        raise StageRuleViolation("Stage not found") from exc
    if target.project_id != project_id:
        raise StageRuleViolation("Stage does not belong to this project")
    if current_stage_id and current_stage_id != target.id:
        current = db.get(models.ProjectStage, current_stage_id)
        if current is not None and target.order_index < current.order_index:
            raise StageRuleViolation(
                f"Cannot move sample backward from stage {current.name} "
                f"(order {current.order_index}) to {target.name} (order {target.order_index})"
            )
    if target.status != "active":
        raise StageRuleViolation(
            f"Stage is in {target.status} status. Only active stages accept samples."
        )
    return target
