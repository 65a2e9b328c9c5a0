"""Project, trial and parameter template services."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from . import organizations

# purpose: workspace-scoped project lifecycle plus the trials recorded against each project
# status: active
# depends_on: backend.app.services.organizations

logger = logging.getLogger(__name__)


class ProjectError(RuntimeError):
    """Base error for project and trial management."""


class ProjectNotFound(ProjectError):
    """Raised when a project is missing, deleted or owned by another workspace."""


class TrialNotFound(ProjectError):
    """Raised when a trial does not exist within the project."""


class InvalidProject(ProjectError):
    """Raised when a payload references organizations outside the workspace."""


def get_project(db: Session, workspace_id: UUID, project_id: UUID) -> models.Project:
    project = (
        db.query(models.Project)
        .filter(
            models.Project.id == project_id,
            models.Project.workspace_id == workspace_id,
            models.Project.deleted_at.is_(None),
        )
        .first()
    )
    if not project:
        raise ProjectNotFound("Project not found")
    return project


def _check_org(db: Session, workspace_id: UUID, org_id: UUID, label: str) -> None:
    try:
        organizations.get_organization(db, workspace_id, org_id)
    except organizations.OrganizationNotFound as exc:
        raise InvalidProject(f"{label} organization not found in workspace") from exc


def create_project(
    db: Session, user: models.User, payload: schemas.ProjectCreate
) -> models.Project:
    _check_org(db, user.workspace_id, payload.client_org_id, "Client")
    _check_org(db, user.workspace_id, payload.executing_org_id, "Executing")
    project = models.Project(
        workspace_id=user.workspace_id,
        created_by=user.id,
        **payload.model_dump(),
    )
    db.add(project)
    db.flush()
    logger.info("Project created: %s", project.id)
    return project


def update_project(
    db: Session, project: models.Project, payload: schemas.ProjectUpdate
) -> models.Project:
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("client_org_id"):
        _check_org(db, project.workspace_id, changes["client_org_id"], "Client")
    if changes.get("executing_org_id"):
        _check_org(db, project.workspace_id, changes["executing_org_id"], "Executing")
    for key, value in changes.items():
        if value is None and key in ("client_org_id", "executing_org_id", "name"):
            continue
        setattr(project, key, value)
    return project


def get_trial(db: Session, project: models.Project, trial_id: UUID) -> models.Trial:
    trial = (
        db.query(models.Trial)
        .filter(
            models.Trial.id == trial_id,
            models.Trial.project_id == project.id,
            models.Trial.workspace_id == project.workspace_id,
            models.Trial.deleted_at.is_(None),
        )
        .first()
    )
    if not trial:
        raise TrialNotFound("Trial not found")
    return trial


def build_trial(
    project: models.Project, user: models.User, payload: schemas.TrialCreate
) -> models.Trial:
    return models.Trial(
        project_id=project.id,
        workspace_id=project.workspace_id,
        created_by=user.id,
        **payload.model_dump(),
    )


def create_trials(
    db: Session,
    project: models.Project,
    user: models.User,
    payloads: list[schemas.TrialCreate],
) -> list[models.Trial]:
    """Stage every trial in the session; the caller commits them together."""
    trials = [build_trial(project, user, payload) for payload in payloads]
    db.add_all(trials)
    db.flush()
    logger.info("Created %d trials for project %s", len(trials), project.id)
    return trials


def get_parameter_template(
    db: Session, project: models.Project
) -> models.TrialParameterTemplate | None:
    return (
        db.query(models.TrialParameterTemplate)
        .filter(
            models.TrialParameterTemplate.project_id == project.id,
            models.TrialParameterTemplate.workspace_id == project.workspace_id,
        )
        .first()
    )


def upsert_parameter_template(
    db: Session,
    project: models.Project,
    user: models.User,
    columns: list[str],
) -> models.TrialParameterTemplate:
    template = get_parameter_template(db, project)
    if template is None:
        template = models.TrialParameterTemplate(
            project_id=project.id,
            workspace_id=project.workspace_id,
            created_by=user.id,
        )
        db.add(template)
    template.columns = list(columns)
    db.flush()
    return template
