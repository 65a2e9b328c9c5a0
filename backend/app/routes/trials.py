from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import ensure_can_write
from ..services import projects, samples
from .. import models, schemas, audit
from .projects import load_project

# purpose: experimental trials and the per-project parameter column template
# status: active
# depends_on: backend.app.services.projects

router = APIRouter(prefix="/api/projects/{project_id}/trials", tags=["trials"])


def _load_trial(db: Session, project: models.Project, trial_id: UUID) -> models.Trial:
    try:
        return projects.get_trial(db, project, trial_id)
    except projects.TrialNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("", response_model=list[schemas.TrialOut])
async def list_trials(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    project = load_project(db, current_user, project_id)
    return (
        db.query(models.Trial)
        .filter(models.Trial.project_id == project.id, models.Trial.deleted_at.is_(None))
        .order_by(models.Trial.created_at.desc(), models.Trial.id.desc())
        .all()
    )


@router.post("", response_model=schemas.TrialOut, status_code=201)
async def create_trial(
    project_id: UUID,
    request: Request,
    data: schemas.TrialCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    project = load_project(db, current_user, project_id)
    (trial,) = projects.create_trials(db, project, current_user, [data])
    audit.log_action(
        db, current_user, "create_trial", "trial", trial.id,
        {"project_id": str(project.id)}, request=request,
    )
    db.refresh(trial)
    return trial


@router.post("/bulk", response_model=list[schemas.TrialOut], status_code=201)
async def bulk_create_trials(
    project_id: UUID,
    request: Request,
    data: schemas.TrialBulkCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    project = load_project(db, current_user, project_id)
    trials = projects.create_trials(db, project, current_user, data.trials)
    audit.log_action(
        db, current_user, "bulk_create_trials", "project", project.id,
        {"count": len(trials)}, request=request,
    )
    for trial in trials:
        db.refresh(trial)
    return trials


@router.get("/parameter-template", response_model=schemas.ParameterTemplateOut)
async def get_parameter_template(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    project = load_project(db, current_user, project_id)
    template = projects.get_parameter_template(db, project)
    if template is None:
        return {"project_id": project.id, "columns": [], "updated_at": None}
    return template


@router.put("/parameter-template", response_model=schemas.ParameterTemplateOut)
async def put_parameter_template(
    project_id: UUID,
    request: Request,
    data: schemas.ParameterTemplateIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    project = load_project(db, current_user, project_id)
    template = projects.upsert_parameter_template(db, project, current_user, data.columns)
    audit.log_action(
        db, current_user, "update_parameter_template", "project", project.id,
        {"columns": template.columns}, request=request,
    )
    db.refresh(template)
    return template


@router.get("/{trial_id}", response_model=schemas.TrialOut)
async def get_trial(
    project_id: UUID,
    trial_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    project = load_project(db, current_user, project_id)
    return _load_trial(db, project, trial_id)


@router.patch("/{trial_id}", response_model=schemas.TrialOut)
async def update_trial(
    project_id: UUID,
    trial_id: UUID,
    request: Request,
    data: schemas.TrialUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    project = load_project(db, current_user, project_id)
    trial = _load_trial(db, project, trial_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is None and key in ("name", "status"):
            continue
        setattr(trial, key, value)
    audit.log_action(
        db, current_user, "update_trial", "trial", trial.id,
        {"fields": sorted(data.model_fields_set)}, request=request,
    )
    db.refresh(trial)
    return trial


@router.delete("/{trial_id}", status_code=204)
async def delete_trial(
    project_id: UUID,
    trial_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    project = load_project(db, current_user, project_id)
    trial = _load_trial(db, project, trial_id)
    trial.deleted_at = models.utcnow()
    audit.log_action(db, current_user, "delete_trial", "trial", trial.id, request=request)


@router.get("/{trial_id}/samples", response_model=schemas.SamplePage)
async def list_trial_samples(
    project_id: UUID,
    trial_id: UUID,
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    project = load_project(db, current_user, project_id)
    trial = _load_trial(db, project, trial_id)
    query = samples.visible_samples(db, current_user.workspace_id).filter(
        models.Sample.trial_id == trial.id
    )
    return paginate(query, page, models.Sample.created_at.desc(), models.Sample.id.desc())
