from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import ensure_can_write
from ..services import projects, samples
from .. import models, schemas, audit

# purpose: workspace-scoped project registry linking client and executing organizations
# status: active
# depends_on: backend.app.services.projects

router = APIRouter(prefix="/api/projects", tags=["projects"])


def load_project(db: Session, user: models.User, project_id: UUID) -> models.Project:
    try:
        return projects.get_project(db, user.workspace_id, project_id)
    except projects.ProjectNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("", response_model=schemas.ProjectPage)
async def list_projects(
    status_filter: str | None = Query(default=None, alias="status"),
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = db.query(models.Project).filter(
        models.Project.workspace_id == current_user.workspace_id,
        models.Project.deleted_at.is_(None),
    )
    if status_filter:
        query = query.filter(models.Project.status == status_filter)
    return paginate(query, page, models.Project.created_at.desc(), models.Project.id.desc())


@router.post("", response_model=schemas.ProjectOut, status_code=201)
async def create_project(
    request: Request,
    data: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    try:
        project = projects.create_project(db, current_user, data)
    except projects.InvalidProject as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "create_project", "project", project.id,
        {"name": project.name}, request=request,
    )
    db.refresh(project)
    return project


@router.get("/{project_id}", response_model=schemas.ProjectOut)
async def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return load_project(db, current_user, project_id)


@router.patch("/{project_id}", response_model=schemas.ProjectOut)
async def update_project(
    project_id: UUID,
    request: Request,
    data: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    project = load_project(db, current_user, project_id)
    try:
        projects.update_project(db, project, data)
    except projects.InvalidProject as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "update_project", "project", project.id,
        {"fields": sorted(data.model_fields_set)}, request=request,
    )
    db.refresh(project)
    return project


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    project = load_project(db, current_user, project_id)
    project.deleted_at = models.utcnow()
    audit.log_action(db, current_user, "delete_project", "project", project.id, request=request)


@router.get("/{project_id}/samples", response_model=schemas.SamplePage)
async def list_project_samples(
    project_id: UUID,
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    project = load_project(db, current_user, project_id)
    query = samples.visible_samples(db, current_user.workspace_id).filter(
        models.Sample.project_id == project.id
    )
    return paginate(query, page, models.Sample.created_at.desc(), models.Sample.id.desc())
