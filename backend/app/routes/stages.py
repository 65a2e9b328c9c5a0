from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..rbac import ensure_can_write
from ..services import stages
from .. import models, schemas, audit
from .projects import load_project

# purpose: ordered project stages that samples progress through
# status: active
# depends_on: backend.app.services.stages

router = APIRouter(prefix="/api", tags=["stages"])


def _load_stage(db: Session, user: models.User, stage_id: UUID) -> models.ProjectStage:
    try:
        return stages.get_stage(db, user.workspace_id, stage_id)
    except stages.StageNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/projects/{project_id}/stages", response_model=list[schemas.StageOut])
async def list_stages(
    project_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    project = load_project(db, current_user, project_id)
    return stages.list_stages(db, project)


@router.post("/projects/{project_id}/stages", response_model=schemas.StageOut, status_code=201)
async def create_stage(
    project_id: UUID,
    request: Request,
    data: schemas.StageCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    project = load_project(db, current_user, project_id)
    try:
        stage = stages.create_stage(db, project, data)
    except stages.StageConflict as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "create_stage", "project_stage", stage.id,
        {"project_id": str(project.id), "order_index": stage.order_index}, request=request,
    )
    db.refresh(stage)
    return stage


@router.patch("/stages/{stage_id}", response_model=schemas.StageOut)
async def update_stage(
    stage_id: UUID,
    request: Request,
    data: schemas.StageUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    stage = _load_stage(db, current_user, stage_id)
    try:
        stages.update_stage(db, stage, data)
    except stages.StageConflict as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "update_stage", "project_stage", stage.id,
        {"fields": sorted(data.model_fields_set)}, request=request,
    )
    db.refresh(stage)
    return stage


@router.delete("/stages/{stage_id}", status_code=204)
async def delete_stage(
    stage_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    stage = _load_stage(db, current_user, stage_id)
    try:
        stages.delete_stage(db, stage)
    except stages.StageConflict as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(db, current_user, "delete_stage", "project_stage", stage_id, request=request)
