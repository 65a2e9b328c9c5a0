from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import ensure_can_write, require_admin
from ..services import projects, samples, stages
from .. import models, schemas, audit

# purpose: sample registry with stage progression and lineage-protected deletion
# status: active
# depends_on: backend.app.services.samples

router = APIRouter(prefix="/api/samples", tags=["samples"])


def load_sample(db: Session, user: models.User, sample_id: UUID) -> models.Sample:
    try:
        return samples.get_sample(db, user.workspace_id, sample_id)
    except samples.SampleNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("", response_model=schemas.SamplePage)
async def list_samples(
    project_id: UUID | None = None,
    trial_id: UUID | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = samples.visible_samples(db, current_user.workspace_id)
    if project_id:
        query = query.filter(models.Sample.project_id == project_id)
    if trial_id:
        query = query.filter(models.Sample.trial_id == trial_id)
    if status_filter:
        query = query.filter(models.Sample.status == status_filter)
    return paginate(query, page, models.Sample.created_at.desc(), models.Sample.id.desc())


@router.post("", response_model=schemas.SampleOut, status_code=201)
async def create_sample(
    request: Request,
    data: schemas.SampleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    try:
        sample = samples.create_sample(db, current_user, data)
    except projects.ProjectNotFound as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (samples.InvalidSample, stages.StageRuleViolation) as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "create_sample", "sample", sample.id,
        {"sample_id": sample.sample_id, "project_id": str(sample.project_id)}, request=request,
    )
    db.refresh(sample)
    return sample


@router.get("/{sample_id}", response_model=schemas.SampleOut)
async def get_sample(
    sample_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return load_sample(db, current_user, sample_id)


@router.patch("/{sample_id}", response_model=schemas.SampleOut)
async def update_sample(
    sample_id: UUID,
    request: Request,
    data: schemas.SampleUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    sample = load_sample(db, current_user, sample_id)
    try:
        samples.update_sample(db, sample, data)
    except (samples.InvalidSample, stages.StageRuleViolation) as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "update_sample", "sample", sample.id,
        {"fields": sorted(data.model_fields_set)}, request=request,
    )
    db.refresh(sample)
    return sample


@router.delete("/{sample_id}")
async def delete_sample(
    sample_id: UUID,
    request: Request,
    cascade: bool = False,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    sample = load_sample(db, current_user, sample_id)
    if cascade:
        require_admin(current_user)
        deleted = samples.cascade_delete_sample(db, sample)
        audit.log_action(
            db, current_user, "cascade_delete_sample", "sample", sample.id,
            {"deleted": deleted}, request=request,
        )
        return {"deleted": deleted}
    try:
        samples.delete_sample(db, sample)
    except samples.SampleInUse as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(db, current_user, "delete_sample", "sample", sample.id, request=request)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
