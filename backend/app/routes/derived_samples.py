from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import ensure_can_write
from ..services import lineage, stages
from .. import models, schemas, audit
from .samples import load_sample

# purpose: derive sample portions and expose their lineage
# status: active
# depends_on: backend.app.services.lineage

router = APIRouter(prefix="/api", tags=["derived-samples"])


def _load_derived(db: Session, user: models.User, derived_id: UUID) -> models.DerivedSample:
    try:
        return lineage.get_derived(db, user.workspace_id, derived_id)
    except lineage.DerivedSampleNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post(
    "/samples/{sample_id}/derived",
    response_model=schemas.DerivedSampleOut,
    status_code=201,
)
async def create_derived_sample(
    sample_id: UUID,
    request: Request,
    data: schemas.DerivedSampleCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    sample = load_sample(db, current_user, sample_id)
    try:
        derived = lineage.create_derived(db, current_user, sample, data)
    except lineage.DerivedSampleNotFound as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (lineage.InvalidDerivation, stages.StageRuleViolation) as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "create_derived_sample", "derived_sample", derived.id,
        {"root_sample_id": str(sample.id), "depth": derived.depth}, request=request,
    )
    db.refresh(derived)
    return derived


@router.get("/samples/{sample_id}/derived", response_model=list[schemas.DerivedSampleOut])
async def list_sample_derivatives(
    sample_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    sample = load_sample(db, current_user, sample_id)
    return lineage.list_for_sample(db, sample)


@router.get("/derived-samples", response_model=schemas.DerivedSamplePage)
async def list_derived_samples(
    root_sample_id: UUID | None = None,
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = lineage.visible_derived(db, current_user.workspace_id)
    if root_sample_id:
        query = query.filter(models.DerivedSample.root_sample_id == root_sample_id)
    return paginate(
        query, page, models.DerivedSample.created_at.desc(), models.DerivedSample.id.desc()
    )


@router.get("/derived-samples/{derived_id}", response_model=schemas.DerivedSampleOut)
async def get_derived_sample(
    derived_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _load_derived(db, current_user, derived_id)


@router.get("/derived-samples/{derived_id}/lineage", response_model=schemas.LineageOut)
async def get_lineage(
    derived_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return lineage.lineage(_load_derived(db, current_user, derived_id))


@router.delete("/derived-samples/{derived_id}", status_code=204)
async def delete_derived_sample(
    derived_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    derived = _load_derived(db, current_user, derived_id)
    try:
        lineage.delete_derived(db, derived)
    except lineage.DerivedSampleInUse as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "delete_derived_sample", "derived_sample", derived.id, request=request
    )
