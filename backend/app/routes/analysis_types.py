from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..rbac import require_admin
from ..services import provenance
from .. import models, schemas, audit

router = APIRouter(prefix="/api/analysis-types", tags=["analysis-types"])


def _load_type(db: Session, type_id: UUID) -> models.AnalysisType:
    try:
        return provenance.get_analysis_type(db, type_id)
    except provenance.AnalysisNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("", response_model=list[schemas.AnalysisTypeOut])
async def list_analysis_types(
    category: str | None = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = db.query(models.AnalysisType)
    if category:
        query = query.filter(models.AnalysisType.category == category)
    if not include_inactive:
        query = query.filter(models.AnalysisType.is_active.is_(True))
    return query.order_by(models.AnalysisType.name.asc(), models.AnalysisType.id.asc()).all()


@router.get("/{type_id}", response_model=schemas.AnalysisTypeOut)
async def get_analysis_type(
    type_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _load_type(db, type_id)


@router.post("", response_model=schemas.AnalysisTypeOut, status_code=201)
async def create_analysis_type(
    request: Request,
    data: schemas.AnalysisTypeCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    require_admin(current_user)
    try:
        analysis_type = provenance.create_analysis_type(db, data)
    except provenance.AnalysisTypeConflict as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "create_analysis_type", "analysis_type", analysis_type.id,
        {"name": analysis_type.name}, request=request,
    )
    db.refresh(analysis_type)
    return analysis_type


@router.patch("/{type_id}", response_model=schemas.AnalysisTypeOut)
async def update_analysis_type(
    type_id: UUID,
    request: Request,
    data: schemas.AnalysisTypeUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    require_admin(current_user)
    analysis_type = _load_type(db, type_id)
    try:
        provenance.update_analysis_type(db, analysis_type, data)
    except provenance.AnalysisTypeConflict as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "update_analysis_type", "analysis_type", analysis_type.id,
        {"fields": sorted(data.model_fields_set)}, request=request,
    )
    db.refresh(analysis_type)
    return analysis_type


@router.delete("/{type_id}", status_code=204)
async def deactivate_analysis_type(
    type_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    require_admin(current_user)
    analysis_type = _load_type(db, type_id)
    analysis_type.is_active = False
    audit.log_action(
        db, current_user, "deactivate_analysis_type", "analysis_type", analysis_type.id,
        request=request,
    )
