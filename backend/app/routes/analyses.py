from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import ensure_can_write
from ..services import provenance
from .. import models, schemas, audit

# purpose: provenance-tracked analysis results with immutable payloads and revision chains
# status: active
# depends_on: backend.app.services.provenance

router = APIRouter(prefix="/api/analyses", tags=["analyses"])


def _load_analysis(db: Session, user: models.User, analysis_id: UUID) -> models.Analysis:
    try:
        return provenance.get_analysis(db, user.workspace_id, analysis_id)
    except provenance.AnalysisNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


def _conflict(db: Session, exc: provenance.AnalysisConflict) -> HTTPException:
    db.rollback()
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.detail())


@router.get("", response_model=schemas.AnalysisPage)
async def list_analyses(
    batch_id: UUID | None = None,
    execution_mode: str | None = None,
    authoritative_only: bool = False,
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = provenance.visible_analyses(db, current_user.workspace_id)
    if batch_id:
        query = query.filter(models.Analysis.batch_id == batch_id)
    if execution_mode:
        query = query.filter(models.Analysis.execution_mode == execution_mode)
    if authoritative_only:
        query = query.filter(models.Analysis.is_authoritative.is_(True))
    return paginate(query, page, models.Analysis.created_at.desc(), models.Analysis.id.desc())


@router.post("", response_model=schemas.AnalysisOut, status_code=201)
async def create_analysis(
    request: Request,
    data: schemas.AnalysisCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    try:
        analysis = provenance.create_analysis(db, current_user, data)
    except provenance.AnalysisNotFound as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except provenance.CrossWorkspaceBatch as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except provenance.InvalidAnalysis as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except provenance.AnalysisConflict as exc:
        raise _conflict(db, exc) from exc
    audit.log_action(
        db, current_user, "create_analysis", "analysis", analysis.id,
        {"batch_id": str(analysis.batch_id), "is_authoritative": analysis.is_authoritative},
        request=request,
    )
    db.refresh(analysis)
    return analysis


@router.get("/{analysis_id}", response_model=schemas.AnalysisOut)
async def get_analysis(
    analysis_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _load_analysis(db, current_user, analysis_id)


@router.patch("/{analysis_id}", response_model=schemas.AnalysisOut)
async def update_analysis(
    analysis_id: UUID,
    request: Request,
    data: schemas.AnalysisUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    analysis = _load_analysis(db, current_user, analysis_id)
    try:
        provenance.update_analysis(analysis, data)
    except provenance.AnalysisConflict as exc:
        raise _conflict(db, exc) from exc
    except provenance.InvalidAnalysis as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "update_analysis", "analysis", analysis.id,
        {"fields": sorted(data.model_fields_set)}, request=request,
    )
    db.refresh(analysis)
    return analysis


@router.post("/{analysis_id}/revise", response_model=schemas.AnalysisOut, status_code=201)
async def revise_analysis(
    analysis_id: UUID,
    request: Request,
    data: schemas.AnalysisRevise,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    original = _load_analysis(db, current_user, analysis_id)
    try:
        revision = provenance.revise_analysis(db, current_user, original, data)
    except provenance.AnalysisConflict as exc:
        raise _conflict(db, exc) from exc
    audit.log_action(
        db, current_user, "revise_analysis", "analysis", revision.id,
        {"supersedes_id": str(original.id), "revision_reason": revision.revision_reason},
        request=request,
    )
    db.refresh(revision)
    return revision


@router.post("/{analysis_id}/authority", response_model=schemas.AnalysisOut)
async def set_authority(
    analysis_id: UUID,
    request: Request,
    data: schemas.AnalysisAuthorityUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    analysis = _load_analysis(db, current_user, analysis_id)
    try:
        provenance.set_authority(db, analysis, data.is_authoritative)
    except provenance.AnalysisConflict as exc:
        raise _conflict(db, exc) from exc
    audit.log_action(
        db, current_user, "set_analysis_authority", "analysis", analysis.id,
        {"is_authoritative": data.is_authoritative}, request=request,
    )
    db.refresh(analysis)
    return analysis


@router.get("/{analysis_id}/revisions", response_model=list[schemas.AnalysisOut])
async def list_revisions(
    analysis_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    analysis = _load_analysis(db, current_user, analysis_id)
    return provenance.revision_chain(db, analysis)


@router.delete("/{analysis_id}", status_code=204)
async def delete_analysis(
    analysis_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    analysis = _load_analysis(db, current_user, analysis_id)
    provenance.delete_analysis(analysis)
    audit.log_action(db, current_user, "delete_analysis", "analysis", analysis.id, request=request)
