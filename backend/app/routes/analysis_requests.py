from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import ensure_can_write
from ..services import analysis_requests
from .. import models, schemas, audit

# purpose: send analysis work to external lab workspaces and track its progress
# status: active
# depends_on: backend.app.services.analysis_requests

router = APIRouter(prefix="/api/analysis-requests", tags=["analysis-requests"])


def _http_error(db: Session, exc: analysis_requests.AnalysisRequestError) -> HTTPException:
    db.rollback()
    if isinstance(exc, analysis_requests.AnalysisRequestNotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, analysis_requests.AnalysisRequestForbidden):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))


def _load_request(db: Session, user: models.User, request_id: UUID) -> models.AnalysisRequest:
    try:
        return analysis_requests.get_request(db, user.workspace_id, request_id)
    except analysis_requests.AnalysisRequestNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


def _filtered(query, status_filter: str | None, priority: str | None):
    if status_filter:
        query = query.filter(models.AnalysisRequest.status == status_filter)
    if priority:
        query = query.filter(models.AnalysisRequest.priority == priority)
    return query


@router.post("", response_model=schemas.AnalysisRequestOut, status_code=201)
async def create_request(
    request: Request,
    data: schemas.AnalysisRequestCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    try:
        row = analysis_requests.create_request(db, current_user, data)
    except analysis_requests.AnalysisRequestError as exc:
        raise _http_error(db, exc) from exc
    audit.log_action(
        db, current_user, "create_analysis_request", "analysis_request", row.id,
        {"to_workspace_id": str(row.to_workspace_id), "sample_id": str(row.sample_id)},
        request=request,
    )
    db.refresh(row)
    return row


@router.get("/incoming", response_model=schemas.AnalysisRequestPage)
async def list_incoming(
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = None,
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = _filtered(analysis_requests.incoming(db, current_user.workspace_id), status_filter, priority)
    return paginate(
        query, page, models.AnalysisRequest.created_at.desc(), models.AnalysisRequest.id.desc()
    )


@router.get("/outgoing", response_model=schemas.AnalysisRequestPage)
async def list_outgoing(
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = None,
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = _filtered(analysis_requests.outgoing(db, current_user.workspace_id), status_filter, priority)
    return paginate(
        query, page, models.AnalysisRequest.created_at.desc(), models.AnalysisRequest.id.desc()
    )


@router.get("/{request_id}", response_model=schemas.AnalysisRequestOut)
async def get_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _load_request(db, current_user, request_id)


@router.post("/{request_id}/accept", response_model=schemas.AnalysisRequestOut)
async def accept_request(
    request_id: UUID,
    request: Request,
    data: schemas.AnalysisRequestAccept,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    row = _load_request(db, current_user, request_id)
    try:
        analysis_requests.accept_request(db, current_user, row, data)
    except analysis_requests.AnalysisRequestError as exc:
        raise _http_error(db, exc) from exc
    audit.log_action(
        db, current_user, "accept_analysis_request", "analysis_request", row.id,
        {"assigned_to": str(row.assigned_to) if row.assigned_to else None}, request=request,
    )
    db.refresh(row)
    return row


@router.post("/{request_id}/reject", response_model=schemas.AnalysisRequestOut)
async def reject_request(
    request_id: UUID,
    request: Request,
    data: schemas.AnalysisRequestReject,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    row = _load_request(db, current_user, request_id)
    try:
        analysis_requests.reject_request(db, current_user, row, data)
    except analysis_requests.AnalysisRequestError as exc:
        raise _http_error(db, exc) from exc
    audit.log_action(
        db, current_user, "reject_analysis_request", "analysis_request", row.id, request=request
    )
    db.refresh(row)
    return row


@router.patch("/{request_id}/status", response_model=schemas.AnalysisRequestOut)
async def update_request_status(
    request_id: UUID,
    request: Request,
    data: schemas.AnalysisRequestStatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    row = _load_request(db, current_user, request_id)
    try:
        analysis_requests.update_status(db, current_user, row, data)
    except analysis_requests.AnalysisRequestError as exc:
        raise _http_error(db, exc) from exc
    audit.log_action(
        db, current_user, "update_analysis_request", "analysis_request", row.id,
        {"status": row.status}, request=request,
    )
    db.refresh(row)
    return row


@router.post("/{request_id}/cancel", response_model=schemas.AnalysisRequestOut)
async def cancel_request(
    request_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    row = _load_request(db, current_user, request_id)
    try:
        analysis_requests.cancel_request(db, current_user, row)
    except analysis_requests.AnalysisRequestError as exc:
        raise _http_error(db, exc) from exc
    audit.log_action(
        db, current_user, "cancel_analysis_request", "analysis_request", row.id, request=request
    )
    db.refresh(row)
    return row
