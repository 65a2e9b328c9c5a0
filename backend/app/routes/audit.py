from uuid import UUID
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, HTTPException
from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from .. import models, schemas, audit
from ..schemas.common import UTCDateTime

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("", response_model=schemas.AuditLogPage)
async def list_logs(
    action: str | None = None,
    target_type: str | None = None,
    target_id: UUID | None = None,
    user_id: UUID | None = None,
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = audit.scoped_query(db, current_user)
    if user_id:
        if not current_user.is_admin and user_id != current_user.id:
            raise HTTPException(status_code=403, detail="Admin role required")
        query = query.filter(models.AuditLog.user_id == user_id)
    if action:
        query = query.filter(models.AuditLog.action == action)
    if target_type:
        query = query.filter(models.AuditLog.target_type == target_type)
    if target_id:
        query = query.filter(models.AuditLog.target_id == target_id)
    return paginate(query, page, models.AuditLog.created_at.desc(), models.AuditLog.id.desc())


@router.get("/report", response_model=list[schemas.AuditReportItem])
async def audit_report(
    start: UTCDateTime,
    end: UTCDateTime,
    user_id: UUID | None = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if user_id and not current_user.is_admin and user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Admin role required")
    return audit.generate_report(db, current_user, start, end, user_id)
