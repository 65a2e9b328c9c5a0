from datetime import datetime
from uuid import UUID
from fastapi import Request
from sqlalchemy.orm import Session
from sqlalchemy import func
from . import models


def log_action(
    db: Session,
    user: models.User,
    action: str,
    target_type: str | None = None,
    target_id: str | UUID | None = None,
    details: dict | None = None,
    request: Request | None = None,
):
    """Append an audit entry and commit it with any pending changes in the session."""
    ip_address = None
    user_agent = None
    if request is not None:
        ip_address = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")
    log = models.AuditLog(
        workspace_id=user.workspace_id,
        user_id=user.id,
        action=action,
        target_type=target_type,
        target_id=UUID(str(target_id)) if target_id else None,
        details=details or {},
        ip_address=ip_address,
        user_agent=user_agent[:500] if user_agent else None,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def scoped_query(db: Session, user: models.User):
    """Audit rows visible to ``user``: the whole workspace for admins, otherwise their own."""
    query = db.query(models.AuditLog).filter(models.AuditLog.workspace_id == user.workspace_id)
    if not user.is_admin:
        query = query.filter(models.AuditLog.user_id == user.id)
    return query


def generate_report(
    db: Session,
    user: models.User,
    start: datetime,
    end: datetime,
    user_id: UUID | None = None,
):
    query = scoped_query(db, user).filter(
        models.AuditLog.created_at >= start,
        models.AuditLog.created_at <= end,
    )
    if user_id:
        query = query.filter(models.AuditLog.user_id == user_id)
    rows = (
        query.with_entities(models.AuditLog.action, func.count(models.AuditLog.id))
        .group_by(models.AuditLog.action)
        .order_by(models.AuditLog.action)
        .all()
    )
    return [{"action": r[0], "count": r[1]} for r in rows]
