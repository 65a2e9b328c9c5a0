from uuid import UUID
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import require_admin
from ..services import notifications
from .. import models, schemas, audit

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _load(db: Session, user: models.User, notification_id: UUID) -> models.Notification:
    try:
        return notifications.get_notification(db, user, notification_id)
    except notifications.NotificationNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("", response_model=schemas.NotificationPage)
async def list_notifications(
    type: Optional[str] = Query(None, description="Filter by notification type"),
    unread_only: bool = Query(False, description="Only unread notifications"),
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    query = notifications.active_notifications(db, user)
    if type:
        query = query.filter(models.Notification.type == type)
    if unread_only:
        query = query.filter(models.Notification.is_read.is_(False))
    data = paginate(query, page, *notifications.ordering())
    data["unread_count"] = notifications.unread_count(db, user)
    return data


@router.get("/stats", response_model=schemas.NotificationStats)
async def notification_stats(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return notifications.stats(db, user)


@router.post("/mark-all-read")
async def mark_all_read(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    updated = notifications.mark_all_read(db, user)
    db.commit()
    return {"updated": updated}


@router.post("/system")
async def create_system_notification(
    request: Request,
    data: schemas.SystemNotificationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_admin(user)
    created = notifications.broadcast(db, user, data)
    audit.log_action(
        db, user, "broadcast_notification", "workspace", user.workspace_id,
        {"title": data.title, "created": created}, request=request,
    )
    return {"created": created}


@router.post("", response_model=schemas.NotificationOut, status_code=201)
async def create_notification(
    request: Request,
    data: schemas.NotificationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    try:
        notification = notifications.create_notification(db, user, data)
    except notifications.NotificationForbidden as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except notifications.NotificationNotFound as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if notification is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    audit.log_action(
        db, user, "create_notification", "notification", notification.id,
        {"user_id": str(notification.user_id)}, request=request,
    )
    db.refresh(notification)
    return notification


@router.post("/{notification_id}/read", response_model=schemas.NotificationOut)
async def mark_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    notification = notifications.mark_read(_load(db, user, notification_id))
    db.commit()
    db.refresh(notification)
    return notification


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    notification = _load(db, user, notification_id)
    db.delete(notification)
    audit.log_action(
        db, user, "delete_notification", "notification", notification_id, request=request
    )
