from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..services import notifications
from .. import models, schemas, audit

router = APIRouter(prefix="/api/notification-preferences", tags=["notifications"])


@router.get("", response_model=schemas.NotificationPreferenceOut)
async def get_preferences(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return notifications.preferences_view(user, notifications.get_preferences(db, user))


@router.put("", response_model=schemas.NotificationPreferenceOut)
async def update_preferences(
    request: Request,
    data: schemas.NotificationPreferenceUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    try:
        prefs = notifications.upsert_preferences(db, user, data)
    except notifications.InvalidPreferences as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, user, "update_notification_preferences", "user", user.id,
        {"fields": sorted(data.model_fields_set)}, request=request,
    )
    db.refresh(prefs)
    return notifications.preferences_view(user, prefs)


def _toggle(db: Session, user: models.User, enabled: bool, request: Request) -> dict:
    prefs = notifications.set_all(db, user, enabled)
    action = "enable_all_notifications" if enabled else "disable_all_notifications"
    audit.log_action(db, user, action, "user", user.id, request=request)
    db.refresh(prefs)
    return notifications.preferences_view(user, prefs)


@router.post("/disable-all", response_model=schemas.NotificationPreferenceOut)
async def disable_all(
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return _toggle(db, user, False, request)


@router.post("/enable-all", response_model=schemas.NotificationPreferenceOut)
async def enable_all(
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return _toggle(db, user, True, request)
