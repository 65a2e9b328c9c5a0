"""In-app notification delivery, preferences and expiry."""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import models, notify, schemas

# purpose: deliver workspace notifications honouring per-user preferences and expiry
# status: active
# depends_on: backend.app.models.Notification, backend.app.models.NotificationPreference

logger = logging.getLogger(__name__)

PRIORITY_RANK = {"urgent": 0, "high": 1, "medium": 2, "low": 3}
EMAIL_FLAGS = (
    "email_payment_reminders",
    "email_project_updates",
    "email_sample_notifications",
    "email_system_announcements",
)
PREFERENCE_FLAGS = EMAIL_FLAGS + ("in_app_notifications",)


class NotificationError(RuntimeError):
    """Base error for notification delivery."""


class NotificationNotFound(NotificationError):
    """Raised when a notification or target user is not visible to the caller."""


class NotificationForbidden(NotificationError):
    """Raised when a non-admin targets another user."""


class InvalidPreferences(NotificationError):
    """Raised when quiet hours are incomplete or use an unknown timezone."""


def priority_rank():
    return sa.case(PRIORITY_RANK, value=models.Notification.priority, else_=len(PRIORITY_RANK))


def active_notifications(db: Session, user: models.User, now: datetime | None = None):
    """Notifications addressed to ``user`` in their workspace that have not expired."""
    now = now or models.utcnow()
    return db.query(models.Notification).filter(
        models.Notification.user_id == user.id,
        models.Notification.workspace_id == user.workspace_id,
        sa.or_(
            models.Notification.expires_at.is_(None),
            models.Notification.expires_at > now,
        ),
    )


def ordering():
    return (
        priority_rank().asc(),
        models.Notification.created_at.desc(),
        models.Notification.id.desc(),
    )


def unread_count(db: Session, user: models.User) -> int:
    return active_notifications(db, user).filter(models.Notification.is_read.is_(False)).count()


def get_notification(db: Session, user: models.User, notification_id: UUID) -> models.Notification:
    notification = (
        active_notifications(db, user).filter(models.Notification.id == notification_id).first()
    )
    if not notification:
        raise NotificationNotFound("Notification not found")
    return notification


def mark_read(notification: models.Notification) -> models.Notification:
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = models.utcnow()
    return notification


def mark_all_read(db: Session, user: models.User) -> int:
    rows = active_notifications(db, user).filter(models.Notification.is_read.is_(False)).all()
    now = models.utcnow()
    for row in rows:
        row.is_read = True
        row.read_at = now
    return len(rows)


def stats(db: Session, user: models.User) -> dict:
    base = active_notifications(db, user)
    by_type = (
        base.with_entities(models.Notification.type, sa.func.count(models.Notification.id))
        .group_by(models.Notification.type)
        .all()
    )
    by_priority = (
        base.with_entities(models.Notification.priority, sa.func.count(models.Notification.id))
        .group_by(models.Notification.priority)
        .all()
    )
    return {
        "total": base.count(),
        "unread": base.filter(models.Notification.is_read.is_(False)).count(),
        "by_type": {row[0]: row[1] for row in by_type},
        "by_priority": {row[0]: row[1] for row in by_priority},
    }


def get_preferences(db: Session, user: models.User) -> models.NotificationPreference | None:
    return (
        db.query(models.NotificationPreference)
        .filter(models.NotificationPreference.user_id == user.id)
        .first()
    )


def preferences_view(user: models.User, prefs: models.NotificationPreference | None) -> dict:
    if prefs is None:
        data = {flag: True for flag in PREFERENCE_FLAGS}
        data.update(
            user_id=user.id,
            quiet_hours_start=None,
            quiet_hours_end=None,
            quiet_hours_timezone=None,
            is_default=True,
        )
        return data
    data = {flag: getattr(prefs, flag) for flag in PREFERENCE_FLAGS}
    data.update(
        user_id=user.id,
        quiet_hours_start=prefs.quiet_hours_start,
        quiet_hours_end=prefs.quiet_hours_end,
        quiet_hours_timezone=prefs.quiet_hours_timezone,
        is_default=False,
    )
    return data


def _load_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidPreferences(f"Unknown timezone: {name}") from exc


def upsert_preferences(
    db: Session, user: models.User, payload: schemas.NotificationPreferenceUpdate
) -> models.NotificationPreference:
    prefs = get_preferences(db, user)
    if prefs is None:
        prefs = models.NotificationPreference(user_id=user.id)
        for flag in PREFERENCE_FLAGS:
            setattr(prefs, flag, True)
        db.add(prefs)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in PREFERENCE_FLAGS:
            continue
        setattr(prefs, key, value)
    if prefs.quiet_hours_start is not None or prefs.quiet_hours_end is not None:
        if prefs.quiet_hours_start is None or prefs.quiet_hours_end is None:
            raise InvalidPreferences("Quiet hours need both a start and an end")
        if not prefs.quiet_hours_timezone:
            raise InvalidPreferences("Quiet hours require quiet_hours_timezone")
    if prefs.quiet_hours_timezone:
        _load_zone(prefs.quiet_hours_timezone)
    db.flush()
    return prefs


def set_all(db: Session, user: models.User, enabled: bool) -> models.NotificationPreference:
    prefs = get_preferences(db, user)
    if prefs is None:
        prefs = models.NotificationPreference(user_id=user.id)
        db.add(prefs)
    for flag in PREFERENCE_FLAGS:
        setattr(prefs, flag, enabled)
    db.flush()
    return prefs


def in_app_enabled(db: Session, user: models.User) -> bool:
    prefs = get_preferences(db, user)
    return prefs is None or bool(prefs.in_app_notifications)


def email_enabled(prefs: models.NotificationPreference | None, flag: str | None = None) -> bool:
    if prefs is None:
        return True
    if flag:
        return bool(getattr(prefs, flag))
    return any(getattr(prefs, name) for name in EMAIL_FLAGS)


def in_quiet_hours(prefs: models.NotificationPreference | None, now: datetime | None = None) -> bool:
    if prefs is None or prefs.quiet_hours_start is None or prefs.quiet_hours_end is None:
        return False
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    zone = ZoneInfo(prefs.quiet_hours_timezone) if prefs.quiet_hours_timezone else timezone.utc
    current: time = now.astimezone(zone).time().replace(tzinfo=None)
    start, end = prefs.quiet_hours_start, prefs.quiet_hours_end
    if start <= end:
        return start <= current < end
    # window wraps past midnight
    return current >= start or current < end


def _workspace_member(db: Session, workspace_id: UUID, user_id: UUID) -> models.User:
    member = (
        db.query(models.User)
        .filter(
            models.User.id == user_id,
            models.User.workspace_id == workspace_id,
            models.User.deleted_at.is_(None),
        )
        .first()
    )
    if not member:
        raise NotificationNotFound("User not found")
    return member


def _build(
    target: models.User,
    actor: models.User,
    payload: schemas.NotificationCreate | schemas.SystemNotificationCreate,
    type_: str,
) -> models.Notification:
    return models.Notification(
        workspace_id=target.workspace_id,
        user_id=target.id,
        type=type_,
        title=payload.title,
        message=payload.message,
        priority=payload.priority,
        action_url=payload.action_url,
        action_label=payload.action_label,
        expires_at=payload.expires_at,
        meta=payload.metadata,
        created_by=actor.id,
    )


def create_notification(
    db: Session, actor: models.User, payload: schemas.NotificationCreate
) -> models.Notification | None:
    """Create a notification, or return ``None`` when the target opted out of in-app delivery."""
    target = actor
    if payload.user_id and payload.user_id != actor.id:
        if not actor.is_admin:
            raise NotificationForbidden("Only admins can notify other users")
        target = _workspace_member(db, actor.workspace_id, payload.user_id)
    if not in_app_enabled(db, target):
        logger.info("Notification skipped for %s: in-app disabled", target.id)
        return None
    notification = _build(target, actor, payload, payload.type)
    db.add(notification)
    db.flush()
    return notification


def deliver(
    db: Session,
    target: models.User,
    actor: models.User,
    *,
    type_: str,
    title: str,
    message: str,
    priority: str = "medium",
    metadata: dict | None = None,
) -> models.Notification | None:
    """Queue a service-generated notification for ``target`` in their own workspace."""
    if not in_app_enabled(db, target):
        return None
    notification = models.Notification(
        workspace_id=target.workspace_id,
        user_id=target.id,
        type=type_,
        title=title,
        message=message,
        priority=priority,
        meta=metadata or {},
        created_by=actor.id,
    )
    db.add(notification)
    return notification


def broadcast(
    db: Session, actor: models.User, payload: schemas.SystemNotificationCreate
) -> int:
    users = (
        db.query(models.User)
        .filter(
            models.User.workspace_id == actor.workspace_id,
            models.User.is_active.is_(True),
            models.User.deleted_at.is_(None),
        )
        .all()
    )
    created = 0
    for user in users:
        prefs = get_preferences(db, user)
        if prefs is None or prefs.in_app_notifications:
            db.add(_build(user, actor, payload, "system"))
            created += 1
        if email_enabled(prefs, "email_system_announcements"):
            notify.send_email(user.email, payload.title, payload.message)
    db.flush()
    logger.info("System notification broadcast to %d users", created)
    return created


def purge_expired(db: Session, now: datetime | None = None) -> int:
    now = now or models.utcnow()
    deleted = (
        db.query(models.Notification)
        .filter(
            models.Notification.expires_at.isnot(None),
            models.Notification.expires_at <= now,
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Purged %d expired notifications", deleted)
    return deleted
