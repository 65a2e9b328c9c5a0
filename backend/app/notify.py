import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

EMAIL_OUTBOX: list[tuple[str, str, str]] = []


def send_email(to_email: str, subject: str, message: str):
    if os.getenv("TESTING") == "1":
        EMAIL_OUTBOX.append((to_email, subject, message))
        return
    server = os.getenv("SMTP_SERVER")
    if not server:
        logger.debug("SMTP_SERVER unset; dropping email to %s", to_email)
        return
    from_addr = os.getenv("EMAIL_FROM", "noreply@example.com")
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_email
    msg.set_content(message)
    with smtplib.SMTP(server) as s:
        s.send_message(msg)


def send_daily_digest(db, now=None) -> int:
    from datetime import datetime, timezone
    from . import models
    from .services import notifications

    now = now or datetime.now(timezone.utc)
    users = (
        db.query(models.User)
        .filter(models.User.is_active.is_(True), models.User.deleted_at.is_(None))
        .all()
    )
    sent = 0
    for user in users:
        prefs = notifications.get_preferences(db, user)
        if not notifications.email_enabled(prefs):
            continue
        if notifications.in_quiet_hours(prefs, now):
            continue
        query = notifications.active_notifications(db, user, now).filter(
            models.Notification.is_read.is_(False)
        )
        if user.last_digest is not None:
            query = query.filter(models.Notification.created_at > user.last_digest)
        notifs = query.order_by(*notifications.ordering()).all()
        if not notifs:
            continue
        content = "\n".join(f"[{n.priority}] {n.title}: {n.message}" for n in notifs)
        send_email(user.email, "Daily Notification Digest", content)
        user.last_digest = now
        sent += 1
    db.commit()
    logger.info("Sent %d notification digests", sent)
    return sent
