import os
from celery import Celery
from celery.schedules import crontab

from .database import SessionLocal
from .services import notifications
from . import notify

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")
celery_app = Celery("tasks", broker=CELERY_BROKER_URL)
celery_app.conf.task_always_eager = (
    CELERY_BROKER_URL == "memory://" or os.getenv("TESTING") == "1"
)

celery_app.conf.beat_schedule = {
    "purge-expired-notifications": {
        "task": "app.tasks.purge_expired_notifications",
        "schedule": crontab(minute=0),
    },
    "notification-digest": {
        "task": "app.tasks.send_notification_digests",
        "schedule": crontab(hour=7, minute=0),
    },
}


@celery_app.task(name="app.tasks.purge_expired_notifications")
def purge_expired_notifications() -> int:
    db = SessionLocal()
    try:
        return notifications.purge_expired(db)
    finally:
        db.close()


@celery_app.task(name="app.tasks.send_notification_digests")
def send_notification_digests() -> int:
    db = SessionLocal()
    try:
        return notify.send_daily_digest(db)
    finally:
        db.close()
