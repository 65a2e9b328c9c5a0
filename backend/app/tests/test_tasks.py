from datetime import datetime, timedelta, timezone

from app import models, notify, tasks
from conftest import add_member, client, db_session, register_workspace


def _notify(client, headers, **fields):
    payload = {"title": "Digest item", "message": "Something happened"}
    payload.update(fields)
    resp = client.post("/api/notifications", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_celery_runs_eagerly_in_tests():
    assert tasks.celery_app.conf.task_always_eager is True
    schedule = tasks.celery_app.conf.beat_schedule
    assert schedule["purge-expired-notifications"]["task"] == "app.tasks.purge_expired_notifications"
    assert schedule["notification-digest"]["task"] == "app.tasks.send_notification_digests"


def test_purge_expired_notifications(client, db_session):
    ctx = register_workspace(client)
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    future = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
    expired = _notify(client, ctx["headers"], expires_at=past)
    live = _notify(client, ctx["headers"], expires_at=future)

    purged = tasks.purge_expired_notifications.delay().get()
    assert purged >= 1

    remaining = {
        str(row.id)
        for row in db_session.query(models.Notification)
        .filter(models.Notification.user_id == ctx["user"]["id"])
        .all()
    }
    assert expired["id"] not in remaining
    assert live["id"] in remaining


def test_digest_respects_preferences(client):
    ctx = register_workspace(client)
    muted_headers, muted = add_member(client, ctx["headers"])
    quiet_headers, quiet = add_member(client, ctx["headers"])

    _notify(client, ctx["headers"], title="Batch shipped", priority="high")
    _notify(client, muted_headers)
    _notify(client, quiet_headers)

    client.put(
        "/api/notification-preferences",
        json={
            "email_payment_reminders": False,
            "email_project_updates": False,
            "email_sample_notifications": False,
            "email_system_announcements": False,
        },
        headers=muted_headers,
    )
    now = datetime.now(timezone.utc)
    client.put(
        "/api/notification-preferences",
        json={
            "quiet_hours_start": (now - timedelta(hours=1)).strftime("%H:%M:%S"),
            "quiet_hours_end": (now + timedelta(hours=1)).strftime("%H:%M:%S"),
            "quiet_hours_timezone": "UTC",
        },
        headers=quiet_headers,
    )

    sent = tasks.send_notification_digests.delay().get()
    assert sent >= 1

    digests = {to: body for to, subject, body in notify.EMAIL_OUTBOX if subject == "Daily Notification Digest"}
    assert ctx["email"] in digests
    assert "[high] Batch shipped" in digests[ctx["email"]]
    assert muted["email"] not in digests
    assert quiet["email"] not in digests


def test_digest_only_includes_new_unread(client, db_session):
    ctx = register_workspace(client)
    first = _notify(client, ctx["headers"], title="First")
    notify.send_daily_digest(db_session)
    assert [to for to, _, _ in notify.EMAIL_OUTBOX].count(ctx["email"]) == 1

    notify.EMAIL_OUTBOX.clear()
    notify.send_daily_digest(db_session)
    assert ctx["email"] not in [to for to, _, _ in notify.EMAIL_OUTBOX]

    _notify(client, ctx["headers"], title="Second")
    client.post(f"/api/notifications/{first['id']}/read", headers=ctx["headers"])
    notify.EMAIL_OUTBOX.clear()
    notify.send_daily_digest(db_session)
    bodies = [body for to, _, body in notify.EMAIL_OUTBOX if to == ctx["email"]]
    assert len(bodies) == 1
    assert "Second" in bodies[0]
    assert "First" not in bodies[0]
