import requests

from tourbook.core.config import settings
from tourbook.models.notification import Notification
from tourbook.services import notification_service
from tourbook.services.notification_service import (
    MAX_ATTEMPTS,
    deliver,
    process_pending_notifications,
    queue_notification,
)


class _Resp:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text


def _queue(db, recipient="u1"):
    nid = queue_notification(db, recipient, "Đơn đặt đã bị hủy", "Lý do: hết chỗ", "booking_cancelled", "BK-ABC123")
    db.commit()
    return nid


def test_without_webhook_rows_stay_queued(db):
    nid = _queue(db)
    assert deliver(db, nid) is False
    assert db.get(Notification, nid).status == "queued"
    assert process_pending_notifications(db) == {"skipped": True, "reason": "no_webhook"}


def test_deliver_posts_to_webhook(db, monkeypatch):
    sent = []
    monkeypatch.setattr(settings, "NOTIFICATION_WEBHOOK_URL", "https://hooks.example.com/notify")
    monkeypatch.setattr(settings, "NOTIFICATION_WEBHOOK_TOKEN", "tok")
    monkeypatch.setattr(
        notification_service.requests, "post",
        lambda url, json, headers, timeout: sent.append((url, json, headers)) or _Resp(),
    )
    nid = _queue(db)
    assert deliver(db, nid) is True

    n = db.get(Notification, nid)
    assert n.status == "delivered"
    assert n.attempts == 1
    url, payload, headers = sent[0]
    assert payload["type"] == "booking_cancelled"
    assert payload["bookingNumber"] == "BK-ABC123"
    assert headers == {"Authorization": "Bearer tok"}


def test_failures_are_retried_until_max_attempts(db, monkeypatch, caplog):
    monkeypatch.setattr(settings, "NOTIFICATION_WEBHOOK_URL", "https://hooks.example.com/notify")

    def down(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(notification_service.requests, "post", down)
    nid = _queue(db)
    for _ in range(MAX_ATTEMPTS):
        result = process_pending_notifications(db)
        assert result["failed"] == 1
    assert process_pending_notifications(db) == {"processed": 0, "sent": 0, "failed": 0}
    assert db.get(Notification, nid).status == "failed"
    assert "delivery failed" in caplog.text


def test_http_error_marks_failed(db, monkeypatch):
    monkeypatch.setattr(settings, "NOTIFICATION_WEBHOOK_URL", "https://hooks.example.com/notify")
    monkeypatch.setattr(notification_service.requests, "post", lambda *a, **k: _Resp(502, "bad gateway"))
    nid = _queue(db)
    assert deliver(db, nid) is False
    assert db.get(Notification, nid).status == "failed"

    monkeypatch.setattr(notification_service.requests, "post", lambda *a, **k: _Resp())
    assert process_pending_notifications(db) == {"processed": 1, "sent": 1, "failed": 0}
    assert db.get(Notification, nid).status == "delivered"
