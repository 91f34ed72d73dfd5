import logging
import uuid
from datetime import datetime, timezone

import requests
from sqlalchemy.orm import Session

from tourbook.core.config import settings
from tourbook.models.notification import Notification

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


def queue_notification(db: Session, recipient_id: str, title: str, message: str, type: str, related_booking_number: str = "") -> str:
    """Add a notification request to the outbox. Committed together with the caller's transaction."""
    nid = str(uuid.uuid4())
    db.add(
        Notification(
            id=nid,
            recipient_id=recipient_id,
            title=title,
            message=message,
            type=type,
            status="queued",
            related_booking_number=related_booking_number,
        )
    )
    return nid


def deliver(db: Session, notification_id: str) -> bool:
    """Attempt immediate delivery. Without a webhook the row stays queued for poll-based consumers."""
    n = db.get(Notification, notification_id)
    if not n or not settings.NOTIFICATION_WEBHOOK_URL:
        return False
    ok = _attempt(n)
    db.commit()
    return ok


def _attempt(n: Notification) -> bool:
    n.attempts = (n.attempts or 0) + 1
    try:
        send_notification(n)
    except (requests.RequestException, RuntimeError) as e:
        logger.warning("Notification %s delivery failed (attempt %s): %s", n.id, n.attempts, e)
        n.status = "failed"
        return False
    n.status = "delivered"
    n.delivered_at = datetime.now(timezone.utc)
    return True


def send_notification(n: Notification) -> None:
    headers = {}
    if settings.NOTIFICATION_WEBHOOK_TOKEN:
        headers["Authorization"] = f"Bearer {settings.NOTIFICATION_WEBHOOK_TOKEN}"
    r = requests.post(
        settings.NOTIFICATION_WEBHOOK_URL,
        json={
            "recipientId": n.recipient_id,
            "title": n.title,
            "message": n.message,
            "type": n.type,
            "bookingNumber": n.related_booking_number,
        },
        headers=headers,
        timeout=10,
    )
    if r.status_code >= 400:
        raise RuntimeError(f"notification webhook error {r.status_code}: {r.text}")


def process_pending_notifications(db: Session, limit: int = 50) -> dict:
    """Retry queued or failed notifications. Returns counts."""
    if not settings.NOTIFICATION_WEBHOOK_URL:
        return {"skipped": True, "reason": "no_webhook"}
    pending = (
        db.query(Notification)
        .filter(Notification.status.in_(["queued", "failed"]), Notification.attempts < MAX_ATTEMPTS)
        .order_by(Notification.created_at.asc())
        .limit(limit)
        .all()
    )
    sent, failed = 0, 0
    for n in pending:
        if _attempt(n):
            sent += 1
        else:
            failed += 1
    if pending:
        db.commit()
    return {"processed": len(pending), "sent": sent, "failed": failed}


def list_for_recipient(db: Session, recipient_id: str, limit: int = 50) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.recipient_id == recipient_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
        .all()
    )
