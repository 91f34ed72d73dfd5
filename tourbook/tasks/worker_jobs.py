from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from tourbook.db.session import SessionLocal
from tourbook.services.notification_service import process_pending_notifications


def process_notification_queue(limit: int = 50) -> dict:
    db: Session = SessionLocal()
    try:
        try:
            return process_pending_notifications(db, limit=limit)
        except (ProgrammingError, OperationalError):
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()
