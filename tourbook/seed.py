import logging
import uuid
from datetime import date, timedelta

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from tourbook.core.log_config import configure_logging
from tourbook.db.session import SessionLocal
from tourbook.models.catalog import BonusService, ComboAddOn, CouponRow, ServiceCombo
from tourbook.models.user import User
from tourbook.schemas.catalog import TargetAudience

logger = logging.getLogger(__name__)


def ensure_user(db: Session, email: str, role: str, name: str, level: int = 0, total_spent: int = 0) -> User:
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        full_name=name,
        role=role,
        level=level,
        total_spent=total_spent,
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin@tourbook.vn", "admin", "Admin")
        host = ensure_user(db, "host@tourbook.vn", "host", "Hạ Long Tours")
        ensure_user(db, "tourist@tourbook.vn", "tourist", "Nguyễn Văn A", level=2, total_spent=1_500_000)
        ensure_user(db, "agency@tourbook.vn", "agency", "Sunrise Travel", level=1, total_spent=400_000)

        if db.query(ServiceCombo).filter(ServiceCombo.host_id == host.id).first():
            return

        combo = ServiceCombo(host_id=host.id, name="Du thuyền vịnh Hạ Long 1 ngày", price=100_000, available_slots=20, status="open")
        db.add(combo)
        db.flush()
        db.add_all([
            ComboAddOn(combo_id=combo.id, name="Chèo kayak", price=50_000),
            ComboAddOn(combo_id=combo.id, name="Bữa trưa hải sản", price=120_000),
        ])
        db.add_all([
            BonusService(host_id=host.id, name="Nước chào mừng", price=20_000, target_audience=TargetAudience(
                for_tourist=True, tourist_levels=frozenset({1, 2, 3}),
            ).to_json()),
            BonusService(host_id=host.id, name="Ảnh lưu niệm", price=80_000, target_audience=TargetAudience(
                for_tourist=True, tourist_levels=frozenset({2, 3}), for_agency=True, agency_levels=frozenset({2, 3}),
            ).to_json()),
            BonusService(host_id=host.id, name="Nâng hạng cabin", price=300_000, target_audience=TargetAudience(
                for_tourist=True, tourist_levels=frozenset({3}),
            ).to_json()),
        ])
        db.add(CouponRow(code="SUMMER10", discount_percent=10, expiry_date=date.today() + timedelta(days=90)))
        db.add(CouponRow(
            code="AGENCY50K", discount_amount=50_000,
            target_audience=TargetAudience(for_agency=True).to_json(),
        ))
        db.commit()
        logger.info("Seeded demo catalog for host %s", host.id)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run()
