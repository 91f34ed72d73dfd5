"""Shared fixtures: an in-memory SQLite database, catalog factories and an API client."""
import os

# Settings are read at import time; keep tests off any real database or webhook.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tourbook.core.security import create_access_token
from tourbook.db.session import Base, get_db
from tourbook.main import app
from tourbook.models.audit_log import AuditLog  # noqa: F401
from tourbook.models.booking import Booking  # noqa: F401
from tourbook.models.catalog import BonusService, ComboAddOn, CouponRow, ServiceCombo
from tourbook.models.notification import Notification  # noqa: F401
from tourbook.models.user import User
from tourbook.schemas.catalog import Actor, MembershipTier, TargetAudience
from tourbook.services.catalog_service import actor_from_payload


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(role="tourist", level=0, name=None, is_active=True) -> User:
        uid = str(uuid.uuid4())
        u = User(
            id=uid,
            email=f"{uid[:8]}@example.com",
            full_name=name or f"{role.title()} {uid[:4]}",
            role=role,
            level=level,
            is_active=is_active,
        )
        db.add(u)
        db.commit()
        return u
    return _make


@pytest.fixture
def as_actor():
    def _as(user: User) -> Actor:
        return actor_from_payload(user)
    return _as


@pytest.fixture
def host(make_user):
    return make_user(role="host", name="Hạ Long Tours")


@pytest.fixture
def customer(make_user):
    return make_user(role="tourist", level=int(MembershipTier.SILVER), name="Nguyễn Văn A")


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", name="Admin")


@pytest.fixture
def combo(db, host):
    c = ServiceCombo(host_id=host.id, name="Vịnh Hạ Long 1 ngày", price=100_000, available_slots=3, status="open")
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def kayak(db, combo):
    a = ComboAddOn(combo_id=combo.id, name="Kayak", price=50_000)
    db.add(a)
    db.commit()
    return a


@pytest.fixture
def make_bonus(db, host):
    def _make(name="Welcome drink", audience=None) -> BonusService:
        b = BonusService(
            host_id=host.id,
            name=name,
            price=30_000,
            target_audience=audience.to_json() if isinstance(audience, TargetAudience) else audience,
        )
        db.add(b)
        db.commit()
        return b
    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code="SUMMER10", **kw) -> CouponRow:
        c = CouponRow(code=code, **kw)
        db.add(c)
        db.commit()
        return c
    return _make


@pytest.fixture
def client(engine):
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _get_db():
        session = TestSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers
