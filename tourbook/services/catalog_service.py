"""Catalog/account collaborator boundary.

Upstream payloads arrive with mixed key casing (``Id``/``id``, ``AvailableSlots``/
``availableSlots``, ``TargetAudience`` as a JSON string...). They are mapped onto the
canonical ``tourbook.schemas.catalog`` types here, once, so nothing past this module
looks up aliases.
"""
from datetime import date
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tourbook.models.catalog import BonusService, ComboAddOn, CouponRow, ServiceCombo
from tourbook.models.user import User
from tourbook.schemas.catalog import (
    Actor,
    AddOnService,
    ComplementaryOffer,
    Coupon,
    MembershipTier,
    OfferingStatus,
    ServiceOffering,
    TargetAudience,
)
from tourbook.services.eligibility_service import tier_for_total_spent

ROLE_IDS = {1: "admin", 2: "host", 3: "agency", 4: "tourist"}

_MISSING = object()


def _field(src: Any, *names: str, default: Any = None) -> Any:
    for name in names:
        if isinstance(src, dict):
            value = src.get(name, _MISSING)
        else:
            value = getattr(src, name, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _status(value: Any) -> OfferingStatus:
    try:
        return OfferingStatus(str(value or "").strip().lower())
    except ValueError:
        return OfferingStatus.CLOSED


def offering_from_payload(data: Any) -> ServiceOffering:
    return ServiceOffering(
        id=_int(_field(data, "Id", "id")),
        host_id=str(_field(data, "HostId", "hostId", "host_id", default="")),
        name=_field(data, "Name", "name", default=""),
        unit_price=max(0, _int(_field(data, "Price", "price", "unitPrice", "unit_price"))),
        available_slots=max(0, _int(_field(data, "AvailableSlots", "availableSlots", "available_slots"))),
        status=_status(_field(data, "Status", "status")),
    )


def add_on_from_payload(data: Any, offering_id: Optional[int] = None) -> AddOnService:
    return AddOnService(
        id=_int(_field(data, "Id", "id")),
        offering_id=_int(_field(data, "ServiceComboId", "serviceComboId", "combo_id", "offering_id", default=offering_id)),
        name=_field(data, "Name", "name", default=""),
        unit_price=max(0, _int(_field(data, "Price", "price", "unitPrice", "unit_price"))),
    )


def complementary_from_payload(data: Any) -> ComplementaryOffer:
    return ComplementaryOffer(
        id=_int(_field(data, "Id", "id")),
        host_id=str(_field(data, "HostId", "hostId", "host_id", default="")),
        name=_field(data, "Name", "name", default=""),
        unit_price=max(0, _int(_field(data, "Price", "price", "unitPrice", "unit_price"))),
        target_audience=TargetAudience.parse(_field(data, "TargetAudience", "targetAudience", "target_audience")),
    )


def _date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def coupon_from_payload(data: Any) -> Coupon:
    percent = _field(data, "DiscountPercent", "discountPercent", "discount_percent")
    amount = _field(data, "DiscountAmount", "discountAmount", "discount_amount")
    limit = _field(data, "UsageLimit", "usageLimit", "usage_limit")
    scope = _field(data, "ServiceComboId", "serviceComboId", "combo_id", "service_offering_id")
    return Coupon(
        code=str(_field(data, "Code", "code", default="")).strip().upper(),
        discount_percent=min(max(float(percent), 0.0), 100.0) if percent is not None else None,
        discount_amount=max(_int(amount), 0) if amount is not None else None,
        target_audience=TargetAudience.parse(_field(data, "TargetAudience", "targetAudience", "target_audience")),
        expiry=_date(_field(data, "ExpiryDate", "expiryDate", "expiry_date", "expiry")),
        service_offering_id=_int(scope) if scope is not None else None,
        is_active=bool(_field(data, "IsActive", "isActive", "is_active", default=True)),
        usage_limit=_int(limit) if limit is not None else None,
        usage_count=_int(_field(data, "UsageCount", "usageCount", "usage_count", default=0)),
    )


def actor_from_payload(data: Any) -> Actor:
    role = _field(data, "Role", "role")
    if role is None:
        role = ROLE_IDS.get(_int(_field(data, "RoleId", "roleId", "role_id"), 4), "tourist")
    role = str(role).strip().lower()
    tier = MembershipTier.parse(_field(data, "Level", "level", "tier", default=0))
    if tier is MembershipTier.NONE:
        # no level assigned yet: rank by spend
        tier = tier_for_total_spent(_int(_field(data, "TotalSpent", "totalSpent", "total_spent", default=0)))
    return Actor(
        id=str(_field(data, "Id", "id", default="")),
        name=_field(data, "Name", "name", "full_name", "Username", "username", default=""),
        role=role,
        tier=tier,
        is_admin=role == "admin",
    )


# -------------------------
# DB-backed collaborator
# -------------------------
def get_offering(db: Session, offering_id: int, lock: bool = False) -> Optional[ServiceOffering]:
    stmt = select(ServiceCombo).where(ServiceCombo.id == offering_id)
    if lock:
        stmt = stmt.with_for_update()
    row = db.execute(stmt).scalar_one_or_none()
    return offering_from_payload(row) if row else None


def list_add_ons(db: Session, offering_id: int) -> List[AddOnService]:
    rows = db.query(ComboAddOn).filter(ComboAddOn.combo_id == offering_id).all()
    return [add_on_from_payload(r) for r in rows]


def list_complementary_offers(db: Session, host_id: str) -> List[ComplementaryOffer]:
    rows = db.query(BonusService).filter(BonusService.host_id == host_id).all()
    return [complementary_from_payload(r) for r in rows]


def resolve_coupon(db: Session, code: str) -> Optional[Coupon]:
    """Case-insensitive lookup; None when the code does not exist."""
    row = db.query(CouponRow).filter(func.upper(CouponRow.code) == code.strip().upper()).first()
    return coupon_from_payload(row) if row else None


def get_actor(db: Session, user_id: str) -> Optional[Actor]:
    u = db.get(User, user_id)
    if not u or not u.is_active:
        return None
    return actor_from_payload(u)
