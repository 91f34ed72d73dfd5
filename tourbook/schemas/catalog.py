"""Read-only catalog and account value types consumed by the booking core.

These are the canonical shapes; ``tourbook.services.catalog_service`` maps whatever the
catalog/account collaborators return (ORM rows, loosely-typed JSON with mixed key casing)
onto them once, at the boundary.
"""
import json
from datetime import date
from enum import Enum, IntEnum
from typing import Any, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field


class MembershipTier(IntEnum):
    NONE = 0
    BRONZE = 1
    SILVER = 2
    GOLD = 3

    @classmethod
    def parse(cls, value: Any) -> "MembershipTier":
        """Accept 0-3, 'gold', 'level2', 'default' ... Unknown values map to NONE."""
        if isinstance(value, MembershipTier):
            return value
        if isinstance(value, bool):
            return cls.NONE
        if isinstance(value, int):
            return cls(value) if 0 <= value <= 3 else cls.NONE
        text = str(value or "").strip().lower()
        if text.isdigit():
            return cls.parse(int(text))
        if text.startswith("level") and text[5:].isdigit():
            return cls.parse(int(text[5:]))
        return _TIER_NAMES.get(text, cls.NONE)


_TIER_NAMES = {
    "none": MembershipTier.NONE,
    "default": MembershipTier.NONE,
    "bronze": MembershipTier.BRONZE,
    "silver": MembershipTier.SILVER,
    "gold": MembershipTier.GOLD,
}

AUDIENCE_LEVELS = ("level1", "level2", "level3")


class OfferingStatus(str, Enum):
    OPEN = "open"
    APPROVED = "approved"
    ACTIVE = "active"
    AVAILABLE = "available"
    CLOSED = "closed"
    PENDING = "pending"
    REJECTED = "rejected"


BOOKABLE_STATUSES = frozenset({
    OfferingStatus.OPEN, OfferingStatus.APPROVED, OfferingStatus.ACTIVE, OfferingStatus.AVAILABLE,
})


def _parse_levels(raw: Any) -> Optional[FrozenSet[int]]:
    """{'level1': true, 'level3': false} or ['level1', 2] -> {1}. None when no level map."""
    if raw is None or raw is False:
        return None
    if isinstance(raw, dict):
        keys = [k for k, on in raw.items() if on]
    elif isinstance(raw, (list, tuple, set, frozenset)):
        keys = list(raw)
    else:
        raise ValueError("unsupported level map")
    levels = set()
    for k in keys:
        tier = MembershipTier.parse(k)
        if tier != MembershipTier.NONE:
            levels.add(int(tier))
    return frozenset(levels)


class TargetAudience(BaseModel):
    """Who may claim a complementary offer or a coupon.

    ``tourist_levels`` / ``agency_levels`` are ``None`` when the record carries no level
    map at all, and an empty set when a map exists with nothing ticked.
    """

    model_config = ConfigDict(frozen=True)

    for_tourist: bool = False
    tourist_levels: Optional[FrozenSet[int]] = None
    for_agency: bool = False
    agency_levels: Optional[FrozenSet[int]] = None

    @classmethod
    def parse(cls, raw: Any) -> Optional["TargetAudience"]:
        """Lenient: anything malformed is treated as 'no rule' and yields None."""
        if raw is None or isinstance(raw, TargetAudience):
            return raw
        try:
            data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            if not isinstance(data, dict):
                return None
            return cls(
                for_tourist=bool(data.get("forTourist", data.get("for_tourist", False))),
                tourist_levels=_parse_levels(data.get("touristLevels", data.get("tourist_levels"))),
                for_agency=bool(data.get("forAgency", data.get("for_agency", False))),
                agency_levels=_parse_levels(data.get("agencyLevels", data.get("agency_levels"))),
            )
        except (ValueError, TypeError):
            return None

    def to_json(self) -> str:
        def levels(s):
            return None if s is None else {lvl: (i + 1) in s for i, lvl in enumerate(AUDIENCE_LEVELS)}

        return json.dumps({
            "forTourist": self.for_tourist,
            "touristLevels": levels(self.tourist_levels),
            "forAgency": self.for_agency,
            "agencyLevels": levels(self.agency_levels),
        })


class Actor(BaseModel):
    """The user performing an operation. Passed explicitly into every core call."""

    id: str
    name: str = ""
    role: str = "tourist"  # tourist, agency, host, admin
    tier: MembershipTier = MembershipTier.NONE
    is_admin: bool = False

    @property
    def role_is_tourist(self) -> bool:
        return self.role == "tourist"

    @property
    def role_is_agency(self) -> bool:
        return self.role == "agency"


class ServiceOffering(BaseModel):
    id: int
    host_id: str
    name: str = ""
    unit_price: int = Field(ge=0)
    available_slots: int = Field(default=0, ge=0)  # 0 = unlimited
    status: OfferingStatus = OfferingStatus.OPEN

    @property
    def is_bookable(self) -> bool:
        return self.status in BOOKABLE_STATUSES


class AddOnService(BaseModel):
    id: int
    offering_id: int
    name: str = ""
    unit_price: int = Field(ge=0)


class ComplementaryOffer(BaseModel):
    id: int
    host_id: str = ""
    name: str = ""
    unit_price: int = 0  # informational, always charged as 0
    target_audience: Optional[TargetAudience] = None


class Coupon(BaseModel):
    code: str
    discount_percent: Optional[float] = Field(default=None, ge=0, le=100)
    discount_amount: Optional[int] = Field(default=None, ge=0)
    target_audience: Optional[TargetAudience] = None
    expiry: Optional[date] = None
    service_offering_id: Optional[int] = None
    is_active: bool = True
    usage_limit: Optional[int] = None
    usage_count: int = 0

    def is_live(self, today: date) -> bool:
        if not self.is_active:
            return False
        if self.expiry is not None and self.expiry < today:
            return False
        if self.usage_limit is not None and self.usage_count >= self.usage_limit:
            return False
        return True
