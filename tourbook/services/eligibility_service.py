"""Who may claim which complementary offer or coupon.

Pure functions over (rule, actor); nothing here touches the database.
"""
from typing import Optional, Tuple

from tourbook.schemas.catalog import Actor, ComplementaryOffer, MembershipTier, TargetAudience

MAX_SELECTABLE_BY_TIER = {
    MembershipTier.NONE: 0,
    MembershipTier.BRONZE: 1,
    MembershipTier.SILVER: 2,
    MembershipTier.GOLD: 3,
}

TIER_NAMES = {
    MembershipTier.NONE: "Mới bắt đầu",
    MembershipTier.BRONZE: "Đồng",
    MembershipTier.SILVER: "Bạc",
    MembershipTier.GOLD: "Vàng",
}

SILVER_MIN_SPENT = 1_000_000
GOLD_MIN_SPENT = 3_000_000


def tier_for_total_spent(total_spent: int) -> MembershipTier:
    if total_spent >= GOLD_MIN_SPENT:
        return MembershipTier.GOLD
    if total_spent >= SILVER_MIN_SPENT:
        return MembershipTier.SILVER
    if total_spent > 0:
        return MembershipTier.BRONZE
    return MembershipTier.NONE


def _required_level(levels) -> int:
    return min(levels) if levels else 0


def audience_allows(rule: Optional[TargetAudience], actor: Actor) -> bool:
    if rule is None:
        return True
    tier = int(actor.tier)

    # Agencies may also claim tourist-targeted perks.
    if rule.for_tourist and rule.tourist_levels is not None:
        if (actor.role_is_tourist or actor.role_is_agency) and tier >= _required_level(rule.tourist_levels):
            return True

    if rule.for_agency and actor.role_is_agency:
        if rule.agency_levels is None:
            return True
        if tier >= _required_level(rule.agency_levels):
            return True

    return False


def is_eligible(offer: ComplementaryOffer, actor: Actor) -> bool:
    return audience_allows(offer.target_audience, actor)


def max_selectable(tier: MembershipTier, override_count: Optional[int] = None) -> int:
    """Cap on complementary selections; an explicit override (e.g. booked quantity) wins."""
    if override_count is not None:
        return max(0, int(override_count))
    return MAX_SELECTABLE_BY_TIER.get(MembershipTier.parse(tier), 0)


def coupon_eligibility(rule: Optional[TargetAudience], actor: Actor) -> Tuple[bool, str]:
    """Same verdict as ``audience_allows``, plus a human-readable reason when refused."""
    if audience_allows(rule, actor):
        return True, ""

    tier = MembershipTier.parse(actor.tier)

    def below(required: int) -> str:
        return (
            f"Bạn đang ở hạng {TIER_NAMES[tier]}. "
            f"Cần hạng {TIER_NAMES[MembershipTier.parse(required)]} trở lên để sử dụng mã này."
        )

    if rule.for_tourist and rule.tourist_levels is not None and (actor.role_is_tourist or actor.role_is_agency):
        return False, below(_required_level(rule.tourist_levels))
    if rule.for_agency and rule.agency_levels is not None and actor.role_is_agency:
        return False, below(_required_level(rule.agency_levels))
    if rule.for_agency and not rule.for_tourist and not actor.role_is_agency:
        return False, "Mã này chỉ dành cho Đại lý, không áp dụng cho Du khách."
    return False, "Bạn không đủ điều kiện sử dụng mã này."
