from datetime import date

import pytest

from tourbook.core.errors import CapacityError, UnresolvableReference, ValidationError
from tourbook.schemas.booking import AddOnSelection
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
from tourbook.services.pricing_service import coupon_discount, percent_of, quote

TODAY = date(2026, 6, 1)

OFFERING = ServiceOffering(id=10, host_id="h1", name="Combo", unit_price=100_000, available_slots=3)
KAYAK = AddOnService(id=1, offering_id=10, name="Kayak", unit_price=50_000)
OTHER_COMBO_ADDON = AddOnService(id=2, offering_id=99, name="Elsewhere", unit_price=70_000)
TEN_OFF = Coupon(code="SUMMER10", discount_percent=10)


def _tourist(tier=MembershipTier.SILVER):
    return Actor(id="c1", name="Khách", role="tourist", tier=tier)


def _resolver(*coupons):
    by_code = {c.code: c for c in coupons}
    return lambda code: by_code.get(code.upper())


def _quote(quantity=2, add_ons=(), comp=(), code=None, actor=None, **kw):
    kw.setdefault("add_on_catalog", [KAYAK, OTHER_COMBO_ADDON])
    kw.setdefault("resolve_coupon", _resolver(TEN_OFF))
    kw.setdefault("today", TODAY)
    return quote(OFFERING, quantity, list(add_ons), list(comp), code, actor or _tourist(), **kw)


def test_coupon_discounts_base_only():
    q = _quote(add_ons=[AddOnSelection(id=1, quantity=1)], code="SUMMER10")
    assert q.ok
    assert q.base_amount == 200_000
    assert q.add_ons_amount == 50_000
    assert q.coupon_discount == 20_000
    assert q.final_amount == 230_000
    assert q.coupon_applied


def test_slot_limit():
    assert _quote(quantity=3).ok
    q = _quote(quantity=4)
    assert q.error.code == "slot_exceeded"
    assert q.error.field == "quantity"
    with pytest.raises(CapacityError):
        q.raise_for_error()


def test_unlimited_slots_when_zero():
    offering = OFFERING.model_copy(update={"available_slots": 0})
    q = quote(offering, 50, [], [], None, _tourist())
    assert q.ok
    assert q.base_amount == 5_000_000


def test_quantity_must_be_positive():
    q = _quote(quantity=0)
    assert q.error.code == "invalid_quantity"
    with pytest.raises(ValidationError):
        q.raise_for_error()


@pytest.mark.parametrize("status", [OfferingStatus.CLOSED, OfferingStatus.PENDING, OfferingStatus.REJECTED])
def test_unbookable_offering(status):
    offering = OFFERING.model_copy(update={"status": status})
    q = quote(offering, 1, [], [], None, _tourist())
    assert q.error.code == "offering_unavailable"


def test_unknown_coupon_is_a_field_error_but_amounts_still_computed():
    q = _quote(code="NOPE")
    assert q.error.code == "coupon_unresolvable"
    assert q.error.field == "couponCode"
    assert q.final_amount == 200_000
    with pytest.raises(UnresolvableReference):
        q.raise_for_error()


@pytest.mark.parametrize("coupon,message", [
    (Coupon(code="OLD", discount_percent=10, expiry=date(2026, 1, 1)), "expired"),
    (Coupon(code="OFF", discount_percent=10, is_active=False), "expired"),
    (Coupon(code="USED", discount_percent=10, usage_limit=5, usage_count=5), "expired"),
    (Coupon(code="SCOPED", discount_percent=10, service_offering_id=99), "offering"),
    (Coupon(code="GOLD", discount_percent=10, target_audience=TargetAudience(
        for_tourist=True, tourist_levels=frozenset({3}))), "Bạn đang ở hạng Bạc. Cần hạng Vàng"),
    (Coupon(code="AGENT", discount_percent=10, target_audience=TargetAudience(for_agency=True)), "chỉ dành cho Đại lý"),
    (Coupon(code="ZERO"), "no discount"),
])
def test_coupon_not_applied_is_soft(coupon, message):
    q = _quote(code=coupon.code, resolve_coupon=_resolver(coupon))
    assert q.ok
    assert not q.coupon_applied
    assert q.coupon_discount == 0
    assert message in q.coupon_message
    assert q.final_amount == 200_000


def test_flat_coupon_is_capped_at_base():
    big = Coupon(code="BIG", discount_amount=1_000_000)
    q = _quote(quantity=1, add_ons=[AddOnSelection(id=1)], code="big", resolve_coupon=_resolver(big))
    assert q.coupon_discount == 100_000
    assert q.final_amount == 50_000


def test_percent_wins_over_amount():
    both = Coupon(code="BOTH", discount_percent=10, discount_amount=70_000)
    assert coupon_discount(both, 200_000) == 20_000


def test_half_up_rounding():
    assert percent_of(5, 10) == 1  # 0.5 -> 1
    assert percent_of(4, 10) == 0
    assert percent_of(333_333, 15) == 50_000


def test_add_ons_from_other_offerings_are_dropped():
    q = _quote(add_ons=[AddOnSelection(id=2), AddOnSelection(id=404), AddOnSelection(id=1, quantity=0)])
    assert q.add_ons_amount == 0
    assert q.dropped_add_on_ids == [2, 404, 1]


def test_max_selectable_caps_complementary():
    offers = [
        ComplementaryOffer(id=1, name="A", unit_price=30_000),
        ComplementaryOffer(id=2, name="B", unit_price=40_000),
    ]
    q = _quote(comp=[1, 2], complementary_offers=offers, actor=_tourist(MembershipTier.BRONZE))
    assert q.accepted_complementary_ids == [1]
    assert q.rejected_complementary_ids == [2]
    assert q.complementary_amount == 0
    assert q.final_amount == q.base_amount


def test_override_count_replaces_tier_cap():
    offers = [ComplementaryOffer(id=i, name=str(i)) for i in (1, 2, 3)]
    q = _quote(comp=[1, 2, 3], complementary_offers=offers, actor=_tourist(MembershipTier.NONE), max_complementary=2)
    assert q.accepted_complementary_ids == [1, 2]
    assert q.rejected_complementary_ids == [3]


def test_ineligible_and_unknown_complementary_are_rejected():
    gold_only = ComplementaryOffer(id=5, name="Cabin", target_audience=TargetAudience(
        for_tourist=True, tourist_levels=frozenset({3})))
    q = _quote(comp=[5, 6], complementary_offers=[gold_only], actor=_tourist(MembershipTier.SILVER))
    assert q.accepted_complementary_ids == []
    assert q.rejected_complementary_ids == [5, 6]


def test_requote_recomputes_from_current_quantity():
    unlimited = OFFERING.model_copy(update={"available_slots": 0})
    previous = None
    for qty in range(1, 6):
        q = quote(unlimited, qty, [AddOnSelection(id=1)], [], "SUMMER10", _tourist(),
                  add_on_catalog=[KAYAK], resolve_coupon=_resolver(TEN_OFF), today=TODAY)
        assert q.base_amount == 100_000 * qty
        assert q.coupon_discount == 10_000 * qty
        assert q.add_ons_amount == 50_000
        if previous is not None:
            assert q.base_amount >= previous.base_amount
            assert q.coupon_discount >= previous.coupon_discount
        previous = q
