import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, List, Optional, Sequence

from tourbook.schemas.booking import AddOnSelection
from tourbook.schemas.catalog import Actor, AddOnService, ComplementaryOffer, Coupon, ServiceOffering
from tourbook.schemas.pricing import AddOnChoice, PricingError, Quote
from tourbook.services.eligibility_service import coupon_eligibility, is_eligible, max_selectable

logger = logging.getLogger(__name__)

CouponResolver = Callable[[str], Optional[Coupon]]


def percent_of(amount: int, pct: float) -> int:
    """Half-up rounding to the smallest currency unit."""
    value = Decimal(amount) * Decimal(str(pct)) / Decimal(100)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def coupon_discount(coupon: Coupon, base_amount: int) -> int:
    """Discount against the combo base only; add-ons are never discounted."""
    if coupon.discount_percent:
        return min(percent_of(base_amount, coupon.discount_percent), base_amount)
    if coupon.discount_amount:
        return min(int(coupon.discount_amount), base_amount)
    return 0


def _error(code: str, message: str, field: str) -> Quote:
    return Quote(error=PricingError(code=code, message=message, field=field))


def select_add_ons(
    offering: ServiceOffering,
    selections: Sequence[AddOnSelection],
    catalog: Iterable[AddOnService],
) -> tuple[List[AddOnChoice], List[int]]:
    """Match selections against the offering's add-on catalog. Returns (accepted, dropped ids)."""
    by_id = {item.id: item for item in catalog if item.offering_id == offering.id}
    accepted: List[AddOnChoice] = []
    dropped: List[int] = []
    for sel in selections:
        item = by_id.get(sel.id)
        if item is None or sel.quantity < 1:
            dropped.append(sel.id)
            continue
        accepted.append(AddOnChoice(catalog_item=item, quantity=sel.quantity))
    return accepted, dropped


def select_complementary(
    selected_ids: Sequence[int],
    offers: Iterable[ComplementaryOffer],
    actor: Actor,
    max_count: Optional[int] = None,
) -> tuple[List[int], List[int]]:
    """Split selected perk ids into (accepted, rejected) by eligibility, then by the cap."""
    by_id = {o.id: o for o in offers}
    cap = max_selectable(actor.tier, max_count)
    accepted: List[int] = []
    rejected: List[int] = []
    for oid in dict.fromkeys(selected_ids):
        offer = by_id.get(oid)
        if offer is None or not is_eligible(offer, actor) or len(accepted) >= cap:
            rejected.append(oid)
        else:
            accepted.append(oid)
    return accepted, rejected


def quote(
    offering: ServiceOffering,
    quantity: int,
    add_on_selections: Sequence[AddOnSelection],
    complementary_selections: Sequence[int],
    coupon_code: Optional[str],
    actor: Actor,
    *,
    add_on_catalog: Iterable[AddOnService] = (),
    complementary_offers: Iterable[ComplementaryOffer] = (),
    resolve_coupon: Optional[CouponResolver] = None,
    max_complementary: Optional[int] = None,
    today: Optional[date] = None,
) -> Quote:
    """Price a booking request. Never raises: failures come back on ``Quote.error``.

    Every amount is derived from the current inputs, so changing ``quantity`` and quoting
    again recomputes the add-on total and the coupon discount against the new base.
    """
    if not offering.is_bookable:
        return _error("offering_unavailable", f"offering {offering.id} is not open for booking", "serviceOfferingId")
    if quantity < 1:
        return _error("invalid_quantity", "quantity must be >= 1", "quantity")
    if offering.available_slots > 0 and quantity > offering.available_slots:
        return _error(
            "slot_exceeded",
            f"only {offering.available_slots} slots available",
            "quantity",
        )

    base_amount = offering.unit_price * quantity

    add_ons, dropped = select_add_ons(offering, add_on_selections, add_on_catalog)
    if dropped:
        logger.info("Dropped add-ons %s for offering %s", dropped, offering.id)
    add_ons_amount = sum(c.catalog_item.unit_price * c.quantity for c in add_ons)

    accepted_comp, rejected_comp = select_complementary(
        complementary_selections, complementary_offers, actor, max_complementary
    )
    if rejected_comp:
        logger.info("Rejected complementary offers %s for actor %s", rejected_comp, actor.id)

    result = Quote(
        base_amount=base_amount,
        add_ons_amount=add_ons_amount,
        accepted_add_ons=add_ons,
        dropped_add_on_ids=dropped,
        accepted_complementary_ids=accepted_comp,
        rejected_complementary_ids=rejected_comp,
    )

    code = (coupon_code or "").strip()
    if code:
        result.coupon_code = code
        coupon = resolve_coupon(code) if resolve_coupon else None
        if coupon is None:
            result.error = PricingError(
                code="coupon_unresolvable", message=f"coupon {code} does not exist", field="couponCode"
            )
        else:
            _apply_coupon(result, coupon, offering, actor, today or datetime.now(timezone.utc).date())

    result.final_amount = max(0, result.base_amount + result.add_ons_amount - result.coupon_discount)
    return result


def _apply_coupon(result: Quote, coupon: Coupon, offering: ServiceOffering, actor: Actor, today: date) -> None:
    allowed, refusal = coupon_eligibility(coupon.target_audience, actor)
    if not coupon.is_live(today):
        result.coupon_message = "coupon is expired or no longer available"
    elif coupon.service_offering_id is not None and coupon.service_offering_id != offering.id:
        result.coupon_message = "coupon does not apply to this offering"
    elif not allowed:
        result.coupon_message = refusal
    else:
        discount = coupon_discount(coupon, result.base_amount)
        if discount > 0:
            result.coupon_discount = discount
            result.coupon_applied = True
            result.coupon_code = coupon.code
            return
        result.coupon_message = "coupon gives no discount"
    logger.info("Coupon %s not applied: %s", coupon.code, result.coupon_message)
