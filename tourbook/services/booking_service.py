import logging
import random
import string
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from tourbook.core.config import settings
from tourbook.core.errors import BookingNumberUnavailable, InvalidTransition, NotAuthorized, NotFound, ValidationError
from tourbook.models.booking import Booking
from tourbook.models.catalog import ServiceCombo
from tourbook.schemas.booking import AdditionalServiceLine, BookingCreate, BookingExtras, BookingOut
from tourbook.schemas.catalog import Actor, ServiceOffering
from tourbook.schemas.pricing import PricingError, Quote
from tourbook.services import catalog_service
from tourbook.services.audit_service import log_audit
from tourbook.services.notes_codec import decode_extras, encode_extras
from tourbook.services.notification_service import deliver, queue_notification
from tourbook.services.pricing_service import quote

logger = logging.getLogger(__name__)

PENDING = "pending"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"

TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: {COMPLETED, CANCELLED},
    COMPLETED: set(),
    CANCELLED: set(),
}

STATUS_LABELS = {
    PENDING: "Chờ xác nhận",
    CONFIRMED: "Đã xác nhận",
    COMPLETED: "Đã hoàn thành",
    CANCELLED: "Đã hủy",
}


def status_label(status: str) -> str:
    return STATUS_LABELS.get((status or "").lower(), STATUS_LABELS[PENDING])


def make_booking_number() -> str:
    return f"{settings.BOOKING_NUMBER_PREFIX}-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=6))


# -------------------------
# QUOTE / CREATE
# -------------------------
def quote_booking(db: Session, body: BookingCreate, actor: Actor, lock: bool = False) -> tuple[Quote, Optional[ServiceOffering]]:
    """Fetch the current catalog state and price the request against it."""
    offering = catalog_service.get_offering(db, body.serviceOfferingId, lock=lock)
    if offering is None:
        return Quote(error=PricingError(
            code="offering_unavailable",
            message=f"offering {body.serviceOfferingId} not found",
            field="serviceOfferingId",
        )), None
    result = quote(
        offering,
        body.quantity,
        body.additionalServices,
        body.complementaryServiceIds,
        body.couponCode,
        actor,
        add_on_catalog=catalog_service.list_add_ons(db, offering.id),
        complementary_offers=catalog_service.list_complementary_offers(db, offering.host_id),
        resolve_coupon=lambda code: catalog_service.resolve_coupon(db, code),
        max_complementary=body.quantity,
    )
    return result, offering


def _extras_for(body: BookingCreate, q: Quote, db: Session, offering: ServiceOffering) -> BookingExtras:
    comp_names = {o.id: o.name for o in catalog_service.list_complementary_offers(db, offering.host_id)}
    end_date = body.endDate
    if body.startDate and end_date is None:
        end_date = body.startDate  # single-day booking
    return BookingExtras(
        additional_services=[
            AdditionalServiceLine(id=c.catalog_item.id, quantity=c.quantity, name=c.catalog_item.name or None)
            for c in q.accepted_add_ons
        ],
        coupon_code=q.coupon_code if q.coupon_applied else None,
        complementary_service_ids=q.accepted_complementary_ids,
        complementary_service_names=[comp_names[i] for i in q.accepted_complementary_ids if comp_names.get(i)],
        start_time=body.startTime,
        start_date=body.startDate,
        end_date=end_date,
        final_amount_override=q.final_amount if q.final_amount != q.base_amount else None,
        free_text=body.notes.strip(),
    )


def create_booking(db: Session, body: BookingCreate, actor: Actor) -> Booking:
    if actor is None or not actor.id:
        raise NotAuthorized("authentication required")
    if len(body.notes or "") > settings.NOTES_MAX_LENGTH:
        raise ValidationError(f"notes must be at most {settings.NOTES_MAX_LENGTH} characters", field="notes")
    if body.startDate and body.endDate and body.endDate < body.startDate:
        raise ValidationError("endDate must not be before startDate", field="endDate")

    # Re-quote under a row lock: slots and prices may have moved since the client's quote.
    q, offering = quote_booking(db, body, actor, lock=True)
    q.raise_for_error()

    for _ in range(10):
        number = make_booking_number()
        exists = db.query(Booking).filter(Booking.booking_number == number).first()
        if not exists:
            break
    else:
        logger.error("Booking number allocation exhausted for offering %s", offering.id)
        raise BookingNumberUnavailable("could not allocate a booking number, please retry")

    extras = _extras_for(body, q, db, offering)
    booking = Booking(
        id=str(uuid.uuid4()),
        booking_number=number,
        customer_id=actor.id,
        offering_id=offering.id,
        quantity=body.quantity,
        unit_price=offering.unit_price,
        total_amount=q.final_amount,
        status=PENDING,
        notes=encode_extras(extras),
    )
    db.add(booking)
    log_audit(db, actor.id, "booking.create", "booking", booking.id, {
        "bookingNumber": number,
        "baseAmount": q.base_amount,
        "addOnsAmount": q.add_ons_amount,
        "couponDiscount": q.coupon_discount,
        "finalAmount": q.final_amount,
        "droppedAddOns": q.dropped_add_on_ids,
        "rejectedComplementary": q.rejected_complementary_ids,
    })
    nid = queue_notification(
        db, offering.host_id, "Đơn đặt dịch vụ mới",
        f"Bạn có đơn đặt mới {number} cho {offering.name or 'dịch vụ'}.", "booking_created", number,
    )
    db.commit()
    db.refresh(booking)
    deliver(db, nid)
    logger.info("Booking %s created by %s (total=%s)", number, actor.id, q.final_amount)
    return booking


# -------------------------
# LIFECYCLE
# -------------------------
def _load_for_update(db: Session, booking_id: str) -> Booking:
    stmt = select(Booking).where(Booking.id == booking_id).with_for_update().execution_options(populate_existing=True)
    b = db.execute(stmt).scalar_one_or_none()
    if not b:
        raise NotFound("booking not found")
    return b


def _offering_host(db: Session, booking: Booking) -> str:
    offering = catalog_service.get_offering(db, booking.offering_id)
    return offering.host_id if offering else ""


def _require_host(db: Session, booking: Booking, actor: Actor) -> None:
    if actor.is_admin:
        return
    if _offering_host(db, booking) != actor.id:
        logger.warning("Actor %s is not the host of booking %s", actor.id, booking.booking_number)
        raise NotAuthorized("only the host of this service can change the booking")


def _require_customer(booking: Booking, actor: Actor) -> None:
    if actor.is_admin:
        return
    if booking.customer_id != actor.id:
        logger.warning("Actor %s is not the customer of booking %s", actor.id, booking.booking_number)
        raise NotAuthorized("only the customer who booked can cancel")


def _guard(booking: Booking, target: str, allowed_from: Optional[set] = None) -> None:
    current = booking.status
    allowed = target in TRANSITIONS.get(current, set())
    if allowed and allowed_from is not None:
        allowed = current in allowed_from
    if not allowed:
        logger.warning("Rejected transition %s -> %s for booking %s", current, target, booking.booking_number)
        raise InvalidTransition(f"cannot move booking from {current} to {target}", field="status")


def _require_reason(reason: Optional[str], min_length: int) -> str:
    reason = reason or ""
    if len(reason.strip()) < min_length:
        raise ValidationError(f"reason must be at least {min_length} characters", field="reason")
    return reason


def _stamp_cancel(booking: Booking, actor: Actor, reason: str, by_host: bool) -> None:
    extras = decode_extras(booking.notes)
    if by_host:
        extras.cancel_reason_host = reason or None
    else:
        extras.cancel_reason_customer = reason or None
    extras.cancel_by = actor.name or actor.id
    extras.cancel_time = datetime.now(timezone.utc).isoformat(timespec="seconds")
    booking.notes = encode_extras(extras)


def _commit_transition(db: Session, booking: Booking, actor: Actor, action: str, details: dict,
                       recipient_id: str, title: str, message: str, ntype: str) -> Booking:
    log_audit(db, actor.id, action, "booking", booking.id, {"bookingNumber": booking.booking_number, **details})
    nid = queue_notification(db, recipient_id, title, message, ntype, booking.booking_number)
    db.commit()
    db.refresh(booking)
    deliver(db, nid)
    logger.info("Booking %s -> %s by %s", booking.booking_number, booking.status, actor.id)
    return booking


def accept_booking(db: Session, booking_id: str, actor: Actor) -> Booking:
    b = _load_for_update(db, booking_id)
    _require_host(db, b, actor)
    _guard(b, CONFIRMED)
    b.status = CONFIRMED
    return _commit_transition(
        db, b, actor, "booking.accept", {},
        b.customer_id, "Đơn đặt đã được xác nhận",
        f"Đơn đặt {b.booking_number} của bạn đã được xác nhận.", "booking_confirmed",
    )


def reject_booking(db: Session, booking_id: str, actor: Actor, reason: str) -> Booking:
    b = _load_for_update(db, booking_id)
    _require_host(db, b, actor)
    reason = _require_reason(reason, settings.REJECT_REASON_MIN_LENGTH)
    _guard(b, CANCELLED, allowed_from={PENDING})
    b.status = CANCELLED
    _stamp_cancel(b, actor, reason, by_host=True)
    return _commit_transition(
        db, b, actor, "booking.reject", {"reason": reason},
        b.customer_id, "Đơn đặt đã bị từ chối",
        f"Đơn đặt {b.booking_number} đã bị từ chối. Lý do: {reason}", "booking_cancelled",
    )


def complete_booking(db: Session, booking_id: str, actor: Actor) -> Booking:
    b = _load_for_update(db, booking_id)
    _require_host(db, b, actor)
    _guard(b, COMPLETED)
    b.status = COMPLETED
    return _commit_transition(
        db, b, actor, "booking.complete", {},
        b.customer_id, "Đơn đặt đã hoàn thành",
        f"Đơn đặt {b.booking_number} đã hoàn thành. Cảm ơn bạn!", "booking_completed",
    )


def cancel_booking_by_customer(db: Session, booking_id: str, actor: Actor, reason: str = "") -> Booking:
    b = _load_for_update(db, booking_id)
    _require_customer(b, actor)
    reason = _require_reason(reason, settings.CUSTOMER_CANCEL_REASON_MIN_LENGTH)
    allowed_from = {PENDING, CONFIRMED} if settings.ALLOW_CANCEL_CONFIRMED else {PENDING}
    _guard(b, CANCELLED, allowed_from=allowed_from)
    b.status = CANCELLED
    _stamp_cancel(b, actor, reason, by_host=False)
    message = f"Khách hàng đã hủy đơn đặt {b.booking_number}."
    if reason.strip():
        message += f" Lý do: {reason}"
    return _commit_transition(
        db, b, actor, "booking.customer_cancel", {"reason": reason},
        _offering_host(db, b), "Đơn đặt đã bị hủy", message, "booking_cancelled",
    )


# -------------------------
# READ
# -------------------------
def get_booking(db: Session, booking_id: str, actor: Actor) -> Booking:
    b = db.get(Booking, booking_id)
    if not b:
        raise NotFound("booking not found")
    if not actor.is_admin and actor.id not in (b.customer_id, _offering_host(db, b)):
        raise NotAuthorized("not your booking")
    return b


def list_host_bookings(db: Session, actor: Actor, status: str = "", order: str = "newest") -> list[Booking]:
    q = db.query(Booking).join(ServiceCombo, ServiceCombo.id == Booking.offering_id)
    if not actor.is_admin:
        q = q.filter(ServiceCombo.host_id == actor.id)
    if status and status != "all":
        q = q.filter(Booking.status == status.lower())
    created = Booking.created_at.asc() if order == "oldest" else Booking.created_at.desc()
    return q.order_by(created).limit(500).all()


def booking_to_out(b: Booking) -> BookingOut:
    return BookingOut(
        id=b.id,
        bookingNumber=b.booking_number,
        customerId=b.customer_id,
        serviceOfferingId=b.offering_id,
        quantity=b.quantity,
        unitPrice=b.unit_price,
        totalAmount=b.total_amount,
        status=b.status,
        statusLabel=status_label(b.status),
        notes=b.notes or "",
        extras=decode_extras(b.notes),
        bookingDate=b.booking_date,
        createdAt=b.created_at,
        updatedAt=b.updated_at,
    )
