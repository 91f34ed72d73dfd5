from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tourbook.api.deps import get_current_actor, require_roles
from tourbook.db.session import get_db
from tourbook.schemas.booking import BookingCreate, BookingOut, ReasonIn
from tourbook.schemas.catalog import Actor
from tourbook.schemas.pricing import Quote
from tourbook.services import booking_service

router = APIRouter(tags=["bookings"])


@router.post("/bookings/quote", response_model=Quote)
def quote_booking(body: BookingCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    q, _ = booking_service.quote_booking(db, body, actor)
    return q


@router.post("/bookings", response_model=BookingOut, status_code=201)
def create_booking(body: BookingCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    b = booking_service.create_booking(db, body, actor)
    return booking_service.booking_to_out(b)


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    return booking_service.booking_to_out(booking_service.get_booking(db, booking_id, actor))


@router.get("/host/bookings", response_model=list[BookingOut])
def list_host_bookings(
    status: str = "",
    order: str = Query("newest", pattern="^(newest|oldest)$"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles("host")),
):
    rows = booking_service.list_host_bookings(db, actor, status=status, order=order)
    return [booking_service.booking_to_out(b) for b in rows]


@router.post("/bookings/{booking_id}/accept", response_model=BookingOut)
def accept_booking(booking_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    return booking_service.booking_to_out(booking_service.accept_booking(db, booking_id, actor))


@router.post("/bookings/{booking_id}/reject", response_model=BookingOut)
def reject_booking(
    booking_id: str, body: ReasonIn, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)
):
    return booking_service.booking_to_out(booking_service.reject_booking(db, booking_id, actor, body.reason))


@router.post("/bookings/{booking_id}/complete", response_model=BookingOut)
def complete_booking(booking_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    return booking_service.booking_to_out(booking_service.complete_booking(db, booking_id, actor))


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(
    booking_id: str, body: ReasonIn, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)
):
    b = booking_service.cancel_booking_by_customer(db, booking_id, actor, body.reason)
    return booking_service.booking_to_out(b)
