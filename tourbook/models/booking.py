from sqlalchemy import String, Integer, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from tourbook.db.session import Base

class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    customer_id: Mapped[str] = mapped_column(String(36), index=True)
    offering_id: Mapped[int] = mapped_column(Integer, index=True)

    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[int] = mapped_column(Integer, default=0)  # snapshot at creation
    total_amount: Mapped[int] = mapped_column(Integer, default=0)  # final amount after add-ons and coupon

    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)  # pending, confirmed, completed, cancelled
    notes: Mapped[str] = mapped_column(Text, default="")  # encoded BookingExtras

    booking_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
