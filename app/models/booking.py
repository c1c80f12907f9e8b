from sqlalchemy import String, Integer, Date, DateTime, Text, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime
from app.core.clock import utcnow
from app.db.session import Base


class BookingStatus:
    PENDING = "Pending"
    APPROVED = "Approved"
    STARTED = "Started"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    ALL = (PENDING, APPROVED, STARTED, COMPLETED, CANCELLED)
    TERMINAL = (COMPLETED, CANCELLED)


# Partial unique index: one live (non-cancelled) booking per station/point/day/hour.
LIVE_SLOT_INDEX = "uq_bookings_live_slot"
_LIVE_ONLY = text("status <> 'Cancelled'")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            LIVE_SLOT_INDEX,
            "charging_station_id", "charging_point_number", "booking_date", "time_slot",
            unique=True,
            postgresql_where=_LIVE_ONLY,
            sqlite_where=_LIVE_ONLY,
        ),
        CheckConstraint("charging_point_number >= 1", name="ck_bookings_point_positive"),
        CheckConstraint("time_slot >= 0 AND time_slot <= 23", name="ck_bookings_time_slot_range"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_reference: Mapped[str] = mapped_column(String(32), unique=True, index=True)

    ev_owner_nic: Mapped[str] = mapped_column(String(20), index=True)
    charging_station_id: Mapped[str] = mapped_column(String(36), index=True)
    charging_point_number: Mapped[int] = mapped_column(Integer)

    booking_date: Mapped[date] = mapped_column(Date, index=True)  # date only
    time_slot: Mapped[int] = mapped_column(Integer)  # 0-23, hour of the day
    start_time: Mapped[datetime] = mapped_column(DateTime, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60)

    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.PENDING, index=True)  # Pending, Approved, Started, Completed, Cancelled
    qr_code_data: Mapped[str] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
