"""
Booking state machine and the owner-side time rules.

    Pending -> Approved -> Started -> Completed
    Pending / Approved -> Cancelled

Completed and Cancelled are terminal. Owner-facing changes (update, cancel)
must happen at least MODIFY_CUTOFF_HOURS before the reservation and a moved
reservation must stay inside the RESERVATION_WINDOW_DAYS window. Staff
transitions (approve, start, complete, direct status) skip the time rules but
never leave a terminal state.

Every check runs before the booking is touched; a rejected call leaves the row
as it was.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, as_naive_utc, system_clock
from app.core.config import settings
from app.core.errors import ConflictError, CredentialError, NotFoundError, ValidationError
from app.models.booking import LIVE_SLOT_INDEX, Booking, BookingStatus
from app.services.audit_service import log_audit
from app.services.directory_service import get_station
from app.services.slot_grid import normalize_day, slot_start, validate_point_number

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.APPROVED, BookingStatus.CANCELLED}),
    BookingStatus.APPROVED: frozenset({BookingStatus.STARTED, BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.STARTED: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

OWNER_CANCELLABLE = (BookingStatus.PENDING, BookingStatus.APPROVED)


# -------------------------
# Time rules
# -------------------------
def can_modify(start_time: datetime, now: datetime) -> bool:
    return start_time - now >= timedelta(hours=settings.MODIFY_CUTOFF_HOURS)


def is_within_reservation_window(start_time: datetime, now: datetime) -> bool:
    return now <= start_time <= now + timedelta(days=settings.RESERVATION_WINDOW_DAYS)


def require_reservation_window(start_time: datetime, now: datetime) -> None:
    if not is_within_reservation_window(start_time, now):
        raise ConflictError(f"Reservation must be within {settings.RESERVATION_WINDOW_DAYS} days from booking date")


def require_single_cell(start_time: datetime, duration_minutes: int) -> None:
    """A booking holds exactly one (point, hour) cell, so it has to end inside that hour."""
    if duration_minutes <= 0:
        raise ValidationError("Duration must be positive")
    cell_end = slot_start(start_time, start_time.hour) + timedelta(hours=1)
    if start_time + timedelta(minutes=duration_minutes) > cell_end:
        raise ValidationError("Reservation must end within its hourly time slot")


def check_transition(booking: Booking, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS:
        raise ValidationError(f"Unknown booking status: {target}")
    if booking.status in BookingStatus.TERMINAL:
        raise ConflictError(f"Booking is already {booking.status}")
    if target not in ALLOWED_TRANSITIONS[booking.status]:
        raise ConflictError(f"Cannot move booking from {booking.status} to {target}")


# -------------------------
# Persistence helpers
# -------------------------
def is_live_slot_violation(exc: IntegrityError) -> bool:
    msg = str(exc.orig)
    # PostgreSQL names the index; SQLite lists the indexed columns
    return LIVE_SLOT_INDEX in msg or "bookings.time_slot" in msg


def commit_or_conflict(db: Session) -> None:
    """Commit, turning a live-slot uniqueness hit into ConflictError."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_live_slot_violation(e):
            raise ConflictError("Time slot is not available.") from e
        raise


def touch(booking: Booking, now: datetime) -> None:
    # updated_at never runs backwards, even if the clock does
    booking.updated_at = max(now, booking.created_at or now, booking.updated_at or now)


def load_booking(db: Session, booking_id: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError(f"Booking with ID {booking_id} not found")
    return booking


def _apply_status(db: Session, booking: Booking, target: str, action: str, actor_id: str | None, clock: Clock) -> Booking:
    check_transition(booking, target)
    previous = booking.status
    booking.status = target
    touch(booking, clock.now())
    log_audit(db, actor_id, action, "booking", booking.id, {"from": previous, "to": target})
    commit_or_conflict(db)
    db.refresh(booking)
    logger.info("booking %s %s -> %s", booking.booking_reference, previous, target)
    return booking


# -------------------------
# Staff transitions (no time rules)
# -------------------------
def approve_booking(db: Session, booking_id: str, actor_id: str | None = None, clock: Clock = system_clock) -> Booking:
    booking = load_booking(db, booking_id)
    return _apply_status(db, booking, BookingStatus.APPROVED, "booking.approve", actor_id, clock)


def start_booking(db: Session, booking_id: str, actor_id: str | None = None, clock: Clock = system_clock) -> Booking:
    booking = load_booking(db, booking_id)
    return _apply_status(db, booking, BookingStatus.STARTED, "booking.start", actor_id, clock)


def complete_booking(db: Session, booking_id: str, qr_data: str | None = None,
                     actor_id: str | None = None, clock: Clock = system_clock) -> Booking:
    from app.services.qr_service import is_qr_token_valid_for

    booking = load_booking(db, booking_id)
    check_transition(booking, BookingStatus.COMPLETED)

    # The QR gate applies to Approved bookings; Started ones were admitted at start
    if booking.status == BookingStatus.APPROVED:
        if qr_data:
            if not is_qr_token_valid_for(db, qr_data, booking.id, clock=clock):
                raise CredentialError("Invalid QR code for this booking")
        elif settings.REQUIRE_QR_FOR_COMPLETION:
            raise CredentialError("QR code is required to complete this booking")

    return _apply_status(db, booking, BookingStatus.COMPLETED, "booking.complete", actor_id, clock)


def update_status_direct(db: Session, booking_id: str, status: str,
                         actor_id: str | None = None, clock: Clock = system_clock) -> Booking:
    """Operator path: any allowed transition, 12-hour and 7-day rules do not apply.

    Completion still goes through the QR gate of complete_booking.
    """
    if status == BookingStatus.COMPLETED:
        return complete_booking(db, booking_id, qr_data=None, actor_id=actor_id, clock=clock)
    booking = load_booking(db, booking_id)
    return _apply_status(db, booking, status, "booking.status", actor_id, clock)


# -------------------------
# Owner-facing changes
# -------------------------
def cancel_booking(db: Session, booking_id: str, actor_id: str | None = None, clock: Clock = system_clock) -> Booking:
    booking = load_booking(db, booking_id)
    if booking.status not in OWNER_CANCELLABLE:
        raise ConflictError(f"Booking cannot be cancelled while {booking.status}")
    if not can_modify(booking.start_time, clock.now()):
        raise ConflictError(f"Booking can only be cancelled at least {settings.MODIFY_CUTOFF_HOURS} hours before reservation")
    return _apply_status(db, booking, BookingStatus.CANCELLED, "booking.cancel", actor_id, clock)


def update_booking(db: Session, booking_id: str, *, start_time: datetime | None = None,
                   charging_point_number: int | None = None, duration_minutes: int | None = None,
                   actor_id: str | None = None, clock: Clock = system_clock) -> Booking:
    """Owner edit of non-status fields.

    The existing reservation must be at least MODIFY_CUTOFF_HOURS away. A new
    start time must fall inside the reservation window; date, hour and end time
    follow from it. Moving the slot drops any issued QR token.
    """
    booking = load_booking(db, booking_id)
    now = clock.now()
    if booking.status in BookingStatus.TERMINAL:
        raise ConflictError(f"Booking is already {booking.status}")
    if not can_modify(booking.start_time, now):
        raise ConflictError(f"Booking can only be modified at least {settings.MODIFY_CUTOFF_HOURS} hours before reservation")

    new_start = booking.start_time
    if start_time is not None:
        start_time = as_naive_utc(start_time)
    if start_time is not None and start_time != booking.start_time:
        require_reservation_window(start_time, now)
        new_start = start_time

    new_point = booking.charging_point_number
    if charging_point_number is not None and charging_point_number != booking.charging_point_number:
        station = get_station(db, booking.charging_station_id)
        validate_point_number(charging_point_number, station.charging_points)
        new_point = charging_point_number

    new_duration = booking.duration_minutes if duration_minutes is None else duration_minutes
    require_single_cell(new_start, new_duration)

    changes = {}
    slot_moved = new_start != booking.start_time or new_point != booking.charging_point_number
    if new_start != booking.start_time:
        changes["startTime"] = new_start.isoformat()
    if new_point != booking.charging_point_number:
        changes["chargingPointNumber"] = new_point
    if new_duration != booking.duration_minutes:
        changes["durationMinutes"] = new_duration
    if not changes:
        return booking

    booking.start_time = new_start
    booking.booking_date = normalize_day(new_start)
    booking.time_slot = new_start.hour
    booking.charging_point_number = new_point
    booking.duration_minutes = new_duration
    booking.end_time = new_start + timedelta(minutes=new_duration)
    if slot_moved:
        booking.qr_code_data = None
    touch(booking, now)
    log_audit(db, actor_id, "booking.update", "booking", booking.id, changes)
    commit_or_conflict(db)
    db.refresh(booking)
    logger.info("booking %s updated: %s", booking.booking_reference, changes)
    return booking
