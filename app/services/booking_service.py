import logging
import random
import string
import uuid
from datetime import date, datetime, timedelta
from sqlalchemy.orm import Session
from app.core.clock import Clock, as_naive_utc, system_clock
from app.core.config import settings
from app.core.errors import ConflictError
from app.models.booking import Booking, BookingStatus
from app.services.audit_service import log_audit
from app.services.availability_service import is_slot_available
from app.services.booking_lifecycle import commit_or_conflict, require_reservation_window, require_single_cell
from app.services.directory_service import require_active_owner, require_active_station, stations_for_operator
from app.services.slot_grid import normalize_day, slot_start, validate_hour, validate_point_number

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED, BookingStatus.STARTED)
UPCOMING_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)
HISTORY_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED)

def make_booking_reference(now: datetime) -> str:
    return "EVB" + now.strftime("%Y%m%d%H%M%S") + "".join(random.choices(string.ascii_uppercase + string.digits, k=4))

def _allocate_reference(db: Session, now: datetime) -> str:
    # booking_reference must be unique
    for _ in range(10):
        ref = make_booking_reference(now)
        exists = db.query(Booking.id).filter(Booking.booking_reference == ref).first()
        if not exists:
            return ref
    raise RuntimeError("could not allocate booking reference")

def _insert_booking(db: Session, *, owner_nic: str, station_id: str, point: int, start: datetime,
                    duration_minutes: int, status: str, actor_id: str | None, now: datetime) -> Booking:
    """Single insert routine for both creation paths.

    The partial unique index on the live slot is what keeps two requests for the
    same cell from both landing; the loser gets ConflictError.
    """
    booking = Booking(
        id=str(uuid.uuid4()),
        booking_reference=_allocate_reference(db, now),
        ev_owner_nic=owner_nic,
        charging_station_id=station_id,
        charging_point_number=point,
        booking_date=normalize_day(start),
        time_slot=start.hour,
        start_time=start,
        end_time=start + timedelta(minutes=duration_minutes),
        duration_minutes=duration_minutes,
        status=status,
        created_at=now,
        updated_at=now,
    )
    db.add(booking)
    log_audit(db, actor_id, "booking.create", "booking", booking.id, {
        "bookingReference": booking.booking_reference,
        "stationId": station_id,
        "chargingPointNumber": point,
        "startTime": start.isoformat(),
        "status": status,
    })
    try:
        commit_or_conflict(db)
    except ConflictError:
        logger.warning("slot conflict: station=%s point=%s start=%s", station_id, point, start.isoformat())
        raise
    db.refresh(booking)
    logger.info("booking %s created (%s) station=%s point=%s start=%s",
                booking.booking_reference, status, station_id, point, start.isoformat())
    return booking

# -------------------------
# CREATE
# -------------------------
def create_slot_booking(db: Session, station_id: str, owner_nic: str, charging_point_number: int,
                        booking_date: date | datetime | str, time_slot: int,
                        actor_id: str | None = None, clock: Clock = system_clock) -> Booking:
    """Book one (point, hour) cell of a station day. Auto-approved: the slot is exclusive."""
    validate_hour(time_slot)
    day = normalize_day(booking_date)
    require_active_owner(db, owner_nic)
    station = require_active_station(db, station_id)
    validate_point_number(charging_point_number, station.charging_points)

    # fast path; the unique index is the real guard
    if not is_slot_available(db, station_id, charging_point_number, day, time_slot):
        raise ConflictError("Time slot is not available.")

    return _insert_booking(
        db,
        owner_nic=owner_nic,
        station_id=station_id,
        point=charging_point_number,
        start=slot_start(day, time_slot),
        duration_minutes=settings.SLOT_DURATION_MINUTES,
        status=BookingStatus.APPROVED,
        actor_id=actor_id,
        now=clock.now(),
    )

def create_booking(db: Session, owner_nic: str, station_id: str, charging_point_number: int, start_time: datetime,
                   duration_minutes: int | None = None, actor_id: str | None = None, clock: Clock = system_clock) -> Booking:
    """Free-form reservation at an explicit start time; waits for staff approval."""
    now = clock.now()
    start_time = as_naive_utc(start_time)
    require_reservation_window(start_time, now)
    require_active_owner(db, owner_nic)
    station = require_active_station(db, station_id)
    validate_point_number(charging_point_number, station.charging_points)
    duration = duration_minutes if duration_minutes is not None else settings.SLOT_DURATION_MINUTES
    require_single_cell(start_time, duration)

    if not is_slot_available(db, station_id, charging_point_number, start_time, start_time.hour):
        raise ConflictError("Time slot is not available.")

    return _insert_booking(
        db,
        owner_nic=owner_nic,
        station_id=station_id,
        point=charging_point_number,
        start=start_time,
        duration_minutes=duration,
        status=BookingStatus.PENDING,
        actor_id=actor_id,
        now=now,
    )

# -------------------------
# READ
# -------------------------
def list_bookings(db: Session, status: str = "", limit: int = 500) -> list[Booking]:
    q = db.query(Booking)
    if status:
        q = q.filter(Booking.status == status)
    return q.order_by(Booking.created_at.desc()).limit(min(max(limit, 1), 1000)).all()

def list_upcoming_for_owner(db: Session, nic: str, clock: Clock = system_clock) -> list[Booking]:
    require_active_owner(db, nic)
    return (
        db.query(Booking)
        .filter(Booking.ev_owner_nic == nic, Booking.start_time >= clock.now(), Booking.status.in_(UPCOMING_STATUSES))
        .order_by(Booking.start_time.asc())
        .all()
    )

def list_history_for_owner(db: Session, nic: str, clock: Clock = system_clock) -> list[Booking]:
    require_active_owner(db, nic)
    return (
        db.query(Booking)
        .filter(Booking.ev_owner_nic == nic)
        .filter((Booking.start_time < clock.now()) | Booking.status.in_(HISTORY_STATUSES))
        .order_by(Booking.start_time.desc())
        .all()
    )

def count_for_owner(db: Session, nic: str, status: str) -> int:
    require_active_owner(db, nic)
    return db.query(Booking).filter(Booking.ev_owner_nic == nic, Booking.status == status).count()

def list_for_station(db: Session, station_id: str, active_only: bool = False) -> list[Booking]:
    q = db.query(Booking).filter(Booking.charging_station_id == station_id)
    if active_only:
        q = q.filter(Booking.status.in_(ACTIVE_STATUSES))
    return q.order_by(Booking.start_time.asc()).all()

def list_for_operator(db: Session, username: str) -> list[Booking]:
    station_ids = [s.id for s in stations_for_operator(db, username)]
    if not station_ids:
        return []
    return (
        db.query(Booking)
        .filter(Booking.charging_station_id.in_(station_ids))
        .order_by(Booking.start_time.asc())
        .all()
    )
