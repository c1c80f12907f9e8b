from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import (
    get_clock, require_any, require_staff, require_roles,
    ensure_owner_access, ensure_station_access, ensure_booking_access,
)
from app.core.clock import Clock
from app.core.errors import CredentialError
from app.models.booking import BookingStatus
from app.models.user import User, ROLE_BACKOFFICE, ROLE_OPERATOR
from app.schemas.booking import (
    BookingCreate, BookingUpdate, BookingCreatedOut, BookingOut, StatusUpdateIn, CompleteBookingIn,
    QRValidationIn, QRValidationOut, QRIssueOut, booking_out,
)
from app.services import booking_lifecycle as lifecycle
from app.services import booking_service
from app.services.directory_service import get_station
from app.services.qr_service import issue_qr_token, validate_qr_token

router = APIRouter(tags=["bookings"])

def _load_for(db: Session, user: User, booking_id: str):
    booking = lifecycle.load_booking(db, booking_id)
    ensure_booking_access(db, user, booking)
    return booking

# -------------------------
# READ
# -------------------------
@router.get("/bookings", response_model=list[BookingOut])
def list_all(status: str = "", limit: int = 500, db: Session = Depends(get_db),
             user: User = Depends(require_roles(ROLE_BACKOFFICE))):
    return [booking_out(b) for b in booking_service.list_bookings(db, status=status, limit=limit)]

@router.get("/bookings/upcoming/{nic}", response_model=list[BookingOut])
def upcoming(nic: str, db: Session = Depends(get_db), user: User = Depends(require_any), clock: Clock = Depends(get_clock)):
    ensure_owner_access(user, nic)
    return [booking_out(b) for b in booking_service.list_upcoming_for_owner(db, nic, clock=clock)]

@router.get("/bookings/history/{nic}", response_model=list[BookingOut])
def history(nic: str, db: Session = Depends(get_db), user: User = Depends(require_any), clock: Clock = Depends(get_clock)):
    ensure_owner_access(user, nic)
    return [booking_out(b) for b in booking_service.list_history_for_owner(db, nic, clock=clock)]

@router.get("/bookings/pending/count/{nic}")
def pending_count(nic: str, db: Session = Depends(get_db), user: User = Depends(require_any)):
    ensure_owner_access(user, nic)
    return {"count": booking_service.count_for_owner(db, nic, BookingStatus.PENDING)}

@router.get("/bookings/approved/count/{nic}")
def approved_count(nic: str, db: Session = Depends(get_db), user: User = Depends(require_any)):
    ensure_owner_access(user, nic)
    return {"count": booking_service.count_for_owner(db, nic, BookingStatus.APPROVED)}

@router.get("/bookings/station/{station_id}", response_model=list[BookingOut])
def by_station(station_id: str, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    ensure_station_access(user, get_station(db, station_id))
    return [booking_out(b) for b in booking_service.list_for_station(db, station_id)]

@router.get("/bookings/station/{station_id}/active", response_model=list[BookingOut])
def active_by_station(station_id: str, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    ensure_station_access(user, get_station(db, station_id))
    return [booking_out(b) for b in booking_service.list_for_station(db, station_id, active_only=True)]

@router.get("/bookings/operator/{username}", response_model=list[BookingOut])
def by_operator(username: str, db: Session = Depends(get_db), user: User = Depends(require_staff)):
    if user.role == ROLE_OPERATOR and user.username != username:
        raise HTTPException(status_code=403, detail="Forbidden")
    return [booking_out(b) for b in booking_service.list_for_operator(db, username)]

@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(require_any)):
    return booking_out(_load_for(db, user, booking_id))

@router.get("/bookings/{booking_id}/can-modify")
def can_modify(booking_id: str, db: Session = Depends(get_db), user: User = Depends(require_any),
               clock: Clock = Depends(get_clock)):
    booking = _load_for(db, user, booking_id)
    return {"canModify": lifecycle.can_modify(booking.start_time, clock.now())}

# -------------------------
# OWNER: create / update / cancel (time rules apply)
# -------------------------
@router.post("/bookings", status_code=201, response_model=BookingCreatedOut)
def create(body: BookingCreate, db: Session = Depends(get_db), user: User = Depends(require_any),
           clock: Clock = Depends(get_clock)):
    ensure_owner_access(user, body.evOwnerNic)
    booking = booking_service.create_booking(
        db,
        owner_nic=body.evOwnerNic,
        station_id=body.chargingStationId,
        charging_point_number=body.chargingPointNumber,
        start_time=body.startTime,
        duration_minutes=body.durationMinutes,
        actor_id=user.id,
        clock=clock,
    )
    return BookingCreatedOut(bookingId=booking.id, bookingReference=booking.booking_reference, status=booking.status)

@router.put("/bookings/{booking_id}", response_model=BookingOut)
def update(booking_id: str, body: BookingUpdate, db: Session = Depends(get_db), user: User = Depends(require_any),
           clock: Clock = Depends(get_clock)):
    _load_for(db, user, booking_id)
    booking = lifecycle.update_booking(
        db, booking_id,
        start_time=body.startTime,
        charging_point_number=body.chargingPointNumber,
        duration_minutes=body.durationMinutes,
        actor_id=user.id,
        clock=clock,
    )
    return booking_out(booking)

@router.delete("/bookings/{booking_id}", response_model=BookingOut)
def cancel(booking_id: str, db: Session = Depends(get_db), user: User = Depends(require_any),
           clock: Clock = Depends(get_clock)):
    _load_for(db, user, booking_id)
    return booking_out(lifecycle.cancel_booking(db, booking_id, actor_id=user.id, clock=clock))

# -------------------------
# QR
# -------------------------
@router.post("/bookings/{booking_id}/generate-qr", response_model=QRIssueOut)
def generate_qr(booking_id: str, db: Session = Depends(get_db), user: User = Depends(require_any),
                clock: Clock = Depends(get_clock)):
    _load_for(db, user, booking_id)
    return QRIssueOut(qrData=issue_qr_token(db, booking_id, actor_id=user.id, clock=clock))

@router.post("/bookings/validate-qr", response_model=QRValidationOut)
def validate_qr(body: QRValidationIn, db: Session = Depends(get_db), user: User = Depends(require_staff),
                clock: Clock = Depends(get_clock)):
    try:
        result = validate_qr_token(db, body.qrData, clock=clock)
    except CredentialError as e:
        return QRValidationOut(isValid=False, errorMessage=e.message)
    p = result.payload
    return QRValidationOut(
        isValid=True,
        bookingId=p.booking_id,
        bookingReference=p.booking_reference,
        evOwnerNic=p.ev_owner_nic,
        chargingStationId=p.charging_station_id,
        chargingPointNumber=p.charging_point_number,
        startTime=p.start_time,
        durationMinutes=p.duration_minutes,
        expiresAt=p.expires_at,
        status=result.status,
    )

# -------------------------
# STAFF: direct transitions (no 12h / 7d rules)
# -------------------------
@router.patch("/bookings/{booking_id}/status", response_model=BookingOut)
def update_status(booking_id: str, body: StatusUpdateIn, db: Session = Depends(get_db),
                  user: User = Depends(require_staff), clock: Clock = Depends(get_clock)):
    _load_for(db, user, booking_id)
    return booking_out(lifecycle.update_status_direct(db, booking_id, body.status, actor_id=user.id, clock=clock))

@router.put("/bookings/{booking_id}/approve", response_model=BookingOut)
def approve(booking_id: str, db: Session = Depends(get_db), user: User = Depends(require_staff),
            clock: Clock = Depends(get_clock)):
    _load_for(db, user, booking_id)
    return booking_out(lifecycle.approve_booking(db, booking_id, actor_id=user.id, clock=clock))

@router.put("/bookings/{booking_id}/start", response_model=BookingOut)
def start(booking_id: str, db: Session = Depends(get_db), user: User = Depends(require_staff),
          clock: Clock = Depends(get_clock)):
    _load_for(db, user, booking_id)
    return booking_out(lifecycle.start_booking(db, booking_id, actor_id=user.id, clock=clock))

@router.post("/bookings/{booking_id}/complete", response_model=BookingOut)
def complete(booking_id: str, body: CompleteBookingIn | None = None, db: Session = Depends(get_db),
             user: User = Depends(require_staff), clock: Clock = Depends(get_clock)):
    _load_for(db, user, booking_id)
    qr_data = body.qrData if body else ""
    return booking_out(lifecycle.complete_booking(db, booking_id, qr_data=qr_data or None, actor_id=user.id, clock=clock))
