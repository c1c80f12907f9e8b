from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_clock, require_any, ensure_owner_access
from app.core.clock import Clock
from app.models.user import User
from app.schemas.booking import SlotBookingCreate, BookingCreatedOut
from app.services.availability_service import get_station_availability, get_compact_availability, is_slot_available
from app.services.booking_service import create_slot_booking

router = APIRouter(tags=["timeslots"])

@router.get("/timeslots/availability/{station_id}")
def station_availability(station_id: str, day: date = Query(alias="date"), db: Session = Depends(get_db), user: User = Depends(require_any)):
    """Every (charging point, hour) cell of the day with who holds it."""
    return get_station_availability(db, station_id, day)

@router.get("/timeslots/availability/{station_id}/compact")
def station_availability_compact(station_id: str, day: date = Query(alias="date"), db: Session = Depends(get_db), user: User = Depends(require_any)):
    return get_compact_availability(db, station_id, day)

@router.get("/timeslots/station/{station_id}/available")
def available_slots(station_id: str, day: date = Query(alias="date"), db: Session = Depends(get_db), user: User = Depends(require_any)):
    return get_station_availability(db, station_id, day, available_only=True)["chargingPoints"]

@router.get("/timeslots/station/{station_id}/point/{charging_point_number}/check")
def check_slot(station_id: str, charging_point_number: int, time_slot: int, day: date = Query(alias="date"),
               db: Session = Depends(get_db), user: User = Depends(require_any)):
    return {"isAvailable": is_slot_available(db, station_id, charging_point_number, day, time_slot)}

@router.post("/timeslots/book", status_code=201, response_model=BookingCreatedOut)
def book_slot(body: SlotBookingCreate, db: Session = Depends(get_db), user: User = Depends(require_any),
              clock: Clock = Depends(get_clock)):
    ensure_owner_access(user, body.evOwnerNic)
    booking = create_slot_booking(
        db,
        station_id=body.chargingStationId,
        owner_nic=body.evOwnerNic,
        charging_point_number=body.chargingPointNumber,
        booking_date=body.bookingDate,
        time_slot=body.timeSlot,
        actor_id=user.id,
        clock=clock,
    )
    return BookingCreatedOut(bookingId=booking.id, bookingReference=booking.booking_reference, status=booking.status)
