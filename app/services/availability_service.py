"""
Availability index: which cells of a station day are held by live bookings.
"""
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy.orm import Session

from app.models.booking import Booking, BookingStatus
from app.services.directory_service import get_station
from app.services.slot_grid import SlotCell, build_slot_grid, normalize_day, slot_label


def occupied_cells(db: Session, station_id: str, day: date | datetime | str) -> dict[tuple[int, int], Booking]:
    d = normalize_day(day)
    rows = (
        db.query(Booking)
        .filter(
            Booking.charging_station_id == station_id,
            Booking.booking_date == d,
            Booking.status != BookingStatus.CANCELLED,
        )
        .all()
    )
    return {(b.charging_point_number, b.time_slot): b for b in rows}


def is_slot_available(db: Session, station_id: str, point_number: int, day: date | datetime | str, hour: int) -> bool:
    station = get_station(db, station_id)
    grid = build_slot_grid(station.charging_points, day)
    if SlotCell(point_number, hour) not in grid:
        return False
    d = grid.day
    taken = (
        db.query(Booking.id)
        .filter(
            Booking.charging_station_id == station_id,
            Booking.charging_point_number == point_number,
            Booking.booking_date == d,
            Booking.time_slot == hour,
            Booking.status != BookingStatus.CANCELLED,
        )
        .first()
    )
    return taken is None


def get_station_availability(db: Session, station_id: str, day: date | datetime | str, available_only: bool = False) -> dict:
    """Full grid for one station day, grouped by charging point.

    Each slot carries the owner and booking id of the live booking holding it.
    With available_only, booked slots are dropped but every point is still listed.
    """
    station = get_station(db, station_id)
    grid = build_slot_grid(station.charging_points, day)
    taken = occupied_cells(db, station_id, grid.day)

    points = []
    for point_number in grid.points():
        slots = []
        for cell in grid.cells_for_point(point_number):
            booking = taken.get((cell.point_number, cell.hour))
            if available_only and booking is not None:
                continue
            slots.append({
                "hour": cell.hour,
                "timeRange": slot_label(cell.hour),
                "isAvailable": booking is None,
                "bookedBy": booking.ev_owner_nic if booking else None,
                "bookingId": booking.id if booking else None,
            })
        points.append({"chargingPointNumber": point_number, "timeSlots": slots})

    return {
        "stationId": station.id,
        "stationName": station.name,
        "date": grid.day.isoformat(),
        "chargingPoints": points,
    }


def get_compact_availability(db: Session, station_id: str, day: date | datetime | str) -> dict:
    # Mobile view: no owner or booking details
    station = get_station(db, station_id)
    grid = build_slot_grid(station.charging_points, day)
    taken = occupied_cells(db, station_id, grid.day)
    return {
        "stationId": station.id,
        "date": grid.day.isoformat(),
        "chargingPoints": [
            {
                "chargingPointNumber": p,
                "timeSlots": [
                    {"hour": c.hour, "displayTime": f"{c.hour:02d}:00", "isAvailable": (p, c.hour) not in taken}
                    for c in grid.cells_for_point(p)
                ],
            }
            for p in grid.points()
        ],
    }
