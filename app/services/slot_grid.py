"""
Addressable slot space for a station day: one cell per (charging point, hour).

Pure functions, no I/O. A station with N charging points has N x 24 cells;
point numbers are 1-based, hours run 0..23.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from app.core.errors import ValidationError

HOURS_PER_DAY = 24


@dataclass(frozen=True)
class SlotCell:
    point_number: int
    hour: int


@dataclass(frozen=True)
class SlotGrid:
    day: date
    point_count: int
    cells: tuple[SlotCell, ...] = field(default_factory=tuple)

    def points(self) -> range:
        return range(1, self.point_count + 1)

    def cells_for_point(self, point_number: int) -> list[SlotCell]:
        return [c for c in self.cells if c.point_number == point_number]

    def __contains__(self, cell: SlotCell) -> bool:
        return 1 <= cell.point_number <= self.point_count and 0 <= cell.hour < HOURS_PER_DAY


def normalize_day(value: date | datetime | str) -> date:
    """Date-only form of a date, datetime or ISO string (time of day is dropped)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            raise ValidationError("Invalid date. Use YYYY-MM-DD")
    raise ValidationError("Invalid date. Use YYYY-MM-DD")


def validate_point_number(point_number: int, point_count: int) -> None:
    if point_number < 1 or point_number > point_count:
        raise ValidationError(f"Invalid charging point number. Must be between 1 and {point_count}.")


def validate_hour(hour: int) -> None:
    if hour < 0 or hour >= HOURS_PER_DAY:
        raise ValidationError("Invalid time slot. Must be between 0 and 23.")


def build_slot_grid(point_count: int, day: date | datetime | str) -> SlotGrid:
    if point_count <= 0:
        raise ValidationError("Station must have at least one charging point")
    d = normalize_day(day)
    cells = tuple(
        SlotCell(point_number=p, hour=h)
        for p in range(1, point_count + 1)
        for h in range(HOURS_PER_DAY)
    )
    return SlotGrid(day=d, point_count=point_count, cells=cells)


def slot_start(day: date | datetime, hour: int) -> datetime:
    return datetime.combine(normalize_day(day), time()) + timedelta(hours=hour)


def slot_label(hour: int) -> str:
    return f"{hour:02d}:00 - {hour + 1:02d}:00"
