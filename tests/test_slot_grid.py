from datetime import date, datetime

import pytest

from app.core.errors import ValidationError
from app.services.slot_grid import (
    SlotCell, build_slot_grid, normalize_day, slot_label, slot_start, validate_hour, validate_point_number,
)


def test_grid_has_one_cell_per_point_and_hour():
    grid = build_slot_grid(3, date(2026, 3, 2))
    assert len(grid.cells) == 3 * 24
    assert grid.cells[0] == SlotCell(point_number=1, hour=0)
    assert grid.cells[-1] == SlotCell(point_number=3, hour=23)
    assert list(grid.points()) == [1, 2, 3]
    assert [c.hour for c in grid.cells_for_point(2)] == list(range(24))


@pytest.mark.parametrize("points", [0, -1])
def test_grid_rejects_stations_without_points(points):
    with pytest.raises(ValidationError):
        build_slot_grid(points, date(2026, 3, 2))


def test_timestamp_maps_to_same_day_grid_as_midnight():
    with_time = build_slot_grid(2, datetime(2026, 3, 2, 15, 45, 10))
    midnight = build_slot_grid(2, date(2026, 3, 2))
    assert with_time == midnight
    assert with_time.day == date(2026, 3, 2)


def test_grid_membership():
    grid = build_slot_grid(2, date(2026, 3, 2))
    assert SlotCell(2, 23) in grid
    assert SlotCell(3, 0) not in grid
    assert SlotCell(1, 24) not in grid


def test_normalize_day_accepts_iso_strings():
    assert normalize_day("2024-06-10") == date(2024, 6, 10)
    assert normalize_day("2024-06-10T09:30:00") == date(2024, 6, 10)


def test_normalize_day_rejects_garbage():
    with pytest.raises(ValidationError):
        normalize_day("10/06/2024 nine")


def test_slot_start_and_label():
    assert slot_start(date(2024, 6, 10), 9) == datetime(2024, 6, 10, 9, 0)
    assert slot_start(datetime(2024, 6, 10, 17, 5), 0) == datetime(2024, 6, 10, 0, 0)
    assert slot_label(9) == "09:00 - 10:00"
    assert slot_label(23) == "23:00 - 24:00"


def test_point_and_hour_bounds():
    validate_point_number(1, 3)
    validate_point_number(3, 3)
    validate_hour(0)
    validate_hour(23)
    with pytest.raises(ValidationError):
        validate_point_number(0, 3)
    with pytest.raises(ValidationError):
        validate_point_number(4, 3)
    with pytest.raises(ValidationError):
        validate_hour(-1)
    with pytest.raises(ValidationError):
        validate_hour(24)
