"""
Booking domain errors and their HTTP mapping.
Services raise these; routes stay thin and the app-level handler turns them into responses.
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------

class BookingError(Exception):
    """Base class for rule violations raised by the reservation core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BookingError):
    """Referenced booking, station or owner is absent."""


class ValidationError(BookingError):
    """Out-of-range point/hour, malformed date, inactive owner or station."""


class ConflictError(BookingError):
    """Slot already taken, time-window rule violated, or illegal status transition."""


class CredentialError(BookingError):
    """QR token is malformed, forged, expired or does not match its booking."""


# ---------------------------------------------------------------------------
# HTTP mapping: (error type, status code). First match wins.
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409

BOOKING_ERROR_RULES: list[tuple[type[BookingError], int]] = [
    (NotFoundError, STATUS_NOT_FOUND),
    (ValidationError, STATUS_BAD_REQUEST),
    (ConflictError, STATUS_CONFLICT),
    (CredentialError, STATUS_BAD_REQUEST),
]


def status_for(exc: BookingError) -> int:
    for error_type, status_code in BOOKING_ERROR_RULES:
        if isinstance(exc, error_type):
            return status_code
    return STATUS_BAD_REQUEST


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"detail": exc.message})
