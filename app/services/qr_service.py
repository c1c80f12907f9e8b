"""
QR credential for a charging session.

Token layout (all base64url, no padding):

    <payload>.<signature>

payload   = compact JSON of the booking fields below plus issue/expiry times
signature = HMAC-SHA256(QR_SIGNING_KEY, payload)

The signature is checked before any field is trusted. Expiry is checked from
the payload alone; the live booking is then loaded and must still be Approved
with the same reference, owner and station.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.errors import ConflictError, CredentialError
from app.models.booking import Booking, BookingStatus
from app.services.audit_service import log_audit
from app.services.booking_lifecycle import load_booking, touch

logger = logging.getLogger(__name__)

QR_TOKEN_VERSION = "2"
SUPPORTED_VERSIONS = {QR_TOKEN_VERSION}


@dataclass(frozen=True)
class QrPayload:
    booking_id: str
    booking_reference: str
    ev_owner_nic: str
    charging_station_id: str
    charging_point_number: int
    start_time: datetime
    duration_minutes: int
    issued_at: datetime
    expires_at: datetime
    version: str = QR_TOKEN_VERSION

    def to_wire(self) -> dict:
        return {
            "v": self.version,
            "bookingId": self.booking_id,
            "bookingReference": self.booking_reference,
            "evOwnerNic": self.ev_owner_nic,
            "chargingStationId": self.charging_station_id,
            "chargingPointNumber": self.charging_point_number,
            "startTime": self.start_time.isoformat(),
            "durationMinutes": self.duration_minutes,
            "issuedAt": self.issued_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }

    @classmethod
    def from_wire(cls, data: dict) -> "QrPayload":
        return cls(
            version=str(data["v"]),
            booking_id=str(data["bookingId"]),
            booking_reference=str(data["bookingReference"]),
            ev_owner_nic=str(data["evOwnerNic"]),
            charging_station_id=str(data["chargingStationId"]),
            charging_point_number=int(data["chargingPointNumber"]),
            start_time=datetime.fromisoformat(data["startTime"]),
            duration_minutes=int(data["durationMinutes"]),
            issued_at=datetime.fromisoformat(data["issuedAt"]),
            expires_at=datetime.fromisoformat(data["expiresAt"]),
        )


@dataclass(frozen=True)
class QrValidation:
    payload: QrPayload
    status: str


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _unb64url(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _sign(payload_b64: str) -> str:
    return _b64url(hmac.new(settings.qr_signing_key, payload_b64.encode("utf-8"), hashlib.sha256).digest())


# -------------------------
# Encoding
# -------------------------
def build_payload(booking: Booking, now: datetime) -> QrPayload:
    return QrPayload(
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        ev_owner_nic=booking.ev_owner_nic,
        charging_station_id=booking.charging_station_id,
        charging_point_number=booking.charging_point_number,
        start_time=booking.start_time,
        duration_minutes=booking.duration_minutes,
        issued_at=now,
        expires_at=booking.start_time + timedelta(minutes=settings.QR_TOKEN_TTL_MINUTES),
    )


def encode_token(payload: QrPayload) -> str:
    raw = json.dumps(payload.to_wire(), separators=(",", ":")).encode("utf-8")
    body = _b64url(raw)
    return f"{body}.{_sign(body)}"


def decode_token(token: str) -> QrPayload:
    """Verify the signature and parse the payload. Does not look at expiry or the booking."""
    token = (token or "").strip()
    # tokens are base64url, so ASCII only
    if not token.isascii():
        raise CredentialError("Invalid QR code format")
    parts = token.split(".")
    if len(parts) != 2 or not all(parts):
        raise CredentialError("Invalid QR code format")
    body, signature = parts
    if not hmac.compare_digest(_sign(body), signature):
        raise CredentialError("Invalid QR code signature")
    try:
        data = json.loads(_unb64url(body))
    except (ValueError, UnicodeDecodeError) as e:
        raise CredentialError("Invalid QR code format") from e
    if not isinstance(data, dict):
        raise CredentialError("Invalid QR code format")
    if str(data.get("v")) not in SUPPORTED_VERSIONS:
        raise CredentialError("Unsupported QR code version")
    try:
        return QrPayload.from_wire(data)
    except (KeyError, TypeError, ValueError) as e:
        raise CredentialError("Invalid QR code format") from e


# -------------------------
# Issue / validate
# -------------------------
def issue_qr_token(db: Session, booking_id: str, actor_id: str | None = None, clock: Clock = system_clock) -> str:
    booking = load_booking(db, booking_id)
    if booking.status != BookingStatus.APPROVED:
        raise ConflictError("QR Code can only be generated for approved bookings")

    now = clock.now()
    token = encode_token(build_payload(booking, now))
    booking.qr_code_data = token
    touch(booking, now)
    log_audit(db, actor_id, "booking.qr_issue", "booking", booking.id, {"bookingReference": booking.booking_reference})
    db.commit()
    logger.info("QR token issued for booking %s", booking.booking_reference)
    return token


def validate_qr_token(db: Session, token: str, clock: Clock = system_clock) -> QrValidation:
    payload = decode_token(token)

    if clock.now() > payload.expires_at:
        raise CredentialError("QR code has expired")

    booking = db.get(Booking, payload.booking_id)
    if not booking or booking.status != BookingStatus.APPROVED:
        raise CredentialError("Invalid booking or booking not approved")

    if (booking.booking_reference != payload.booking_reference
            or booking.ev_owner_nic != payload.ev_owner_nic
            or booking.charging_station_id != payload.charging_station_id):
        raise CredentialError("QR code data does not match booking details")

    return QrValidation(payload=payload, status=booking.status)


def is_qr_token_valid_for(db: Session, token: str, booking_id: str, clock: Clock = system_clock) -> bool:
    """Best-effort gate before completion: any credential failure is just False."""
    try:
        result = validate_qr_token(db, token, clock=clock)
    except CredentialError as e:
        logger.info("QR check failed for booking %s: %s", booking_id, e.message)
        return False
    return result.payload.booking_id == booking_id
