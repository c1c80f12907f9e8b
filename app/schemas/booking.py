from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

StatusName = Literal["Pending", "Approved", "Started", "Completed", "Cancelled"]

class SlotBookingCreate(BaseModel):
    chargingStationId: str
    evOwnerNic: str
    chargingPointNumber: int
    bookingDate: date
    timeSlot: int = Field(description="Hour of the day, 0-23")

class BookingCreate(BaseModel):
    evOwnerNic: str
    chargingStationId: str
    chargingPointNumber: int = 1
    startTime: datetime
    durationMinutes: Optional[int] = None

class BookingUpdate(BaseModel):
    chargingPointNumber: Optional[int] = None
    startTime: Optional[datetime] = None
    durationMinutes: Optional[int] = None

class StatusUpdateIn(BaseModel):
    status: StatusName

class CompleteBookingIn(BaseModel):
    qrData: str = ""

class QRValidationIn(BaseModel):
    qrData: str

class BookingOut(BaseModel):
    id: str
    bookingReference: str
    evOwnerNic: str
    chargingStationId: str
    chargingPointNumber: int
    bookingDate: date
    timeSlot: int
    startTime: datetime
    endTime: datetime
    durationMinutes: int
    status: str
    qrCodeData: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime

class BookingCreatedOut(BaseModel):
    bookingId: str
    bookingReference: str
    status: str
    message: str = "Booking created successfully"

class QRIssueOut(BaseModel):
    qrData: str
    message: str = "QR Code generated successfully"

class QRValidationOut(BaseModel):
    isValid: bool
    bookingId: Optional[str] = None
    bookingReference: Optional[str] = None
    evOwnerNic: Optional[str] = None
    chargingStationId: Optional[str] = None
    chargingPointNumber: Optional[int] = None
    startTime: Optional[datetime] = None
    durationMinutes: Optional[int] = None
    expiresAt: Optional[datetime] = None
    status: Optional[str] = None
    errorMessage: Optional[str] = None


def booking_out(b) -> BookingOut:
    return BookingOut(
        id=b.id,
        bookingReference=b.booking_reference,
        evOwnerNic=b.ev_owner_nic,
        chargingStationId=b.charging_station_id,
        chargingPointNumber=b.charging_point_number,
        bookingDate=b.booking_date,
        timeSlot=b.time_slot,
        startTime=b.start_time,
        endTime=b.end_time,
        durationMinutes=b.duration_minutes,
        status=b.status,
        qrCodeData=b.qr_code_data,
        createdAt=b.created_at,
        updatedAt=b.updated_at,
    )
