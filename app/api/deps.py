from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.clock import Clock, system_clock
from app.core.security import decode_token
from app.models.booking import Booking
from app.models.station import ChargingStation
from app.models.user import User, ROLE_BACKOFFICE, ROLE_OPERATOR, ROLE_OWNER, STAFF_ROLES

bearer = HTTPBearer(auto_error=False)

def get_clock() -> Clock:
    return system_clock

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(creds.credentials)
    except (JWTError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

def require_roles(*roles: str):
    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return _guard

require_staff = require_roles(*STAFF_ROLES)
require_any = require_roles(ROLE_OWNER, *STAFF_ROLES)

# -------------------------
# Scope checks: the caller's capability is decided here, not in the services
# -------------------------
def ensure_owner_access(user: User, nic: str) -> None:
    """Owners may only act for their own NIC; staff may act for anyone."""
    if user.role == ROLE_OWNER and user.nic != nic:
        raise HTTPException(status_code=403, detail="Forbidden")

def ensure_station_access(user: User, station: ChargingStation) -> None:
    if user.role == ROLE_BACKOFFICE:
        return
    if user.role == ROLE_OPERATOR and station.operator_user_id == user.id:
        return
    raise HTTPException(status_code=403, detail="Forbidden")

def ensure_booking_access(db: Session, user: User, booking: Booking) -> None:
    if user.role == ROLE_OWNER:
        ensure_owner_access(user, booking.ev_owner_nic)
        return
    station = db.get(ChargingStation, booking.charging_station_id)
    if not station:
        if user.role == ROLE_BACKOFFICE:
            return
        raise HTTPException(status_code=403, detail="Forbidden")
    ensure_station_access(user, station)
