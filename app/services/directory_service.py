from sqlalchemy.orm import Session
from app.core.errors import NotFoundError, ValidationError
from app.models.ev_owner import EVOwner
from app.models.station import ChargingStation
from app.models.user import User

def get_station(db: Session, station_id: str) -> ChargingStation:
    station = db.get(ChargingStation, station_id)
    if not station:
        raise NotFoundError("Charging station not found")
    return station

def require_active_station(db: Session, station_id: str) -> ChargingStation:
    station = get_station(db, station_id)
    if not station.is_active:
        raise ValidationError("Charging station is not active")
    return station

def get_owner(db: Session, nic: str) -> EVOwner:
    owner = db.get(EVOwner, nic)
    if not owner:
        raise NotFoundError("EV Owner not found")
    return owner

def require_active_owner(db: Session, nic: str) -> EVOwner:
    owner = get_owner(db, nic)
    if not owner.is_active:
        raise ValidationError("EV Owner is inactive")
    return owner

def stations_for_operator(db: Session, username: str) -> list[ChargingStation]:
    operator = db.query(User).filter(User.username == username).first()
    if not operator:
        raise NotFoundError("Station operator not found")
    return db.query(ChargingStation).filter(ChargingStation.operator_user_id == operator.id).all()
