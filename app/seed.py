import uuid

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.db.session import SessionLocal
from app.core.config import settings
from app.core.security import hash_password
from app.models.user import User, ROLE_BACKOFFICE, ROLE_OPERATOR, ROLE_OWNER
from app.models.station import ChargingStation
from app.models.ev_owner import EVOwner


def ensure_user(db: Session, username: str, password: str, role: str, name: str, nic: str | None = None) -> User:
    u = db.query(User).filter(User.username == username).first()
    if u:
        return u
    u = User(
        id=str(uuid.uuid4()),
        username=username,
        email=f"{username}@evcharge.local",
        full_name=name,
        role=role,
        nic=nic,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def ensure_owner(db: Session, nic: str, first: str, last: str) -> EVOwner:
    o = db.get(EVOwner, nic)
    if o:
        return o
    o = EVOwner(nic=nic, first_name=first, last_name=last, email=f"{first.lower()}@evcharge.local", is_active=True)
    db.add(o)
    db.commit()
    return o


def ensure_station(db: Session, name: str, location: str, station_type: str, operator: User) -> ChargingStation:
    s = db.query(ChargingStation).filter(ChargingStation.name == name).first()
    if s:
        return s
    s = ChargingStation(
        id=str(uuid.uuid4()),
        name=name,
        location=location,
        station_type=station_type,
        charging_points=settings.CHARGING_POINTS_PER_STATION,
        operator_user_id=operator.id,
        is_active=True,
    )
    db.add(s)
    db.commit()
    return s


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            print("[seed] users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, "admin", "admin12345", ROLE_BACKOFFICE, "Backoffice Admin")
        operator = ensure_user(db, "operator", "operator12345", ROLE_OPERATOR, "Station Operator")
        ensure_owner(db, "200012345678", "Demo", "Owner")
        ensure_user(db, "owner", "owner12345", ROLE_OWNER, "Demo Owner", nic="200012345678")
        ensure_station(db, "Colombo City Centre", "Colombo 02", "DC", operator)
        print("[seed] done.")
    finally:
        db.close()


if __name__ == "__main__":
    run()
