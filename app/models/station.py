from sqlalchemy import String, Integer, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from app.core.clock import utcnow
from app.db.session import Base

class ChargingStation(Base):
    __tablename__ = "charging_stations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    location: Mapped[str] = mapped_column(String(255), default="")
    station_type: Mapped[str] = mapped_column(String(4), default="AC")  # AC|DC
    charging_points: Mapped[int] = mapped_column(Integer, default=3)

    # station operator assigned to manage this station
    operator_user_id: Mapped[str] = mapped_column(String(36), nullable=True, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
