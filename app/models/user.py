from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from app.core.clock import utcnow
from app.db.session import Base

ROLE_BACKOFFICE = "backoffice"
ROLE_OPERATOR = "operator"
ROLE_OWNER = "owner"
STAFF_ROLES = (ROLE_BACKOFFICE, ROLE_OPERATOR)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(200), default="")
    role: Mapped[str] = mapped_column(String(30), index=True)  # backoffice, operator, owner
    nic: Mapped[str] = mapped_column(String(20), nullable=True, index=True)  # set for owner logins
    password_hash: Mapped[str] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
