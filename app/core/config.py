from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "EV Charge Booking API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v

    # Slot grid
    CHARGING_POINTS_PER_STATION: int = 3
    SLOT_DURATION_MINUTES: int = 60

    # Owner-side booking rules
    MODIFY_CUTOFF_HOURS: int = 12
    RESERVATION_WINDOW_DAYS: int = 7

    # QR credential
    QR_TOKEN_TTL_MINUTES: int = 60  # counted from the reservation start
    QR_SIGNING_KEY: str = ""  # falls back to SECRET_KEY
    REQUIRE_QR_FOR_COMPLETION: bool = False

    @property
    def qr_signing_key(self) -> bytes:
        return (self.QR_SIGNING_KEY or self.SECRET_KEY).encode("utf-8")


settings = Settings()
