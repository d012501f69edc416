from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./transit.db"
    DATABASE_ECHO: bool = False

    # Application
    PROJECT_NAME: str = "National Transit Seat Booking"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Seat ledger
    SEAT_HOLD_TIMEOUT_SECONDS: int = 300
    LEDGER_SWEEP_INTERVAL_SECONDS: int = 30

    # Payment gateway
    PAYMENT_GATEWAY_URL: Optional[str] = None
    PAYMENT_GATEWAY_API_KEY: Optional[str] = None
    PAYMENT_CURRENCY: str = "LKR"
    PAYMENT_TIMEOUT_SECONDS: float = 15.0
    PAYMENT_MAX_WORKERS: int = 16

    # Booking persistence
    PERSISTENCE_MAX_RETRIES: int = 3
    PERSISTENCE_RETRY_BACKOFF_SECONDS: float = 0.2
    BOOKING_OUTBOX_PATH: str = "booking_outbox.jsonl"

    # Email notifications
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    EMAIL_SENDER: str = "noreply@transit.local"
    NOTIFICATION_MAX_ATTEMPTS: int = 3
    NOTIFICATION_RETRY_DELAY_SECONDS: float = 2.0

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    @model_validator(mode="after")
    def check_hold_outlives_payment(self):
        if self.SEAT_HOLD_TIMEOUT_SECONDS <= self.PAYMENT_TIMEOUT_SECONDS:
            raise ValueError("SEAT_HOLD_TIMEOUT_SECONDS must be longer than PAYMENT_TIMEOUT_SECONDS")
        return self

settings = Settings()
