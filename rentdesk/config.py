from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./rentdesk.db",
        alias="DATABASE_URL"
    )

    # Security
    secret_key: str = Field(default="dev-secret-key-at-least-32-characters-long-for-development", alias="SECRET_KEY")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(default=7, alias="REFRESH_TOKEN_EXPIRE_DAYS")
    login_rate_limit: str = Field(default="10/minute", alias="LOGIN_RATE_LIMIT")

    # CORS - Frontend URLs (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        alias="ALLOWED_ORIGINS"
    )

    # ==============================================
    # Business rules
    # ==============================================
    # Business-day boundary for check-in / check-out / archive rules
    timezone: str = Field(default="Asia/Dubai", alias="TIMEZONE")
    default_currency: str = Field(default="AED", alias="DEFAULT_CURRENCY")

    # Cool-down periods before records may be archived
    archive_booking_after_days: int = Field(default=90, alias="ARCHIVE_BOOKING_AFTER_DAYS")
    archive_guest_after_days: int = Field(default=365, alias="ARCHIVE_GUEST_AFTER_DAYS")

    # Bounded retry for booking reference generation
    reference_max_attempts: int = Field(default=10, alias="REFERENCE_MAX_ATTEMPTS")

    # ==============================================
    # Automations / jobs
    # ==============================================
    # Thread pool used for fire-and-forget automation dispatch
    automation_workers: int = Field(default=4, alias="AUTOMATION_WORKERS")

    # Cron registration of recurring triggers at startup
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    scheduler_timezone: str = Field(default="Asia/Dubai", alias="SCHEDULER_TIMEZONE")

    # Job worker (runs inside FastAPI process or via worker.py)
    worker_enabled: bool = Field(default=True, alias="WORKER_ENABLED")
    worker_poll_interval: int = Field(default=10, alias="WORKER_POLL_INTERVAL")  # seconds
    worker_batch_size: int = Field(default=50, alias="WORKER_BATCH_SIZE")
    job_max_attempts: int = Field(default=5, alias="JOB_MAX_ATTEMPTS")

    # First admin account, created at startup when no user exists
    default_admin_email: str = Field(default="admin@rentdesk.com", alias="DEFAULT_ADMIN_EMAIL")
    default_admin_password: str = Field(default="Admin123!", alias="DEFAULT_ADMIN_PASSWORD")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    @field_validator('secret_key')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate SECRET_KEY is strong enough"""
        if not v:
            raise ValueError("SECRET_KEY is required and cannot be empty")
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator('archive_booking_after_days', 'archive_guest_after_days', 'reference_max_attempts')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        if not self.allowed_origins:
            return ["http://localhost:5173"]

        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)

        return origins if origins else ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
