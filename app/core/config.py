from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

DEFAULT_SQLITE_URL = "sqlite:///./expert_booking.db"
DRIVER_NORMALIZATION = {
    # async -> sync
    "mysql+asyncmy": "mysql+pymysql",
    "sqlite+aiosqlite": "sqlite",
    # mysql connector flavors -> pymysql (default in requirements)
    "mysql+mysqlconnector": "mysql+pymysql",
    "mysql+mysqldb": "mysql+pymysql",
    "mysql": "mysql+pymysql",
}


class Settings(BaseSettings):
    db_host: str = Field(default="localhost", validation_alias=AliasChoices("DB_HOST"))
    db_port: int = Field(default=3306, validation_alias=AliasChoices("DB_PORT"))
    db_username: str | None = Field(default=None, validation_alias=AliasChoices("DB_USERNAME"))
    db_password: str | None = Field(default=None, validation_alias=AliasChoices("DB_PASSWORD"))
    db_name: str | None = Field(default="expert_booking", validation_alias=AliasChoices("DB_NAME"))
    database_url: str | None = Field(default=None, validation_alias=AliasChoices("DATABASE_URL"))
    app_env: str | None = Field(default=None, validation_alias=AliasChoices("APP_ENV"))

    # Booking engine
    slot_lock_ttl_seconds: int = Field(default=90, validation_alias=AliasChoices("SLOT_LOCK_TTL_SECONDS"))
    minimum_booking_hours: int = Field(default=3, validation_alias=AliasChoices("MINIMUM_BOOKING_HOURS"))
    appointment_duration_minutes: int = Field(
        default=60,
        validation_alias=AliasChoices("APPOINTMENT_DURATION_MINUTES"),
    )
    timezone: str = Field(default="Europe/Istanbul", validation_alias=AliasChoices("TIMEZONE", "TZ_NAME"))

    # Links and branding used in outgoing notifications
    site_title: str = Field(default="Expert Appointments", validation_alias=AliasChoices("SITE_TITLE"))
    frontend_base_url: str = Field(
        default="http://localhost:5173",
        validation_alias=AliasChoices("FRONTEND_BASE_URL"),
    )
    survey_url: str | None = Field(default=None, validation_alias=AliasChoices("SURVEY_URL"))

    # SMTP (disabled unless explicitly enabled)
    smtp_enabled: bool = Field(default=False, validation_alias=AliasChoices("SMTP_ENABLED"))
    smtp_host: str | None = Field(default=None, validation_alias=AliasChoices("SMTP_HOST"))
    smtp_port: int = Field(default=587, validation_alias=AliasChoices("SMTP_PORT"))
    smtp_user: str | None = Field(default=None, validation_alias=AliasChoices("SMTP_USER"))
    smtp_password: str | None = Field(default=None, validation_alias=AliasChoices("SMTP_PASSWORD"))
    smtp_from_email: str | None = Field(default=None, validation_alias=AliasChoices("SMTP_FROM_EMAIL"))
    smtp_from_name: str | None = Field(default=None, validation_alias=AliasChoices("SMTP_FROM_NAME"))
    smtp_timeout_seconds: int = Field(default=30, validation_alias=AliasChoices("SMTP_TIMEOUT_SECONDS"))

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def get_db_url(settings: "Settings") -> str:
    app_env = (settings.app_env or "").strip().lower()
    if app_env in {"local", "dev", "development"}:
        # Local runs always use SQLite so no MySQL/SSL setup is required.
        return DEFAULT_SQLITE_URL

    if settings.database_url:
        return settings.database_url

    if settings.db_username and settings.db_password and settings.db_name:
        return (
            f"mysql+asyncmy://{settings.db_username}:"
            f"{settings.db_password}@{settings.db_host}:{settings.db_port}/"
            f"{settings.db_name}"
        )

    if app_env in {"production", "prod", "staging"}:
        raise ValueError("APP_ENV is set to production/staging but DB configuration is missing")

    return DEFAULT_SQLITE_URL


def normalize_db_url(url: str) -> str:
    """
    Convert async driver URLs to sync equivalents so they can be used
    with the current synchronous SQLAlchemy engine/session setup.
    """
    url_obj = make_url(url)
    driver = url_obj.drivername
    if driver in DRIVER_NORMALIZATION:
        url_obj = url_obj.set(drivername=DRIVER_NORMALIZATION[driver])
    return url_obj.render_as_string(hide_password=False)


settings = Settings()
