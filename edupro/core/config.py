from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite+aiosqlite:///./edupro.db", alias="DATABASE_URL")
    auto_create_tables: bool = Field(False, alias="AUTO_CREATE_TABLES")

    jwt_secret_key: str = Field("change-me", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(30, alias="REFRESH_TOKEN_EXPIRE_DAYS")

    # Phone identifiers are turned into <digits>@<login_domain> login handles
    login_domain: str = Field("midnightcuriosity.com", alias="LOGIN_DOMAIN")
    min_phone_digits: int = Field(8, alias="MIN_PHONE_DIGITS")

    # Calendar-day rules (attendance lock, homework due date) use this zone
    local_timezone: str = Field("Asia/Kolkata", alias="LOCAL_TIMEZONE")
    attendance_edit_window_days: int = Field(2, alias="ATTENDANCE_EDIT_WINDOW_DAYS")

    push_endpoint: str = Field("https://exp.host/--/api/v2/push/send", alias="PUSH_ENDPOINT")
    push_timeout_seconds: float = Field(10.0, alias="PUSH_TIMEOUT_SECONDS")
    push_enabled: bool = Field(True, alias="PUSH_ENABLED")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_format: Optional[str] = Field(None, alias="LOG_FORMAT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
