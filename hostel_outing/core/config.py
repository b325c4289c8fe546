"""
Configuration Management

Centralized configuration management using Pydantic Settings for type safety
and environment variable integration.
"""

from pathlib import Path
from typing import Optional
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


_MODEL_CONFIG = {
    "env_file": ".env",
    "env_file_encoding": "utf-8",
    "case_sensitive": True,
    "extra": "ignore",
}


class DatabaseSettings(BaseSettings):
    """Database configuration settings"""

    DATABASE_URL: str = Field(default="sqlite:///./hostel_outing.db")
    DB_ECHO: bool = Field(default=False)
    DB_POOL_PRE_PING: bool = Field(default=True)

    model_config = _MODEL_CONFIG


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""

    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text
    LOG_FILE: Optional[str] = Field(default=None)
    LOG_RETENTION: int = Field(default=30)  # days

    ENABLE_STRUCTURED_LOGGING: bool = Field(default=True)
    LOG_SQL_QUERIES: bool = Field(default=False)

    model_config = _MODEL_CONFIG

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of {valid_levels}')
        return v.upper()

    @field_validator('LOG_FORMAT')
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in ('json', 'text'):
            raise ValueError('Log format must be json or text')
        return v.lower()


class OutingSettings(BaseSettings):
    """Gate pass and outing window configuration"""

    TIMEZONE: str = Field(default="Asia/Kolkata")

    # Future-dated leaves may only leave the gate at or after this time of day
    GATE_PASS_CUTOFF_HOUR: int = Field(default=16, ge=0, le=23)
    GATE_PASS_CUTOFF_MINUTE: int = Field(default=30, ge=0, le=59)

    QR_LEAD_MINUTES: int = Field(default=2, ge=0)
    MAX_VISITS: int = Field(default=2, ge=1)
    DUPLICATE_SCAN_WINDOW_SECONDS: int = Field(default=30, ge=0)
    INCOMING_QR_TTL_HOURS: int = Field(default=24, ge=1)
    SCAN_MAX_RETRIES: int = Field(default=3, ge=1)
    DEFAULT_SCAN_LOCATION: str = Field(default="Main Gate")

    model_config = _MODEL_CONFIG


class OtpSettings(BaseSettings):
    """Parent OTP verification configuration"""

    OTP_RESEND_COOLDOWN_MINUTES: int = Field(default=5, ge=0)
    # 0 disables the failed-attempt lockout
    OTP_MAX_FAILED_ATTEMPTS: int = Field(default=5, ge=0)
    OTP_LOCKOUT_MINUTES: int = Field(default=15, ge=0)

    model_config = _MODEL_CONFIG


class NotificationSettings(BaseSettings):
    """Notification and SMS gateway configuration"""

    SMS_ENABLED: bool = Field(default=True)
    SMS_API_URL: str = Field(default="https://www.bulksmsapps.com/api/apismsv2.aspx")
    SMS_UNICODE_API_URL: str = Field(default="https://www.bulksmsapps.com/api/apibulkv2.aspx")
    SMS_API_KEY: Optional[str] = Field(default=None)
    SMS_SENDER_ID: str = Field(default="PYDAHK")
    SMS_ENGLISH_TEMPLATE_ID: str = Field(default="1707175151753778713")
    SMS_TELUGU_TEMPLATE_ID: str = Field(default="1707175151835691501")
    SMS_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    NOTIFICATION_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    NOTIFICATION_MAX_WORKERS: int = Field(default=4, ge=1)

    model_config = _MODEL_CONFIG


class Settings(BaseSettings):
    """Main application settings"""

    ENVIRONMENT: str = Field(default="development")

    # Include all sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    outing: OutingSettings = Field(default_factory=OutingSettings)
    otp: OtpSettings = Field(default_factory=OtpSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    model_config = _MODEL_CONFIG

    @field_validator('ENVIRONMENT')
    @classmethod
    def validate_environment(cls, v):
        valid_envs = ['development', 'staging', 'production', 'testing']
        if v not in valid_envs:
            raise ValueError(f'Environment must be one of {valid_envs}')
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()


# Global settings instance
settings = get_settings()
