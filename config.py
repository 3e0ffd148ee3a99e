"""
Configuration management for Employee Enrichment Service
"""
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Blitz API Configuration
    blitz_base_url: str = Field("https://api.blitz-api.ai")
    blitz_api_key: Optional[str] = None  # CLI default only, uploads carry their own key

    # Remote call policy
    request_timeout: float = Field(30.0)  # seconds per attempt
    max_retries: int = Field(4)  # retries beyond the first attempt
    rate_limit_backoff_cap: float = Field(16.0)  # seconds

    # Pagination / rate budget
    page_size: int = Field(50)
    request_delay: float = Field(0.15)  # seconds between remote calls

    # Job lifecycle
    job_retention_seconds: float = Field(2 * 60 * 60)
    keepalive_interval: float = Field(15.0)
    subscriber_queue_size: int = Field(100)

    # HTTP service
    host: str = Field("0.0.0.0")
    port: int = Field(3001)
    max_upload_mb: int = Field(50)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    service_name: str = Field("employee-enrichment-service")

    # Logging Configuration
    log_level: str = Field("INFO")
    log_file_enabled: bool = Field(True)
    log_file_path: str = Field("logs")
    log_rotation: str = Field("10 MB")
    log_retention: str = Field("30 days")

    # Development
    debug_mode: bool = Field(False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @validator("log_level")
    def validate_log_level(cls, v):
        """Validate log level is one of the standard Python logging levels"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @validator("page_size")
    def validate_page_size(cls, v):
        """Ensure page_size is accepted by the employee finder"""
        if v < 1 or v > 500:
            raise ValueError("page_size must be between 1 and 500")
        return v

    @validator("max_retries")
    def validate_max_retries(cls, v):
        if v < 0 or v > 10:
            raise ValueError("max_retries must be between 0 and 10")
        return v

    @validator(
        "request_timeout",
        "rate_limit_backoff_cap",
        "job_retention_seconds",
        "keepalive_interval",
    )
    def validate_positive(cls, v):
        """Ensure timing settings are positive"""
        if v <= 0:
            raise ValueError("Timing settings must be positive")
        return v

    @validator("request_delay")
    def validate_request_delay(cls, v):
        if v < 0:
            raise ValueError("request_delay cannot be negative")
        return v

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


# Global settings instance - lazy loaded
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment"""
    global _settings
    _settings = Settings()
    return _settings
