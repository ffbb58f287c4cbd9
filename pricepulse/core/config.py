"""
PRICEPULSE - Application Configuration
Runtime settings with environment overrides and validation
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration settings"""

    # Application Settings
    APP_NAME: str = "PricePulse"
    APP_VERSION: str = "2.1.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    @property
    def app_name(self) -> str:
        return self.APP_NAME

    @property
    def app_version(self) -> str:
        return self.APP_VERSION

    @property
    def environment(self) -> str:
        return self.ENVIRONMENT

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Population Settings
    TOTAL_ACTIVE_MANAGERS: int = 11_000_000
    TEAM_COUNT: int = 20

    # Prediction Cycle Settings
    ALGORITHM_VERSION: str = "PricePulse_Enhanced_v2.1"
    UPDATE_INTERVAL_MINUTES: int = 60
    MAX_CONCURRENT_EVALUATIONS: int = 64
    DEFAULT_HOURS_UNTIL_DEADLINE: float = 48.0

    # Snapshot Source
    SNAPSHOT_PATH: Optional[str] = None
    PREVIOUS_SNAPSHOT_PATH: Optional[str] = None

    # Candidate Selection
    CANDIDATE_MIN_ACTIVITY: int = 10_000
    CANDIDATE_MIN_OWNERSHIP: float = 5.0
    INCLUDE_ALL_MIN_OWNERSHIP: float = 0.1

    # Output Buckets
    MAX_RISERS: int = 50
    MAX_FALLERS: int = 50
    MAX_STABLE: int = 20

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator('TOTAL_ACTIVE_MANAGERS', 'TEAM_COUNT', 'MAX_CONCURRENT_EVALUATIONS')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @model_validator(mode='after')
    def validate_buckets(self) -> 'Settings':
        if min(self.MAX_RISERS, self.MAX_FALLERS, self.MAX_STABLE) < 0:
            raise ValueError("Bucket sizes cannot be negative")
        if self.ENVIRONMENT == "production" and self.DEBUG:
            raise ValueError("DEBUG must be disabled in production")
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Singleton instance
settings = get_settings()
