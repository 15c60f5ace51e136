"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Security
    jwt_secret: str = Field(
        default="change-this-to-a-secure-random-string-in-production",
        description="JWT signing secret",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_expiration_minutes: int = Field(default=1440, description="JWT expiration (24h)")

    # Database
    db_path: str = Field(default="./data/analytics.duckdb", description="DuckDB file path")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Collaborator calls (record store fetches and persistence writes)
    collaborator_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Upper bound for a single fetch or persist call"
    )
    collaborator_max_workers: int = Field(
        default=8, ge=1, description="Worker threads for bounded collaborator calls"
    )
    fetch_chunk_size: int = Field(
        default=500, ge=1, le=50000, description="Records read per chunk from the record store"
    )

    # Engine Configuration
    volatility_cv_threshold: float = Field(
        default=0.5, gt=0.0, description="Coefficient of variation above which a trend is volatile"
    )
    funding_risk_threshold: float = Field(
        default=100000.0, ge=0.0, description="Funding above which a project carries funding risk"
    )
    prediction_batch_limit: int = Field(
        default=10, ge=0, description="Active projects scored per scheduler run"
    )
    week_start: int = Field(
        default=0, ge=0, le=6, description="First day of a weekly bucket (0=Monday)"
    )

    # Retention
    report_retention_days: int = Field(default=180, ge=1, description="Stored report lifetime")
    snapshot_retention_days: int = Field(default=730, ge=1, description="Stored snapshot lifetime")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
