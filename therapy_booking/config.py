"""
Configuration management for the therapist booking engine.

This module provides centralized configuration using Pydantic settings
for type-safe environment variable management.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Payment Simulation
    consultation_fee: int = Field(default=150, alias="CONSULTATION_FEE")
    currency: str = Field(default="USD", alias="CURRENCY")
    payment_settlement_delay: float = Field(
        default=1.5, ge=0, alias="PAYMENT_SETTLEMENT_DELAY"
    )
    payment_settlement_jitter: float = Field(
        default=0.0, ge=0, alias="PAYMENT_SETTLEMENT_JITTER"
    )

    # Virtual Session Simulation
    session_connection_delay: float = Field(
        default=2.0, ge=0, alias="SESSION_CONNECTION_DELAY"
    )
    session_tick_interval: float = Field(
        default=1.0, gt=0, alias="SESSION_TICK_INTERVAL"
    )

    # Session Access Publishing
    session_access_mode: Literal["external", "internal"] = Field(
        default="external", alias="SESSION_ACCESS_MODE"
    )
    external_meeting_base_url: str = Field(
        default="https://meet.jit.si", alias="EXTERNAL_MEETING_BASE_URL"
    )
    internal_session_route: str = Field(
        default="/api/v1/sessions", alias="INTERNAL_SESSION_ROUTE"
    )

    # Notification Configuration
    notification_webhook_url: Optional[str] = Field(
        default=None, alias="NOTIFICATION_WEBHOOK_URL"
    )
    notification_timeout: int = Field(default=10, alias="NOTIFICATION_TIMEOUT")

    # Catalog Configuration
    therapist_catalog_path: Optional[str] = Field(
        default=None, alias="THERAPIST_CATALOG_PATH"
    )

    # Application Configuration
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8080, alias="API_PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once,
    improving performance for repeated access.
    """
    return Settings()


# Bundled therapist catalog, used when no THERAPIST_CATALOG_PATH is set.
# Availability keys are listed in the order they should be offered.
THERAPIST_PROFILES: List[dict] = [
    {
        "id": "1",
        "name": "Dr. Sarah Johnson",
        "specialties": ["Anxiety", "Depression", "Stress Management"],
        "availability": {
            "Monday": "9:00 - 17:00",
            "Wednesday": "9:00 - 17:00",
            "Friday": "9:00 - 13:00",
        },
    },
    {
        "id": "2",
        "name": "Dr. Michael Chen",
        "specialties": ["Couples Therapy", "Family Therapy"],
        "availability": {
            "Tuesday": "10:00 - 18:00",
            "Thursday": "10:00 - 18:00",
        },
    },
    {
        "id": "3",
        "name": "Dr. Emily Rodriguez",
        "specialties": ["Trauma", "PTSD", "Anxiety"],
        "availability": {
            "Monday": "13:00 - 20:00",
            "Tuesday": "13:00 - 20:00",
            "Saturday": "10:00 - 14:00",
        },
    },
    {
        "id": "4",
        "name": "Dr. James Wilson",
        "specialties": ["Addiction", "Depression"],
        "availability": {
            "Wednesday": "8:00 - 12:00",
            "Thursday": "8:00 - 12:00",
            "Friday": "8:00 - 16:00",
        },
    },
    {
        "id": "5",
        "name": "Dr. Aisha Patel",
        "specialties": ["Child Psychology", "Family Therapy", "ADHD"],
        "availability": {
            "Tuesday": "9:00 - 15:00",
            "Friday": "12:00 - 18:00",
        },
    },
]

