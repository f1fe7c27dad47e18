"""Configuration management for the CarLeads routing service."""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "CarLeads"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ==========================================================================
    # Database
    # ==========================================================================
    DATABASE_URL: str = "sqlite:///data/carleads.db"

    # ==========================================================================
    # Messaging gateway (dealer / lead notifications)
    # ==========================================================================
    GATEWAY_URL: Optional[str] = Field(default=None, description="Messaging gateway base URL")
    GATEWAY_TOKEN: str = Field(default="", description="Bearer token for the gateway")
    GATEWAY_TIMEOUT: float = 30.0

    # Shared secret expected on inbound gateway callbacks
    WEBHOOK_TOKEN: Optional[str] = None

    # ==========================================================================
    # Routing rules
    # ==========================================================================
    MATCH_LIMIT: int = 5  # Candidate dealers returned by the matcher
    MAX_LEAD_SCORE: int = 100

    # ==========================================================================
    # Validation
    # ==========================================================================
    def validate_gateway(self) -> bool:
        """Check if the messaging gateway is configured."""
        return bool(self.GATEWAY_URL)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience alias
settings = get_settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Route stdlib logging through Rich for the CLI and the API server."""
    from rich.logging import RichHandler

    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


# ==========================================================================
# Scoring rule tables (first match wins, case-insensitive substring)
# ==========================================================================
BUDGET_TIERS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("100k", "100000"), 30),
    (("50k", "50000"), 20),
    (("30k", "30000"), 15),
    (("20k", "20000"), 10),
)
BUDGET_FALLBACK_POINTS = 5

TIMELINE_TIERS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("immediate", "now", "week"), 25),
    (("month",), 15),
    (("2-3", "few"), 10),
)
TIMELINE_FALLBACK_POINTS = 5

CONTACT_POINTS: dict[str, int] = {
    "phone": 15,
    "sms": 10,
}
CONTACT_FALLBACK_POINTS = 5

SOURCE_POINTS: dict[str, int] = {
    "referral": 10,
    "ad": 8,
}
SOURCE_FALLBACK_POINTS = 5

COMPLETENESS_BONUS = 10

# ==========================================================================
# Vehicle interest keyword -> dealer specialty
# ==========================================================================
SPECIALTY_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("sedan", "sedan"),
    ("suv", "suv"),
    ("truck", "truck"),
    ("luxury", "luxury"),
    ("electric", "electric"),
    ("ev", "electric"),
    ("tesla", "electric"),
    ("bmw", "luxury"),
    ("mercedes", "luxury"),
    ("audi", "luxury"),
)
