"""Configuration management using pydantic-settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from enum import Enum
import logging
import sys
import structlog


class AmbiguousScanPolicy(str, Enum):
    """What to do when a barcode scan hits several equally-scored products."""
    MANUAL_REVIEW = "manual_review"
    BEST_CANDIDATE = "best_candidate"


class MatchingSettings(BaseSettings):
    """Identity matcher configuration loaded from environment variables.

    All settings prefixed with MATCH_ (e.g., MATCH_REVIEW_THRESHOLD=0.9)
    """

    # Confidence thresholds (normalized 0-1)
    review_threshold: float = Field(
        default=0.90,
        ge=0,
        le=1,
        description="Confidence below this flags the item for review (default: 0.90)"
    )
    fuzzy_floor: float = Field(
        default=0.70,
        ge=0,
        le=1,
        description="Minimum fuzzy score for a candidate to be linked at all"
    )
    gtin_variant_confidence: float = Field(
        default=0.99,
        ge=0,
        le=1,
        description="Confidence for GTIN matches found through GTIN-14 normalization"
    )

    # Candidate handling
    max_candidates: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum candidate matches to store for review"
    )
    ambiguous_scan_policy: AmbiguousScanPolicy = Field(
        default=AmbiguousScanPolicy.MANUAL_REVIEW,
        description="Tie handling for ambiguous barcode scans (manual_review, best_candidate)"
    )

    # Audit
    system_actor: str = Field(
        default="system:identity-matcher",
        description="Identity recorded in matched_by for automated matches"
    )

    model_config = SettingsConfigDict(
        env_prefix="MATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class CorrectionSettings(BaseSettings):
    """Correction workflow configuration.

    All settings prefixed with CORRECTION_ (e.g., CORRECTION_PENDING_REVIEW_LIMIT=100)
    """

    pending_review_limit: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Default page size of the pending corrections review list"
    )
    max_description_length: int = Field(
        default=2000,
        ge=1,
        description="Maximum length of a proposed supplier description"
    )
    max_review_notes_length: int = Field(
        default=1000,
        ge=1,
        description="Maximum length of reviewer notes on rejection"
    )

    model_config = SettingsConfigDict(
        env_prefix="CORRECTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_echo: bool = False

    log_level: str = "INFO"
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instances
settings = Settings()
matching_settings = MatchingSettings()
correction_settings = CorrectionSettings()


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON logging."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging(settings.log_level)
