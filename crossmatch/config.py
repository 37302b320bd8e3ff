"""Configuration management using pydantic-settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator
from typing import List, Optional
import structlog


class MatchingSettings(BaseSettings):
    """Matching engine configuration loaded from environment variables.

    All settings prefixed with MATCH_ (e.g., MATCH_AUTO_THRESHOLD=0.85).
    Scores are normalized to the 0-1 range.
    """

    # Decision thresholds
    auto_threshold: float = Field(
        default=0.85,
        ge=0,
        le=1,
        description="Combined score >= this links records automatically"
    )
    review_threshold: float = Field(
        default=0.70,
        ge=0,
        le=1,
        description="Combined score >= this (and below auto) is surfaced for review"
    )

    # Scoring weights
    name_weight: float = Field(
        default=0.7,
        ge=0,
        le=1,
        description="Weight of name similarity in the combined score"
    )
    dimension_weight: float = Field(
        default=0.3,
        ge=0,
        le=1,
        description="Weight of dimension similarity in the combined score"
    )
    neutral_dimension_score: float = Field(
        default=0.5,
        ge=0,
        le=1,
        description="Dimension score used when no dimension field is comparable"
    )
    name_prefilter_factor: float = Field(
        default=0.8,
        ge=0,
        le=1,
        description="Pairs with name score below review_threshold * factor are skipped"
    )

    # Processing Configuration
    max_batch_size: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Maximum records fetched per retailer side for fuzzy comparison"
    )

    model_config = SettingsConfigDict(
        env_prefix="MATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_thresholds(self) -> "MatchingSettings":
        """Reject inconsistent threshold and weight combinations."""
        if self.review_threshold > self.auto_threshold:
            raise ValueError("review_threshold must not exceed auto_threshold")
        if abs(self.name_weight + self.dimension_weight - 1.0) > 1e-9:
            raise ValueError("name_weight and dimension_weight must sum to 1.0")
        return self

    @property
    def name_prefilter_cutoff(self) -> float:
        """Name score below which the dimension score is not computed."""
        return self.review_threshold * self.name_prefilter_factor


class RetrySettings(BaseSettings):
    """Retry policy used by the task layer around matching runs.

    All settings prefixed with RETRY_ (e.g., RETRY_DELAYS='[1, 2, 4]').
    """

    delays: List[float] = Field(
        default_factory=lambda: [1.0, 2.0, 4.0],
        description="Seconds to wait before each retry; one retry per entry"
    )

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str

    # Redis Configuration
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_url: Optional[str] = None

    # Queue Configuration
    queue_name: str = "matching-queue"

    # Worker Configuration
    max_workers: int = 2
    job_timeout: int = 600
    log_level: str = "INFO"
    environment: str = "development"

    # Scheduled sweep
    match_cron_hours: List[int] = Field(
        default_factory=lambda: [2, 14],
        description="Hours (UTC) at which the full matching sweep runs"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(self, **kwargs):
        """Initialize settings and build derived values."""
        super().__init__(**kwargs)
        # Build Redis URL if not provided
        if not self.redis_url:
            auth = f":{self.redis_password}@" if self.redis_password else ""
            self.redis_url = f"redis://{auth}{self.redis_host}:{self.redis_port}/0"


# Global settings instances
settings = Settings()
matching_settings = MatchingSettings()
retry_settings = RetrySettings()


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON logging."""
    structlog.configure(
        processors=[
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
