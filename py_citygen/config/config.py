"""Configuration management."""

import logging

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CITYGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="console", description="Logging format (console or json)"
    )

    # Generation Configuration
    default_world_seed: str = Field(
        default="default", description="World seed used when none is supplied"
    )
    plan_cache_size: int = Field(
        default=0,
        ge=0,
        description="Max settlement plans kept in the planner cache (0 = unbounded)",
    )


settings = Settings()


def configure_logging(config: Settings = None) -> None:
    """
    Configure structlog for the layout engines.

    Args:
        config: Settings to read level and format from, defaults to the module singleton
    """
    config = config or settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)

    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
