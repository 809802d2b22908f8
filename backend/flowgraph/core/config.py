"""
Application configuration settings.
"""

import sys
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings
from loguru import logger


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "FlowGraph MCP Server"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # n8n workflow store
    N8N_BASE_URL: str = "http://localhost:5678"
    N8N_API_KEY: str = ""
    N8N_API_TIMEOUT_SECONDS: float = 30.0

    # Node catalog
    CATALOG_CACHE_TTL_SECONDS: int = 300
    CATALOG_MOST_USED_LIMIT: int = 20

    # Batch operations
    BATCH_DEFAULT_CONCURRENCY: int = 3
    BATCH_MAX_CONCURRENCY: int = 10

    # Execution monitoring
    EXECUTION_POLL_INTERVAL_SECONDS: float = 1.0
    EXECUTION_DEFAULT_TIMEOUT_SECONDS: float = 30.0
    LONG_EXECUTION_THRESHOLD_MS: int = 300_000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    @field_validator("N8N_BASE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if not v:
            raise ValueError("N8N_BASE_URL must be set")
        return str(v).rstrip("/")

    @field_validator("N8N_API_KEY", mode="before")
    @classmethod
    def warn_missing_api_key(cls, v):
        if not v:
            logger.warning("N8N_API_KEY is not set; requests to the n8n API will be rejected")
        return v or ""

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return str(v or "INFO").upper()

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()

# Configure logging. stdout stays clean for protocol traffic.
logger.remove()
logger.add(
    sys.stderr,
    level=settings.LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | {message}"
)
if settings.LOG_FILE:
    logger.add(
        settings.LOG_FILE,
        level=settings.LOG_LEVEL,
        rotation="10 MB",
        retention="30 days",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}"
    )
