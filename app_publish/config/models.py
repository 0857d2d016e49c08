"""
Configuration models for app_publish.

This module defines all configuration data models with validation and defaults.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..auth.base import AuthCredentials


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default=LogLevel.INFO, description="Default logging level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    file_path: Optional[Path] = Field(default=None, description="Log file path")
    max_file_size: int = Field(
        default=10 * 1024 * 1024, description="Max log file size in bytes"
    )
    backup_count: int = Field(default=5, description="Number of backup log files")
    enable_console: bool = Field(default=True, description="Enable console logging")
    enable_file: bool = Field(default=False, description="Enable file logging")
    enable_structured: bool = Field(
        default=False, description="Enable structured JSON logging"
    )
    mask_credentials: bool = Field(default=True, description="Mask credentials in logs")

    # Component-specific log levels
    component_levels: Dict[str, LogLevel] = Field(
        default_factory=dict, description="Per-component log levels"
    )


class RetryPolicy(BaseModel):
    """Retry policy applied by every adapter."""

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    base_delay: float = Field(
        default=1.0, ge=0.0, description="Base backoff delay in seconds"
    )


class RateLimitSettings(BaseModel):
    """Token bucket settings for one backend."""

    capacity: float = Field(gt=0, description="Maximum number of tokens")
    refill_rate: float = Field(gt=0, description="Tokens added per second")

    model_config = ConfigDict(frozen=True)


class PublishConfig(BaseModel):
    """Global configuration container."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    rate_limits: Dict[str, RateLimitSettings] = Field(
        default_factory=dict, description="Per-backend rate limit overrides"
    )
    credentials: Dict[str, AuthCredentials] = Field(
        default_factory=dict, description="Inline credentials keyed by backend id"
    )
    credentials_dir: Optional[Path] = Field(
        default=None, description="Directory of <backend_id>.json credential files"
    )
    request_timeout: float = Field(
        default=60.0, gt=0, description="Total backend request timeout in seconds"
    )

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    @field_validator("credentials_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        """Expand ``~`` in the credentials directory."""
        if v is None or v == "":
            return None
        return Path(v).expanduser()
