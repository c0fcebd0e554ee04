"""
Module: settings.py
Description: Process configuration using pydantic-settings.

Loads delivery defaults and durable buffer location from environment
variables (prefix ``TELEMETRY_RELAY_``) with validation and defaults.
Supports .env files for local development.
"""

import re
from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Process settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TELEMETRY_RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="telemetry-relay", description="Agent name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Delivery settings
    endpoint: Optional[str] = Field(
        default=None,
        description="Collector endpoint URL; delivery stays disabled without it"
    )
    batch_size: int = Field(default=10, ge=1, description="Items per batch")
    batch_timeout: Optional[float] = Field(
        default=None,
        ge=0,
        description="Batch timeout in ms; unset means errors only"
    )
    max_retries: int = Field(default=5, ge=1, description="Delivery attempts per batch")
    base_delay: float = Field(default=1000, gt=0, description="First retry delay in ms")
    max_delay: float = Field(default=30000, gt=0, description="Retry delay cap in ms")
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="HTTP timeout in seconds for delivery attempts"
    )

    # Durable buffer settings
    use_persistent_buffer: bool = Field(
        default=False,
        description="Persist failed batches across restarts"
    )
    buffer_db_path: str = Field(
        default="telemetry_relay_buffer.sqlite3",
        description="sqlite database file for the durable buffer"
    )
    buffer_table_name: str = Field(
        default="failed_items",
        description="Table holding failed batches"
    )
    buffer_schema_version: int = Field(default=1, ge=1, description="Buffer schema version")

    @field_validator('buffer_table_name')
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Validate the buffer table name is a plain SQL identifier."""
        if not v or not isinstance(v, str):
            raise ValueError("Table name must be a non-empty string")

        if not re.match(r'^[A-Za-z_][A-Za-z0-9_]*$', v):
            raise ValueError(
                "Table name must contain only letters, numbers, and underscores"
            )

        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    def delivery_options(self) -> Dict[str, Any]:
        """Return the delivery options these settings describe."""
        return {
            "endpoint": self.endpoint,
            "batch_size": self.batch_size,
            "batch_timeout": self.batch_timeout,
            "max_retries": self.max_retries,
            "base_delay": self.base_delay,
            "max_delay": self.max_delay,
            "timeout": self.request_timeout,
            "use_persistent_buffer": self.use_persistent_buffer,
        }


@lru_cache()
def get_settings() -> RelaySettings:
    return RelaySettings()
