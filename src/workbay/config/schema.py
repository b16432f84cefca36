"""
Configuration schema for Workbay.

Settings come from WORKBAY_* environment variables (nested with "__") and an
optional .env file, e.g. WORKBAY_EXECUTION__MAX_CONCURRENT=8.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ==============================================================================
# NESTED CONFIG MODELS (use BaseModel, not BaseSettings)
# ==============================================================================


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=3000, gt=0, lt=65536)
    api_key: str = ""  # Empty disables bearer auth
    workspace_path: Path = Path("/workspace")


class ExecutionConfig(BaseModel):
    """Command execution limits."""

    shell: str = "bash"
    max_concurrent: int = Field(default=5, gt=0)
    default_timeout_seconds: float = Field(default=120.0, gt=0)
    output_cap_bytes: int = Field(default=1024 * 1024, gt=0)  # 1 MiB
    output_keep_bytes: int = Field(default=512 * 1024, gt=0)  # 512 KiB
    reap_interval_seconds: float = Field(default=60.0, gt=0)
    retention_seconds: float = Field(default=3600.0, ge=0)  # 1 hour
    kill_grace_seconds: float = Field(default=2.0, ge=0)
    drain_timeout_seconds: float = Field(default=1.0, ge=0)

    @model_validator(mode="after")
    def _check_output_limits(self) -> "ExecutionConfig":
        if self.output_keep_bytes >= self.output_cap_bytes:
            raise ValueError("output_keep_bytes must be smaller than output_cap_bytes")
        return self


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


# ==============================================================================
# MAIN SETTINGS CLASS
# ==============================================================================


class WorkbaySettings(BaseSettings):
    """
    Unified Workbay configuration.

    Configuration precedence (highest to lowest):
    1. Explicit init arguments
    2. Environment variables (WORKBAY_*)
    3. .env file
    4. Field defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKBAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


_settings: WorkbaySettings | None = None


def get_settings() -> WorkbaySettings:
    """
    Get global settings instance.

    Returns:
        Global WorkbaySettings
    """
    global _settings

    if _settings is None:
        _settings = WorkbaySettings()

    return _settings
