"""Settings for localmesh.

All values can be overridden from the environment (LOCALMESH_VERSION=v1.24.0)
or from a .env file in the working directory.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from localmesh.protocols import LoggerProtocol


class Settings(BaseSettings):
    """Local setup configuration."""

    # =========================================================================
    # IMAGES
    # =========================================================================
    registry: str = "gcr.io/triggermesh"
    version: str = "latest"

    # =========================================================================
    # LOCAL STATE
    # =========================================================================
    config_base: Path = Path("~/.localmesh")
    context: str = "local"
    broker_name: str = "local"

    # =========================================================================
    # ADAPTERS
    # =========================================================================
    # Port every adapter image listens on inside its container
    adapter_port: int = Field(default=8080, ge=1, le=65535)
    # Address other containers use to reach published host ports
    adapter_host: str = "host.docker.internal"
    # Address the readiness probe connects to
    probe_host: str = "127.0.0.1"

    # =========================================================================
    # READINESS PROBE
    # =========================================================================
    connect_retries: int = Field(default=10, ge=1, le=100)
    connect_retry_delay: float = Field(default=1.0, ge=0.0, le=60.0)

    # =========================================================================
    # RUNTIME
    # =========================================================================
    docker_binary: str = "docker"
    runtime_concurrency: int = Field(default=8, ge=1, le=64)

    # =========================================================================
    # LOGGING
    # =========================================================================
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_prefix="LOCALMESH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def context_dir(self) -> Path:
        return self.config_base.expanduser() / self.context

    @property
    def manifest_path(self) -> Path:
        return self.context_dir / "manifest.yaml"

    @property
    def broker_config_path(self) -> Path:
        return self.context_dir / "broker.conf"

    def log_status(self, logger: "LoggerProtocol") -> None:
        logger.debug(
            "settings_loaded",
            registry=self.registry,
            version=self.version,
            context=self.context,
            connect_retries=self.connect_retries,
            connect_retry_delay=self.connect_retry_delay,
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


__all__ = ["Settings", "get_settings"]
