"""Configuration management for the collector agent."""

import socket
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CollectorSettings(BaseModel):
    """Configuration for a single collector."""

    name: str
    enabled: bool = True
    settings: dict[str, Any] = Field(default_factory=dict)


class CollectorConfig(BaseSettings):
    """Main collector configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ZONEINFO_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    # Identity attached to shipped batches
    instance_id: str = Field(default_factory=socket.gethostname)

    # Data source
    procfs_path: Path = Path("/proc")
    namespace: str = "node"

    # "streaming" delivers measurements as parsed, "buffered" only after
    # a successful pass
    emission: str = "streaming"

    # Collection
    poll_interval: int = 15  # seconds
    collectors: list[CollectorSettings] = Field(default_factory=list)

    # Server connection (push mode)
    server_url: str | None = None
    api_key: SecretStr | None = None

    # Transport settings
    batch_size: int = 100
    flush_interval: int = 10
    compression: str = "lz4"
    buffer_db_path: Path = Path("./collector_buffer.db")

    # Exposition settings (pull mode)
    listen_address: str = "0.0.0.0"
    listen_port: int = 9100

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("emission")
    @classmethod
    def validate_emission(cls, v: str) -> str:
        if v not in ("streaming", "buffered"):
            raise ValueError("emission must be streaming or buffered")
        return v

    @field_validator("compression")
    @classmethod
    def validate_compression(cls, v: str) -> str:
        if v not in ("none", "gzip", "lz4"):
            raise ValueError("compression must be none, gzip, or lz4")
        return v

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("poll_interval must be positive")
        return v

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str | None) -> str | None:
        """Validate server URL format."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        return v.rstrip("/")

    @property
    def push_enabled(self) -> bool:
        """Whether measurements are shipped to a server."""
        return self.server_url is not None

    @classmethod
    def from_file(cls, config_path: Path) -> "CollectorConfig":
        """Load configuration from a YAML or JSON file."""
        import json

        import yaml

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        content = config_path.read_text()

        if config_path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        else:
            data = json.loads(content)

        return cls(**data)
