"""Configuration management using TOML."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from filestore.keys import DEFAULT_NAMESPACE

DEFAULT_CONFIG_PATH = "filestore.toml"


@dataclass
class StorageConfig:
    """Configuration of the object storage holding the files."""

    type: Literal["s3", "local"] = "s3"
    bucket: str | None = None

    # S3-specific fields
    endpoint: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str | None = None
    max_retries: int = 5
    timeout_seconds: int = 300
    check_bucket: bool = False

    # Local-specific fields
    base_path: str | None = None

    def validate(self) -> None:
        """Validate storage configuration."""
        if self.type not in ("s3", "local"):
            raise ValueError(f"Unknown storage type '{self.type}', expected 's3' or 'local'")
        if not self.bucket:
            raise ValueError("Storage configuration missing required field: bucket")
        if self.type == "s3":
            if not all([self.endpoint, self.access_key, self.secret_key]):
                raise ValueError(
                    "S3 storage missing required fields: endpoint, access_key, secret_key"
                )
        elif not self.base_path:
            raise ValueError("Local storage missing required field: base_path")


@dataclass
class KeysConfig:
    """Storage key layout."""

    namespace: str = DEFAULT_NAMESPACE


@dataclass
class Config:
    """Complete configuration."""

    storage: StorageConfig
    keys: KeysConfig = field(default_factory=KeysConfig)

    @classmethod
    def from_file(cls, config_path: str | Path = DEFAULT_CONFIG_PATH) -> "Config":
        """Load configuration from TOML file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Copy filestore.toml.example to {DEFAULT_CONFIG_PATH} and edit it."
            )

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        storage_data = data.get("storage", {})
        storage_config = StorageConfig(
            type=storage_data.get("type", "s3"),
            bucket=storage_data.get("bucket"),
            endpoint=storage_data.get("endpoint"),
            access_key=storage_data.get("access_key"),
            secret_key=storage_data.get("secret_key"),
            region=storage_data.get("region"),
            max_retries=storage_data.get("max_retries", 5),
            timeout_seconds=storage_data.get("timeout_seconds", 300),
            check_bucket=storage_data.get("check_bucket", False),
            base_path=storage_data.get("base_path"),
        )

        keys_data = data.get("keys", {})
        keys_config = KeysConfig(namespace=keys_data.get("namespace", DEFAULT_NAMESPACE))

        return cls(storage=storage_config, keys=keys_config)

    def validate(self) -> None:
        """Validate the whole configuration."""
        self.storage.validate()
