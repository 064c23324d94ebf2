"""Configuration management for the mention inbox."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: Optional[str] = Field(
        default=None, description="SQLAlchemy async URL; overrides path when set"
    )
    path: str = Field(
        default="~/.mention-inbox/mentions.db", description="Path to SQLite database file"
    )
    echo: bool = False


class PubsubConfig(BaseModel):
    """Notification fan-out settings."""

    queue_size: int = Field(default=100, ge=1, description="Events buffered per subscriber")


class LoaderConfig(BaseModel):
    """Batch loader settings."""

    max_batch_size: Optional[int] = Field(
        default=None, ge=1, description="Split coalesced loads larger than this"
    )


class Config(BaseModel):
    """Root configuration model."""

    database: DatabaseConfig = DatabaseConfig()
    pubsub: PubsubConfig = PubsubConfig()
    loader: LoaderConfig = LoaderConfig()


def _expand_env_vars(obj):
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        env_var = obj[2:-1]
        value = os.getenv(env_var)
        if value is None:
            raise ValueError(f"Environment variable '{env_var}' is not set")
        return value
    return obj


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    return Config(**_expand_env_vars(raw_config))
