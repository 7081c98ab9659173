"""Configuration management for the merge gate service."""

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    path: str = Field(
        default="~/.mergegate/mergegate.db", description="Path to SQLite database file"
    )
    url: Optional[str] = Field(
        default=None, description="Full SQLAlchemy async URL; takes precedence over path"
    )


class LLMConfig(BaseModel):
    """LLM provider settings."""

    provider: Literal["anthropic", "openai"] = "anthropic"
    api_key: SecretStr = Field(..., description="API key for LLM provider")
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = Field(default=4096, ge=1, le=16384)
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)


class MergeGateConfig(BaseModel):
    """Review ingestion and merge status recomputation settings."""

    analysis_timeout_seconds: float = Field(default=120.0, gt=0)
    recompute_max_retries: int = Field(default=3, ge=1, le=10)
    recompute_retry_delay: float = Field(default=0.5, ge=0.0, description="Initial backoff in seconds")


class Config(BaseModel):
    """Root configuration model."""

    database: DatabaseConfig = DatabaseConfig()
    llm: Optional[LLMConfig] = None
    server: ServerConfig = ServerConfig()
    merge_gate: MergeGateConfig = MergeGateConfig()


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

    # Expand environment variables in the format ${VAR_NAME}
    def expand_env_vars(obj):
        if isinstance(obj, dict):
            return {k: expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env_vars(item) for item in obj]
        elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            value = os.getenv(env_var)
            if value is None:
                raise ValueError(f"Environment variable '{env_var}' is not set")
            return value
        return obj

    raw_config = expand_env_vars(raw_config)

    return Config(**raw_config)
