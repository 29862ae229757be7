"""Configuration management for synthkit.

Resolution order:
  1. Explicit environment variables
  2. Values from config/{env}.yml
  3. Defaults defined in the pydantic models
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent / "config"

_TRUTHY = ("1", "true", "yes")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    structured: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level


class SynthesisConfig(BaseModel):
    """Synthesis pass behaviour."""
    fail_on_warnings: bool = False


class AWSConfig(BaseModel):
    """Default environment for stacks that do not declare one."""
    account: Optional[str] = None
    region: Optional[str] = None


class AppConfig(BaseModel):
    environment: str = "dev"
    app_name: str = "synthkit"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    aws: AWSConfig = Field(default_factory=AWSConfig)


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def load_config(env: str = "dev", config_dir: Optional[str] = None) -> AppConfig:
    """Load configuration for the given environment.

    Raises:
        FileNotFoundError: If config/{env}.yml does not exist.
        pydantic.ValidationError: If the file content is invalid.
    """
    base = Path(config_dir or os.environ.get("SYNTHKIT_CONFIG_DIR") or DEFAULT_CONFIG_DIR)
    cfg_path = base / f"{env}.yml"
    if not cfg_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {cfg_path}")

    raw = _load_yaml(cfg_path)
    raw.setdefault("environment", env)
    return AppConfig(**_apply_env_overrides(raw))


def default_config() -> AppConfig:
    """Model defaults with environment variable overrides, without a config file."""
    return AppConfig(**_apply_env_overrides({}))


def _apply_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration data."""
    if os.getenv("SYNTHKIT_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = os.getenv("SYNTHKIT_LOG_LEVEL")

    strict = os.getenv("SYNTHKIT_STRICT")
    if strict:
        config_data.setdefault("synthesis", {})["fail_on_warnings"] = strict.lower() in _TRUTHY

    # same variables the CDK toolkit exports to apps
    if os.getenv("CDK_DEFAULT_ACCOUNT"):
        config_data.setdefault("aws", {})["account"] = os.getenv("CDK_DEFAULT_ACCOUNT")
    region = os.getenv("CDK_DEFAULT_REGION") or os.getenv("AWS_REGION")
    if region:
        config_data.setdefault("aws", {})["region"] = region

    return config_data


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure root logging from the ``logging`` section."""
    handler = logging.StreamHandler()
    if config.structured:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.level,
        handlers=[handler],
        force=True,
    )
