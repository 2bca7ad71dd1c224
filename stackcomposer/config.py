"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from stackcomposer.models.config import (
    ComposerConfig,
    DeploymentConfig,
    LogConfig,
    MetricsConfig,
    PublisherConfig,
    ResolverConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"STACKCOMPOSER_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


def _validate_role_template(value: str) -> str:
    if value and "{account}" not in value:
        raise ValueError(f"Role ARN template must contain '{{account}}': {value}")
    return value


def _validate_publish_url(value: str) -> str:
    if value and not re.match(r"^https?://", value):
        raise ValueError(f"Publish URL must be http(s): {value}")
    return value


def load_config() -> ComposerConfig:
    """Load configuration from STACKCOMPOSER_* environment variables."""
    return ComposerConfig(
        deployment=DeploymentConfig(
            stack_name=_env("STACK_NAME", ""),
            region=_env("REGION", ""),
            account=_env("ACCOUNT", ""),
        ),
        resolver=ResolverConfig(
            timeout_seconds=_env_int("RESOLVER_TIMEOUT", 10, min_val=1, max_val=60),
            max_retries=_env_int("RESOLVER_MAX_RETRIES", 0, min_val=0, max_val=5),
            backoff_seconds=_env_float("RESOLVER_BACKOFF", 0.5, min_val=0.0),
            concurrency=_env_int("RESOLVER_CONCURRENCY", 8, min_val=1, max_val=64),
            role_arn_template=_validate_role_template(_env("RESOLVER_ROLE_ARN_TEMPLATE", "")),
            with_decryption=_env_bool("RESOLVER_WITH_DECRYPTION", True),
        ),
        publisher=PublisherConfig(
            url=_validate_publish_url(_env("PUBLISH_URL", "")),
            path=_env("PUBLISH_PATH", ""),
            timeout_seconds=_env_float("PUBLISH_TIMEOUT", 10.0, min_val=0.1),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
        metrics=MetricsConfig(textfile=_env("METRICS_FILE", "")),
    )
