"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DeploymentConfig:
    """Target deployment scope of the composed stack."""

    stack_name: str = ""
    region: str = ""
    account: str = ""


@dataclass
class ResolverConfig:
    """Remote reference resolver configuration."""

    timeout_seconds: int = 10
    max_retries: int = 0
    backoff_seconds: float = 0.5
    concurrency: int = 8
    role_arn_template: str = ""
    with_decryption: bool = True


@dataclass
class PublisherConfig:
    """Config artifact publisher configuration."""

    url: str = ""
    path: str = ""
    timeout_seconds: float = 10.0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class MetricsConfig:
    """Prometheus textfile export; empty path disables it."""

    textfile: str = ""


@dataclass
class ComposerConfig:
    """Top-level stackcomposer configuration."""

    deployment: DeploymentConfig = field(default_factory=DeploymentConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    publisher: PublisherConfig = field(default_factory=PublisherConfig)
    log: LogConfig = field(default_factory=LogConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
