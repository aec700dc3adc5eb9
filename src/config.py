"""
Configuration module for hubsync.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_GATED_GROUP_VERSIONS = ["apps.open-cluster-management.io/v1"]


@dataclass
class DatabaseConfig:
    """PostgreSQL database configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "hubsync"
    user: str = "hubsync"
    password: str = field(default="", repr=False)  # Never log password
    min_pool_size: int = 2
    max_pool_size: int = 10

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        password = os.getenv("DB_PASSWORD", "")
        if not password:
            raise ValueError(
                "DB_PASSWORD environment variable must be set. "
                "Database password cannot be empty."
            )

        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "hubsync"),
            user=os.getenv("DB_USER", "hubsync"),
            password=password,
            min_pool_size=int(os.getenv("DB_MIN_POOL_SIZE", "2")),
            max_pool_size=int(os.getenv("DB_MAX_POOL_SIZE", "10")),
        )


@dataclass
class EngineConfig:
    """Reconciliation engine configuration."""

    readiness_requeue_after: int = 10  # seconds
    pass_timeout: float = 30.0  # seconds, deadline for a whole pass
    pull_secret_namespace: str = "cert-manager"
    gated_group_versions: List[str] = field(
        default_factory=lambda: list(DEFAULT_GATED_GROUP_VERSIONS)
    )
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        gated_str = os.getenv("GATED_GROUP_VERSIONS")
        gated = (
            [gv.strip() for gv in gated_str.split(",") if gv.strip()]
            if gated_str is not None
            else list(DEFAULT_GATED_GROUP_VERSIONS)
        )
        return cls(
            readiness_requeue_after=int(os.getenv("READINESS_REQUEUE_AFTER", "10")),
            pass_timeout=float(os.getenv("PASS_TIMEOUT", "30")),
            pull_secret_namespace=os.getenv("PULL_SECRET_NAMESPACE", "cert-manager"),
            gated_group_versions=gated,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class Config:
    """Main configuration object."""

    database: DatabaseConfig
    engine: EngineConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            database=DatabaseConfig.from_env(),
            engine=EngineConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            database=DatabaseConfig(),
            engine=EngineConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
