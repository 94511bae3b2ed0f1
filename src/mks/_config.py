"""Configuration management for the MKS reconciler.

Supports:
- Environment variables (MORPHEUS_API_URL, MORPHEUS_API_TOKEN, etc.)
- Config file (~/.mks/config.toml)
- Programmatic configuration
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_RETRIES = 3

CONFIG_DIR = Path.home() / ".mks"
CONFIG_FILE = CONFIG_DIR / "config.toml"

MINUTE = 60.0
HOUR = 60 * MINUTE


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AuthConfig:
    """Authentication configuration from config file."""

    access_token: str | None = field(default=None, repr=False)
    username: str | None = None
    password: str | None = field(default=None, repr=False)


@dataclass
class MksConfig:
    """Client and reconciler configuration."""

    base_url: str | None = None
    access_token: str | None = field(default=None, repr=False)
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    verify_ssl: bool = True
    debug: bool = False

    # Read once at startup and handed to ClusterReconciler via ReconcilerConfig
    force_delete: bool = False

    # Auth configuration (from [auth] section)
    auth: AuthConfig = field(default_factory=AuthConfig)

    @classmethod
    def from_env(cls) -> MksConfig:
        """Load configuration from environment variables."""
        return cls(
            base_url=os.getenv("MORPHEUS_API_URL"),
            access_token=os.getenv("MORPHEUS_API_TOKEN"),
            timeout=float(os.getenv("MORPHEUS_TIMEOUT", DEFAULT_TIMEOUT)),
            max_retries=int(os.getenv("MORPHEUS_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
            verify_ssl=_env_bool("MORPHEUS_VERIFY_SSL", True),
            debug=_env_bool("MORPHEUS_DEBUG", False),
            force_delete=_env_bool("MORPHEUS_FORCE_DELETE", False),
            auth=AuthConfig(
                username=os.getenv("MORPHEUS_API_USERNAME"),
                password=os.getenv("MORPHEUS_API_PASSWORD"),
            ),
        )

    @classmethod
    def from_file(cls, path: Path | None = None) -> MksConfig:
        """Load configuration from TOML file."""
        config_path = path or CONFIG_FILE

        if not config_path.exists():
            return cls()

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        auth_data = data.get("auth", {})
        auth_config = AuthConfig(
            access_token=auth_data.get("access_token"),
            username=auth_data.get("username"),
            password=auth_data.get("password"),
        )

        return cls(
            base_url=data.get("api_url"),
            access_token=data.get("access_token"),
            timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
            max_retries=int(data.get("max_retries", DEFAULT_MAX_RETRIES)),
            verify_ssl=data.get("verify_ssl", True),
            debug=data.get("debug", False),
            force_delete=data.get("force_delete", False),
            auth=auth_config,
        )

    @classmethod
    def load(cls, path: Path | None = None) -> MksConfig:
        """Load configuration with precedence: env > file > defaults."""
        config = cls.from_file(path)
        env_config = cls.from_env()

        if env_config.base_url:
            config.base_url = env_config.base_url
        if env_config.access_token:
            config.access_token = env_config.access_token
        if os.getenv("MORPHEUS_TIMEOUT"):
            config.timeout = env_config.timeout
        if os.getenv("MORPHEUS_MAX_RETRIES"):
            config.max_retries = env_config.max_retries
        if os.getenv("MORPHEUS_VERIFY_SSL"):
            config.verify_ssl = env_config.verify_ssl
        if os.getenv("MORPHEUS_DEBUG"):
            config.debug = env_config.debug
        if os.getenv("MORPHEUS_FORCE_DELETE"):
            config.force_delete = env_config.force_delete
        if env_config.auth.username and env_config.auth.password:
            config.auth.username = env_config.auth.username
            config.auth.password = env_config.auth.password

        return config


@dataclass(frozen=True)
class PollSchedule:
    """Timing for one convergence loop, in seconds."""

    timeout: float
    min_timeout: float
    delay: float
    poll_interval: float


@dataclass(frozen=True)
class OperationTimeouts:
    """Ceilings for whole lifecycle operations, in seconds."""

    create: float = 45 * MINUTE
    read: float = 5 * MINUTE
    update: float = 45 * MINUTE
    delete: float = 45 * MINUTE


@dataclass(frozen=True)
class ReconcilerConfig:
    """Settings threaded into ClusterReconciler."""

    force_delete: bool = False
    timeouts: OperationTimeouts = field(default_factory=OperationTimeouts)
    cluster_create: PollSchedule = PollSchedule(
        timeout=3 * HOUR, min_timeout=MINUTE, delay=3 * MINUTE, poll_interval=MINUTE
    )
    worker_add: PollSchedule = PollSchedule(
        timeout=30 * MINUTE, min_timeout=MINUTE, delay=MINUTE, poll_interval=10.0
    )
    worker_delete: PollSchedule = PollSchedule(
        timeout=30 * MINUTE, min_timeout=MINUTE, delay=MINUTE, poll_interval=10.0
    )
    cluster_delete: PollSchedule = PollSchedule(
        timeout=30 * MINUTE, min_timeout=MINUTE, delay=MINUTE, poll_interval=30.0
    )
    # Wait applied before a failed cluster status is reclassified to ok
    failed_status_grace: float = 3 * MINUTE

    @classmethod
    def from_config(cls, config: MksConfig) -> ReconcilerConfig:
        return cls(force_delete=config.force_delete)
