"""
Secure Configuration Module
===========================

Provides immutable, environment-aware configuration with security-first defaults.

Security Features:
- Immutable configuration after initialization
- Environment variable override support
- The master secret is never part of the configuration object
- OS-aware path handling
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Any, Optional

from passvault.security.constants import (
    DEFAULT_PASSWORD_LENGTH,
    DEFAULT_SESSION_TTL_MINUTES,
    MIN_SESSION_TTL_MINUTES,
)
from passvault.utils.paths import (
    ensure_private_dir,
    get_app_data_dir,
    get_app_log_dir,
)


# Keys that are never read from environment overrides
_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({
    "password", "secret", "key", "token", "api_key",
    "private", "credential", "auth", "salt"
})

_VALID_LOG_LEVELS: Final[frozenset[str]] = frozenset({
    "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"
})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key might contain sensitive data."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class PathConfig:
    """Immutable path configuration with OS-aware defaults."""

    data_dir: Path = field(default_factory=get_app_data_dir)
    log_dir: Path = field(default_factory=get_app_log_dir)

    def __post_init__(self) -> None:
        """Validate paths after initialization."""
        for field_name in ("data_dir", "log_dir"):
            path = getattr(self, field_name)
            if not path.is_absolute():
                raise ValueError(f"{field_name} must be an absolute path: {path}")

    @property
    def database_path(self) -> Path:
        """SQLite file holding credential and passkey entries."""
        return self.data_dir / "vault.db"

    @property
    def session_path(self) -> Path:
        """File holding the single session expiry timestamp."""
        return self.data_dir / "session"


@dataclass(frozen=True, slots=True)
class SecurityConfig:
    """Immutable security configuration."""

    # Name of the environment variable holding the master secret
    secret_env_var: str = "AUTH_SECRET"
    default_session_ttl_minutes: int = DEFAULT_SESSION_TTL_MINUTES
    default_generate_length: int = DEFAULT_PASSWORD_LENGTH
    # None keeps the raw ciphertext visible when a field cannot be decrypted
    undecryptable_placeholder: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate security settings."""
        if not self.secret_env_var:
            raise ValueError("secret_env_var cannot be empty")
        if self.default_session_ttl_minutes < MIN_SESSION_TTL_MINUTES:
            raise ValueError(
                f"Session TTL must be at least {MIN_SESSION_TTL_MINUTES} minute(s)"
            )
        if self.default_generate_length < 1:
            raise ValueError("Default password length must be at least 1")

    def read_master_secret(self) -> Optional[str]:
        """Read the master secret from the environment, or None if unset/empty."""
        return os.environ.get(self.secret_env_var) or None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "WARNING"
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    enable_console: bool = True
    enable_file: bool = False
    enable_json: bool = False

    def __post_init__(self) -> None:
        """Validate logging settings."""
        if self.level.upper() not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level}")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Immutable application configuration."""

    app_name: str = "PassVault"
    version: str = "0.1.0"


class SecureConfig:
    """
    Centralized, immutable configuration loader with environment override support.

    This class provides a secure way to manage application configuration with:
    - Immutable configuration after initialization
    - Environment variable overrides (prefixed with PASSVAULT_)
    - Type-safe access to configuration values
    - OS-aware path defaults

    Usage:
        config = SecureConfig.load()
        db_path = config.paths.database_path
        ttl = config.security.default_session_ttl_minutes
    """

    __slots__ = ("_paths", "_security", "_logging", "_app", "_frozen", "_config_hash")

    _instance: Optional[SecureConfig] = None

    def __init__(
        self,
        paths: Optional[PathConfig] = None,
        security: Optional[SecurityConfig] = None,
        logging: Optional[LoggingConfig] = None,
        app: Optional[AppConfig] = None,
    ) -> None:
        """Initialize configuration. Use SecureConfig.load() for standard initialization."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_paths", paths or PathConfig())
        object.__setattr__(self, "_security", security or SecurityConfig())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_app", app or AppConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    def _compute_hash(self) -> str:
        """Compute a hash of the configuration for integrity checking."""
        config_str = f"{self._paths}|{self._security}|{self._logging}|{self._app}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def paths(self) -> PathConfig:
        return self._paths

    @property
    def security(self) -> SecurityConfig:
        return self._security

    @property
    def logging(self) -> LoggingConfig:
        return self._logging

    @property
    def app(self) -> AppConfig:
        return self._app

    @property
    def config_hash(self) -> str:
        return self._config_hash

    @classmethod
    def load(cls, env_prefix: str = "PASSVAULT") -> SecureConfig:
        """
        Load configuration with environment variable overrides.

        Environment variables should be prefixed with PASSVAULT_ and use
        double underscores for nested values.

        Examples:
            PASSVAULT_LOGGING__LEVEL=DEBUG
            PASSVAULT_SECURITY__DEFAULT_SESSION_TTL_MINUTES=30
            PASSVAULT_PATHS__DATA_DIR=/custom/path

        Args:
            env_prefix: Prefix for environment variables (default: PASSVAULT)

        Returns:
            Configured SecureConfig instance

        Raises:
            ValueError: If an override holds an invalid value
        """
        env_overrides = cls._parse_env_overrides(env_prefix)

        paths_kwargs: dict[str, Any] = {}
        if "paths.data_dir" in env_overrides:
            paths_kwargs["data_dir"] = Path(env_overrides["paths.data_dir"])
        if "paths.log_dir" in env_overrides:
            paths_kwargs["log_dir"] = Path(env_overrides["paths.log_dir"])

        security_kwargs: dict[str, Any] = {}
        if "security.default_session_ttl_minutes" in env_overrides:
            security_kwargs["default_session_ttl_minutes"] = int(
                env_overrides["security.default_session_ttl_minutes"]
            )
        if "security.default_generate_length" in env_overrides:
            security_kwargs["default_generate_length"] = int(
                env_overrides["security.default_generate_length"]
            )
        if "security.undecryptable_placeholder" in env_overrides:
            security_kwargs["undecryptable_placeholder"] = (
                env_overrides["security.undecryptable_placeholder"] or None
            )

        logging_kwargs: dict[str, Any] = {}
        if "logging.level" in env_overrides:
            logging_kwargs["level"] = env_overrides["logging.level"].upper()
        for flag in ("enable_console", "enable_file", "enable_json"):
            if f"logging.{flag}" in env_overrides:
                logging_kwargs[flag] = _parse_bool(env_overrides[f"logging.{flag}"])

        return cls(
            paths=PathConfig(**paths_kwargs) if paths_kwargs else None,
            security=SecurityConfig(**security_kwargs) if security_kwargs else None,
            logging=LoggingConfig(**logging_kwargs) if logging_kwargs else None,
        )

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # Convert PASSVAULT_SECTION__KEY to section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                # SECURITY: Skip sensitive keys from environment
                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    @classmethod
    def get_instance(cls) -> SecureConfig:
        """Get or create the singleton configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance. Use only for testing."""
        cls._instance = None

    def ensure_directories(self) -> None:
        """Create the data directory (and log directory when file logging is on)."""
        ensure_private_dir(self._paths.data_dir)
        if self._logging.enable_file:
            ensure_private_dir(self._paths.log_dir)

    def __repr__(self) -> str:
        """Safe string representation without sensitive data."""
        return f"SecureConfig(hash={self._config_hash}, app={self._app.app_name})"

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("SecureConfig is immutable after initialization")
        super().__setattr__(name, value)
