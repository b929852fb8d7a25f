"""
Core module - Contains configuration, logging, and errors.
"""

from passvault.core.config import SecureConfig
from passvault.core.exceptions import VaultError
from passvault.core.logging import get_secure_logger, configure_logging, SecureLogFilter

__all__ = [
    "SecureConfig",
    "VaultError",
    "get_secure_logger",
    "configure_logging",
    "SecureLogFilter",
]
