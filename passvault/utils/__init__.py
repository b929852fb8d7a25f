"""
Utils module - Utility functions and helpers.

This module contains utility functions used throughout PassVault.
"""

from passvault.utils.paths import (
    get_app_data_dir,
    ensure_private_dir,
    write_private_text,
)
from passvault.utils.validators import (
    validate_path_safe,
    validate_string_safe,
)

__all__ = [
    "get_app_data_dir",
    "ensure_private_dir",
    "write_private_text",
    "validate_path_safe",
    "validate_string_safe",
]
