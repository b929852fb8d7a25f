"""
Validation Utilities
====================

Input validation functions with security focus.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from passvault.core.exceptions import ValidationError


def validate_path_safe(
    path: str | Path,
    must_exist: bool = False,
    allow_symlinks: bool = False,
) -> Path:
    """
    Validate a file path supplied for import or export.

    Args:
        path: The path to validate
        must_exist: If True, path must exist and be a regular file
        allow_symlinks: If False, symlinks are rejected

    Returns:
        Validated, resolved Path object

    Raises:
        ValidationError: If validation fails
    """
    raw = str(path)
    if not raw or "\x00" in raw:
        raise ValidationError("Invalid path")

    candidate = Path(raw).expanduser()

    # Check symlinks before resolving them away
    if not allow_symlinks and candidate.is_symlink():
        raise ValidationError("Symlinks are not allowed")

    try:
        validated_path = candidate.resolve()
    except (OSError, RuntimeError) as e:
        raise ValidationError(f"Invalid path: {e}") from e

    if must_exist:
        if not validated_path.exists():
            raise ValidationError(f"Path does not exist: {validated_path}")
        if not validated_path.is_file():
            raise ValidationError(f"Not a regular file: {validated_path}")
    elif validated_path.is_dir():
        raise ValidationError(f"Path is a directory: {validated_path}")

    return validated_path


def validate_string_safe(
    value: Optional[str],
    max_length: int = 4096,
    allow_empty: bool = False,
    field_name: str = "value",
) -> str:
    """
    Validate a string value for safety.

    Args:
        value: The string to validate
        max_length: Maximum allowed length
        allow_empty: If False, empty strings are rejected
        field_name: Name of the field for error messages

    Returns:
        Validated string

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")

    if not allow_empty and not value:
        raise ValidationError(f"{field_name} cannot be empty")

    if len(value) > max_length:
        raise ValidationError(
            f"{field_name} must be at most {max_length} characters"
        )

    # Null bytes truncate values in some consumers
    if "\x00" in value:
        raise ValidationError(f"{field_name} contains invalid characters")

    return value


def validate_optional_string(
    value: Optional[str],
    max_length: int = 4096,
    field_name: str = "value",
) -> Optional[str]:
    """Validate an optional metadata string; None passes through."""
    if value is None:
        return None
    return validate_string_safe(
        value, max_length=max_length, allow_empty=True, field_name=field_name
    )


def validate_non_negative(value: int, field_name: str = "value") -> int:
    """Validate a non-negative integer counter."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer")
    if value < 0:
        raise ValidationError(f"{field_name} must be non-negative")
    return value
