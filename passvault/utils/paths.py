"""
Path Utilities
==============

OS-aware path handling utilities with security considerations.
"""

from __future__ import annotations

import os
import platform
import tempfile
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "PassVault"
OWNER_ONLY_FILE: Final[int] = 0o600
OWNER_ONLY_DIR: Final[int] = 0o700


def _is_windows() -> bool:
    return platform.system().lower() == "windows"


def get_app_data_dir(app_name: str = APP_DIR_NAME) -> Path:
    """
    Get the OS-appropriate application data directory.

    Args:
        app_name: Name of the application

    Returns:
        Path to application data directory
    """
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif system == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / app_name


def get_app_log_dir(app_name: str = APP_DIR_NAME) -> Path:
    """Get the OS-appropriate log directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / app_name / "Logs"
    elif system == "darwin":
        return Path.home() / "Library" / "Logs" / app_name
    else:
        return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / app_name / "logs"


def ensure_private_dir(directory: Path) -> Path:
    """Create a directory (and parents) readable by the owner only."""
    directory.mkdir(parents=True, exist_ok=True)

    # On Windows, permissions work differently
    if not _is_windows():
        directory.chmod(OWNER_ONLY_DIR)

    return directory


def write_private_text(path: Path, text: str) -> None:
    """
    Atomically replace a small text file, readable by the owner only.

    The content is written to a temporary sibling and moved into place,
    so readers never observe a half-written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        if not _is_windows():
            os.chmod(tmp_name, OWNER_ONLY_FILE)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def open_private_for_write(path: Path, newline: str = ""):
    """
    Open a file for text writing, created with owner-only permissions.

    Used for exports, which contain plaintext secrets.
    """
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
    fd = os.open(path, flags, OWNER_ONLY_FILE)
    if not _is_windows():
        os.chmod(path, OWNER_ONLY_FILE)
    return os.fdopen(fd, "w", encoding="utf-8", newline=newline)
