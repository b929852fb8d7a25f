"""
Session Control
================

Time-limited session gating for every vault read and write.

A session is a single persisted expiry timestamp ("authenticated until T").
There is exactly one session per vault; no tokens, no per-user sessions.

States:
    NO_SESSION  - no expiry persisted
    ACTIVE      - now < expiry
    EXPIRED     - now >= expiry

Security Features:
- Constant-time comparison of the supplied secret
- Fail-closed: unreadable session state counts as no session
- Persistence is an injected SessionStore, so tests never touch disk
"""

from __future__ import annotations

import hmac
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol

from passvault.core.exceptions import (
    AuthenticationFailedError,
    MissingSecretError,
    SessionExpiredError,
    UnauthenticatedError,
)
from passvault.security.constants import MIN_SESSION_TTL_MINUTES
from passvault.utils.paths import write_private_text

logger = logging.getLogger("passvault.session")


class SessionState(Enum):
    """Session lifecycle states."""
    NO_SESSION = "no_session"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class SessionStatus:
    """
    Result of a session check.

    Attributes:
        state: Current lifecycle state
        expiry: Absolute expiry (unix seconds), None without a session
        remaining: Seconds left while ACTIVE, otherwise 0
    """
    state: SessionState
    expiry: Optional[int] = None
    remaining: int = 0

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE


class SessionStore(Protocol):
    """Capability holding one optional expiry value."""

    def get(self) -> Optional[int]:
        ...

    def set(self, expiry: int) -> None:
        ...

    def clear(self) -> None:
        ...


class MemorySessionStore:
    """In-process SessionStore, used by tests and embedding callers."""

    __slots__ = ("_expiry",)

    def __init__(self, expiry: Optional[int] = None) -> None:
        self._expiry = expiry

    def get(self) -> Optional[int]:
        return self._expiry

    def set(self, expiry: int) -> None:
        self._expiry = expiry

    def clear(self) -> None:
        self._expiry = None


class FileSessionStore:
    """
    SessionStore persisted as a decimal integer in a single file.

    The file is replaced atomically and readable by the owner only.
    Anything other than one integer reads as "no session".
    """

    __slots__ = ("_path",)

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> Optional[int]:
        try:
            raw = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable session file %s (%s)", self._path, type(e).__name__)
            return None

        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring unreadable session file %s", self._path)
            return None

    def set(self, expiry: int) -> None:
        write_private_text(self._path, f"{int(expiry)}\n")

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


class SessionGuard:
    """
    Authenticates against the master secret and gates vault operations.

    Usage:
        guard = SessionGuard(FileSessionStore(path), expected_secret=secret)

        guard.authenticate(supplied, ttl_minutes=15)
        guard.require_active()      # before every vault operation
        guard.end_session()         # logout

    Notes:
        - TTL is clamped to at least one minute; there is no upper bound.
        - Concurrent processes are not coordinated: last writer wins.
    """

    __slots__ = ("_store", "_expected_secret", "_env_var", "_clock")

    def __init__(
        self,
        store: SessionStore,
        expected_secret: Optional[str],
        env_var: str = "AUTH_SECRET",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._expected_secret = expected_secret or None
        self._env_var = env_var
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def authenticate(self, supplied_secret: str, ttl_minutes: int) -> SessionStatus:
        """
        Start (or replace) the session if the supplied secret matches.

        Args:
            supplied_secret: Secret entered by the caller
            ttl_minutes: Session lifetime in minutes (clamped to >= 1)

        Returns:
            The new ACTIVE status

        Raises:
            MissingSecretError: If no master secret is configured
            AuthenticationFailedError: If the secret does not match;
                the persisted session is left untouched
        """
        if self._expected_secret is None:
            raise MissingSecretError(self._env_var)

        if not self.constant_time_compare(supplied_secret, self._expected_secret):
            logger.warning("Authentication failed")
            raise AuthenticationFailedError("Authentication failed: secret does not match")

        ttl = max(int(ttl_minutes), MIN_SESSION_TTL_MINUTES)
        now = self._now()
        expiry = now + ttl * 60
        self._store.set(expiry)

        logger.info("Session started for %d minute(s)", ttl)
        return SessionStatus(SessionState.ACTIVE, expiry, expiry - now)

    def check(self) -> SessionStatus:
        """Read the persisted expiry and classify it."""
        expiry = self._store.get()
        if expiry is None:
            return SessionStatus(SessionState.NO_SESSION)

        now = self._now()
        if now >= expiry:
            return SessionStatus(SessionState.EXPIRED, expiry)

        return SessionStatus(SessionState.ACTIVE, expiry, expiry - now)

    def require_active(self) -> SessionStatus:
        """
        Fail closed unless a session is active.

        Raises:
            UnauthenticatedError: If no session exists
            SessionExpiredError: If the session has expired
        """
        status = self.check()

        if status.state is SessionState.NO_SESSION:
            raise UnauthenticatedError("Not authenticated; run 'auth' first")
        if status.state is SessionState.EXPIRED:
            raise SessionExpiredError("Session expired; run 'auth' again")

        return status

    def end_session(self) -> None:
        """Delete the persisted expiry. Idempotent."""
        self._store.clear()
        logger.info("Session ended")

    @staticmethod
    def constant_time_compare(a: str, b: str) -> bool:
        """Constant-time string comparison to prevent timing attacks."""
        return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
