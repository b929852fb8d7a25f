"""
PassVault Authentication Module
===============================

Provides the single time-limited vault session:
- Master-secret authentication (constant-time comparison)
- Persisted expiry with pluggable storage
- Fail-closed gating of vault operations
"""

from passvault.core.auth.session_control import (
    FileSessionStore,
    MemorySessionStore,
    SessionGuard,
    SessionState,
    SessionStatus,
    SessionStore,
)

__all__ = [
    "FileSessionStore",
    "MemorySessionStore",
    "SessionGuard",
    "SessionState",
    "SessionStatus",
    "SessionStore",
]
