"""
Vault Exceptions
================

Every failure the vault engine reports derives from VaultError, so the
command-line layer can turn any of them into a message and a non-zero
exit status. Cipher failures are the exception to "fail and stop": the
store recovers from them locally when reading.
"""

from __future__ import annotations

from typing import Optional


class VaultError(Exception):
    """Base exception for all vault errors."""
    pass


class MissingSecretError(VaultError):
    """Raised when no master secret is configured in the environment."""

    def __init__(self, env_var: str):
        self.env_var = env_var
        super().__init__(f"Master secret is not configured (set {env_var})")


class AuthenticationFailedError(VaultError):
    """Raised when the supplied secret does not match the master secret."""
    pass


class UnauthenticatedError(VaultError):
    """Raised when an operation is attempted without an active session."""
    pass


class SessionExpiredError(UnauthenticatedError):
    """Raised when the persisted session has passed its expiry."""
    pass


class NotFoundError(VaultError):
    """Raised when an entry targeted by id does not exist."""

    def __init__(self, kind: str, entry_id: str):
        self.kind = kind
        self.entry_id = entry_id
        super().__init__(f"{kind} id={entry_id} not found")


class CipherError(VaultError):
    """Base exception for field decryption errors."""
    pass


class MalformedCiphertextError(CipherError):
    """Raised when a stored blob cannot be a valid ciphertext."""
    pass


class DecryptFailureError(CipherError):
    """Raised when authentication of a ciphertext fails."""
    pass


class ImportRowInvalidError(VaultError):
    """Raised when an imported row lacks a required column."""

    def __init__(self, row_number: int, field: str, reason: Optional[str] = None):
        self.row_number = row_number
        self.field = field
        detail = reason or f"missing required field '{field}'"
        super().__init__(f"row {row_number}: {detail}")


class TransferFileError(VaultError):
    """Raised when an import or export file cannot be read or written."""

    def __init__(self, path: object, detail: str):
        self.path = path
        super().__init__(f"Cannot access {path}: {detail}")


class ValidationError(VaultError, ValueError):
    """Raised when input is rejected before touching the store."""
    pass
