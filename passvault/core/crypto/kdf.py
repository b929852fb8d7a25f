"""
Key Derivation
==============

Per-entry key derivation for field encryption.

Every credential is encrypted under its own key:

    key = HKDF-SHA256(ikm=master_secret, salt=entry_id, info=KDF_INFO_LABEL)

There is no stored per-entry salt; the entry id is the salt. An entry id
must therefore never change or be reused, and a ciphertext is only
readable under the id it was sealed for.
"""

from __future__ import annotations

from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from passvault.core.exceptions import MissingSecretError, ValidationError
from passvault.security.constants import (
    KDF_INFO_LABEL,
    KEY_DERIVATION_FUNCTION,
    KEY_LENGTH_BYTES,
)


def expand_key_hkdf(
    key_material: bytes,
    length: int,
    info: bytes = b"",
    salt: bytes | None = None,
) -> bytes:
    """
    Expand key material using HKDF.

    Args:
        key_material: Input key material
        length: Output length
        info: Context/application info
        salt: Optional salt

    Returns:
        Expanded key bytes
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info,
    )
    return hkdf.derive(key_material)


class KeyDeriver:
    """
    Derives deterministic 256-bit entry keys from the master secret.

    Usage:
        deriver = KeyDeriver(config.security.read_master_secret(), "AUTH_SECRET")
        key = deriver.derive(entry.id)

    The master secret may be absent at construction; derive() then fails
    with MissingSecretError, so read-only paths that never decrypt still work.
    """

    __slots__ = ("_master_secret", "_env_var")

    def __init__(self, master_secret: Optional[str], env_var: str = "AUTH_SECRET") -> None:
        self._master_secret = master_secret.encode("utf-8") if master_secret else None
        self._env_var = env_var

    @property
    def has_secret(self) -> bool:
        return self._master_secret is not None

    def derive(self, entry_id: str) -> bytes:
        """
        Derive the key for one entry.

        Args:
            entry_id: The entry's immutable identifier

        Returns:
            32-byte key

        Raises:
            MissingSecretError: If no master secret is configured
            ValidationError: If entry_id is empty
        """
        if self._master_secret is None:
            raise MissingSecretError(self._env_var)
        if not entry_id:
            raise ValidationError("entry id is required for key derivation")

        return expand_key_hkdf(
            self._master_secret,
            length=KEY_LENGTH_BYTES,
            info=KDF_INFO_LABEL,
            salt=entry_id.encode("utf-8"),
        )

    def __repr__(self) -> str:
        """Safe representation without key material."""
        return f"KeyDeriver(kdf={KEY_DERIVATION_FUNCTION!r}, configured={self.has_secret})"


def derive_entry_key(master_secret: str, entry_id: str) -> bytes:
    """Convenience wrapper: derive one entry key from a master secret."""
    return KeyDeriver(master_secret).derive(entry_id)
