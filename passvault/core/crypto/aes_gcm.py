"""
AES-256-GCM Field Encryption
============================

Seals single secret fields (credential passwords) under a derived entry key.

Storage format:
    base64( nonce (12 bytes) || ciphertext || tag (16 bytes) )

Security Properties:
    - 256-bit key (derived per entry, see kdf.py)
    - 96-bit random nonce for every seal, never derived from content
    - 128-bit authentication tag; tampering or a wrong key fails closed

WARNING:
    - Never reuse (key, nonce) pairs
    - Never return plaintext from a blob whose tag did not verify
"""

from __future__ import annotations

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from passvault.core.exceptions import DecryptFailureError, MalformedCiphertextError
from passvault.security.constants import (
    ENCRYPTION_ALGORITHM,
    KEY_LENGTH_BYTES,
    NONCE_LENGTH_BYTES,
)


class FieldCipher:
    """
    AES-256-GCM authenticated encryption of one text field.

    Usage:
        cipher = FieldCipher()
        blob = cipher.seal(key, "hunter2")
        plaintext = cipher.open(key, blob)

    Sealing the same plaintext twice yields different blobs, because
    each call draws a fresh nonce.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return f"FieldCipher(algorithm={ENCRYPTION_ALGORITHM!r})"

    @staticmethod
    def generate_nonce() -> bytes:
        """
        Generate a cryptographically secure random nonce.

        Security:
            96-bit nonces with random generation have negligible collision
            probability for up to 2^32 encryptions under the same key.
        """
        return secrets.token_bytes(NONCE_LENGTH_BYTES)

    @staticmethod
    def _check_key(key: bytes) -> None:
        if len(key) != KEY_LENGTH_BYTES:
            raise ValueError(f"Key must be exactly {KEY_LENGTH_BYTES} bytes")

    def seal(self, key: bytes, plaintext: str) -> str:
        """
        Encrypt a text field.

        Args:
            key: 32-byte entry key
            plaintext: Field value (may be empty)

        Returns:
            base64 text of nonce || ciphertext || tag
        """
        self._check_key(key)
        nonce = self.generate_nonce()
        ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def open(self, key: bytes, blob: str) -> str:
        """
        Decrypt a text field sealed by seal().

        Args:
            key: 32-byte entry key
            blob: Stored base64 text

        Returns:
            Decrypted plaintext

        Raises:
            MalformedCiphertextError: If the blob is not base64 or shorter than a nonce
            DecryptFailureError: If authentication fails (wrong key, wrong entry
                id, changed master secret, or corrupted data)
        """
        self._check_key(key)

        try:
            raw = base64.b64decode(blob.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise MalformedCiphertextError("Ciphertext is not valid base64") from e

        if len(raw) < NONCE_LENGTH_BYTES:
            raise MalformedCiphertextError("Ciphertext shorter than nonce")

        nonce, ciphertext = raw[:NONCE_LENGTH_BYTES], raw[NONCE_LENGTH_BYTES:]

        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecryptFailureError("Ciphertext failed authentication") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptFailureError("Decrypted field is not valid UTF-8") from e
