"""
Security module - Cryptographic constants and policy values.

Security Considerations:
- Use only approved cryptographic algorithms (AES-256-GCM, HKDF-SHA256)
- Follow fail-closed design principles
- No custom cryptography implementations
"""

from passvault.security.constants import (
    ENCRYPTION_ALGORITHM,
    KEY_DERIVATION_FUNCTION,
    KEY_LENGTH_BYTES,
    NONCE_LENGTH_BYTES,
    DEFAULT_PASSWORD_LENGTH,
    DEFAULT_SESSION_TTL_MINUTES,
)

__all__ = [
    "ENCRYPTION_ALGORITHM",
    "KEY_DERIVATION_FUNCTION",
    "KEY_LENGTH_BYTES",
    "NONCE_LENGTH_BYTES",
    "DEFAULT_PASSWORD_LENGTH",
    "DEFAULT_SESSION_TTL_MINUTES",
]
