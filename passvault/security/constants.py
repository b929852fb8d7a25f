"""
Security Constants
==================

Defines the cryptographic and policy constants of the vault engine.
Changing any of the key-derivation or cipher values makes every
existing ciphertext unreadable, so they must stay fixed for the
lifetime of a vault.
"""

from typing import Final

# Field encryption
ENCRYPTION_ALGORITHM: Final[str] = "AES-256-GCM"
KEY_LENGTH_BYTES: Final[int] = 32  # 256 bits
NONCE_LENGTH_BYTES: Final[int] = 12  # 96 bits for GCM

# Key derivation
KEY_DERIVATION_FUNCTION: Final[str] = "HKDF-SHA256"
# Domain-separation label; keys derived for other purposes from the same
# master secret can never collide with credential keys.
KDF_INFO_LABEL: Final[bytes] = b"passvault/credential-password/v1"

# Session policy
MIN_SESSION_TTL_MINUTES: Final[int] = 1
DEFAULT_SESSION_TTL_MINUTES: Final[int] = 15

# Password generation
DEFAULT_PASSWORD_LENGTH: Final[int] = 16
UPPERCASE_CHARS: Final[str] = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE_CHARS: Final[str] = "abcdefghijklmnopqrstuvwxyz"
DIGIT_CHARS: Final[str] = "0123456789"
# No space, backslash or quotes: generated passwords must survive shells and CSV.
SYMBOL_CHARS: Final[str] = "!@#$%^&*()-_=+[]{};:,.?/"
