"""
PassVault Cryptographic Core
============================

Per-entry key derivation and authenticated field encryption.

Architecture:
    1. HKDF-SHA256: master secret + entry id -> 256-bit entry key
    2. AES-256-GCM: seals one secret field under the entry key

Security Properties:
    - All encryption is authenticated (AEAD)
    - Derived keys never touch disk
    - Secure RNG for all nonces and generated passwords
"""

from passvault.core.crypto.aes_gcm import FieldCipher
from passvault.core.crypto.kdf import KeyDeriver, derive_entry_key
from passvault.core.crypto.password_gen import generate_password

__all__ = [
    "FieldCipher",
    "KeyDeriver",
    "derive_entry_key",
    "generate_password",
]
