"""
PassVault - A Local Secrets Vault
=================================

Stores website credentials and WebAuthn passkey metadata, seals every
credential password under a key derived from the master secret and the
entry id, and gates all access behind a time-limited session.

Security Notice:
- No secrets are logged
- Fail-closed design pattern
- Confidentiality rests on one externally supplied master secret
"""

__version__ = "0.1.0"
__author__ = "PassVault Team"

from passvault.core.config import SecureConfig
from passvault.core.logging import get_secure_logger

__all__ = ["SecureConfig", "get_secure_logger", "__version__"]
