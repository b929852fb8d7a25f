"""
Database module - Entry records and their SQLite persistence.

Security Considerations:
- Credential passwords are sealed per entry before they reach the database
- Queries are parameterized
- Passkey records hold public material only
"""

from passvault.db.models import (
    CredentialEntry,
    CredentialPatch,
    PasskeyEntry,
    apply_patch,
)
from passvault.db.vault_store import VaultStore

__all__ = [
    "CredentialEntry",
    "CredentialPatch",
    "PasskeyEntry",
    "apply_patch",
    "VaultStore",
]
