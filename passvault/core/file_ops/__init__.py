"""
PassVault File Operations Module
================================

CSV export and import of vault entries.

Security Features:
- Exports are created owner-only (they hold plaintext passwords)
- Imports re-seal every password under a fresh entry key
- Whole file validated before anything is written
"""

from passvault.core.file_ops.csv_transfer import (
    CREDENTIAL_COLUMNS,
    PASSKEY_COLUMNS,
    export_credentials,
    export_passkeys,
    import_credentials,
    import_passkeys,
)

__all__ = [
    "CREDENTIAL_COLUMNS",
    "PASSKEY_COLUMNS",
    "export_credentials",
    "export_passkeys",
    "import_credentials",
    "import_passkeys",
]
