"""
Vault Store
===========

Credential and passkey entries in SQLite, with the credential password
sealed under a key derived from the entry's own id.

Rules:
- Every operation except password generation requires an active session.
- add_credential upserts by url: the most recent entry for the url is
  overwritten (username/password) and merged (title/note).
- update_credential touches only the supplied fields and re-seals the
  password under the same id-derived key.
- delete_credential never fails for an unknown id; delete_passkey does.
- A password that cannot be decrypted is shown as its stored ciphertext
  (or the configured placeholder) instead of aborting the read.

Each call opens its own connection and closes it before returning.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Final, Iterator, List, Optional

from passvault.core.auth.session_control import SessionGuard
from passvault.core.crypto.aes_gcm import FieldCipher
from passvault.core.crypto.kdf import KeyDeriver
from passvault.core.crypto.password_gen import generate_password
from passvault.core.exceptions import CipherError, NotFoundError, ValidationError
from passvault.db.models import (
    CredentialEntry,
    CredentialPatch,
    PasskeyEntry,
    apply_patch,
    merge_upsert,
)
from passvault.security.constants import DEFAULT_PASSWORD_LENGTH
from passvault.utils.validators import (
    validate_non_negative,
    validate_optional_string,
    validate_string_safe,
)

logger = logging.getLogger("passvault.store")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches(keyword: str, *fields: Optional[str]) -> bool:
    return any(keyword in field.lower() for field in fields if field)


class VaultStore:
    """
    Entry lifecycle over SQLite, gated by a SessionGuard.

    Usage:
        store = VaultStore(db_path, guard, KeyDeriver(secret))

        entry = store.add_credential("site.com", "alice", "20", title="Work")
        rows = store.get_by_url("site.com")          # passwords decrypted
        store.update_credential(entry.id, CredentialPatch(note="rotated"))
        store.delete_credential(entry.id)
    """

    __slots__ = (
        "_db_path", "_guard", "_deriver", "_cipher",
        "_default_length", "_placeholder",
    )

    _SCHEMA: Final[str] = """
    CREATE TABLE IF NOT EXISTS credentials (
        id TEXT PRIMARY KEY,
        url TEXT NOT NULL,
        username TEXT NOT NULL,
        password TEXT NOT NULL,
        title TEXT,
        note TEXT,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_credentials_url ON credentials(url);

    CREATE TABLE IF NOT EXISTS passkeys (
        id TEXT PRIMARY KEY,
        rp_id TEXT NOT NULL,
        credential_id TEXT NOT NULL,
        user_handle TEXT NOT NULL,
        public_key TEXT NOT NULL,
        sign_count INTEGER NOT NULL DEFAULT 0 CHECK (sign_count >= 0),
        title TEXT,
        transports TEXT,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_passkeys_user ON passkeys(rp_id, user_handle);
    """

    def __init__(
        self,
        db_path: Path | str,
        guard: SessionGuard,
        deriver: KeyDeriver,
        cipher: Optional[FieldCipher] = None,
        default_generate_length: int = DEFAULT_PASSWORD_LENGTH,
        undecryptable_placeholder: Optional[str] = None,
    ) -> None:
        """
        Initialize the store and bootstrap its schema.

        Args:
            db_path: Path to SQLite database file
            guard: Session gate consulted before every operation
            deriver: Per-entry key derivation
            cipher: Field cipher (default: FieldCipher())
            default_generate_length: Length used when add is given no password
            undecryptable_placeholder: Shown instead of raw ciphertext when set
        """
        self._db_path = Path(db_path)
        self._guard = guard
        self._deriver = deriver
        self._cipher = cipher or FieldCipher()
        self._default_length = default_generate_length
        self._placeholder = undecryptable_placeholder
        self.initialize_db()

    @property
    def guard(self) -> SessionGuard:
        return self._guard

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, always close."""
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.executescript(self._SCHEMA)

    # ------------------------------------------------------------------
    # Secret handling
    # ------------------------------------------------------------------

    def resolve_password(self, secret_or_length: Optional[str], literal: bool = False) -> str:
        """
        Turn the add-style secret argument into a password.

        None generates a password of the default length; a string of
        digits with a positive value generates that many characters;
        anything else (or any value when literal) is used verbatim.
        """
        if secret_or_length is None:
            return generate_password(self._default_length)

        if not literal and secret_or_length.isascii() and secret_or_length.isdigit():
            length = int(secret_or_length)
            if length > 0:
                return generate_password(length)

        return secret_or_length

    def _seal(self, entry_id: str, plaintext: str) -> str:
        return self._cipher.seal(self._deriver.derive(entry_id), plaintext)

    def _reveal(self, entry: CredentialEntry) -> CredentialEntry:
        """Return a copy with the password decrypted, or the fallback value."""
        key = self._deriver.derive(entry.id)
        try:
            plaintext = self._cipher.open(key, entry.password)
        except CipherError as e:
            logger.warning(
                "Could not decrypt password for id=%s (%s); showing fallback value",
                entry.id, type(e).__name__,
            )
            plaintext = entry.password if self._placeholder is None else self._placeholder

        return replace(entry, password=plaintext)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def add_credential(
        self,
        url: str,
        username: str,
        secret_or_length: Optional[str] = None,
        title: Optional[str] = None,
        note: Optional[str] = None,
        *,
        literal: bool = False,
    ) -> CredentialEntry:
        """
        Insert a credential, or upsert the most recent one for the url.

        Args:
            url: Natural key of the entry
            username: Plaintext username
            secret_or_length: Password, positive length to generate, or None
            title: Optional title (kept from the existing entry when None)
            note: Optional note (kept from the existing entry when None)
            literal: Treat secret_or_length as a password even if numeric

        Returns:
            The stored record (password in sealed form)
        """
        self._guard.require_active()

        validate_string_safe(url, field_name="url")
        validate_string_safe(username, field_name="username")
        validate_optional_string(title, field_name="title")
        validate_optional_string(note, field_name="note")

        password = self.resolve_password(secret_or_length, literal=literal)
        validate_string_safe(password, field_name="password")

        with self._connect() as conn:
            row = conn.execute("""
                SELECT * FROM credentials
                WHERE url = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
            """, (url,)).fetchone()

            if row is not None:
                existing = self._row_to_credential(row)
                entry = merge_upsert(
                    existing,
                    username=username,
                    sealed_password=self._seal(existing.id, password),
                    title=title,
                    note=note,
                )
                self._write_credential(conn, entry)
                logger.info("Updated credential id=%s for existing url", entry.id)
                return entry

            entry_id = str(uuid.uuid4())
            entry = CredentialEntry(
                id=entry_id,
                url=url,
                username=username,
                password=self._seal(entry_id, password),
                created_at=_utc_now_iso(),
                title=title,
                note=note,
            )
            conn.execute("""
                INSERT INTO credentials (id, url, username, password, title, note, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                entry.id, entry.url, entry.username, entry.password,
                entry.title, entry.note, entry.created_at,
            ))

        logger.info("Created credential id=%s", entry.id)
        return entry

    def get_by_url(self, url: str) -> List[CredentialEntry]:
        """All credentials whose url matches exactly, passwords decrypted."""
        self._guard.require_active()

        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM credentials
                WHERE url = ?
                ORDER BY created_at DESC, rowid DESC
            """, (url,)).fetchall()

        return [self._reveal(self._row_to_credential(row)) for row in rows]

    def get_credential(self, entry_id: str, reveal: bool = False) -> CredentialEntry:
        """
        Fetch one credential by id.

        Raises:
            NotFoundError: If the id does not exist
        """
        self._guard.require_active()

        with self._connect() as conn:
            entry = self._fetch_credential(conn, entry_id)

        return self._reveal(entry) if reveal else entry

    def search(self, keyword: str) -> List[CredentialEntry]:
        """
        Case-insensitive substring search over id, url, username, title and note.

        Results are ordered by id, descending, with passwords decrypted.
        """
        self._guard.require_active()
        needle = keyword.lower()

        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM credentials").fetchall()

        matches = [
            entry for entry in map(self._row_to_credential, rows)
            if _matches(needle, entry.id, entry.url, entry.username, entry.title, entry.note)
        ]
        matches.sort(key=lambda entry: entry.id, reverse=True)

        return [self._reveal(entry) for entry in matches]

    def list_credentials(self, reveal: bool = True) -> List[CredentialEntry]:
        """All credentials, newest first."""
        self._guard.require_active()

        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM credentials ORDER BY created_at DESC, rowid DESC
            """).fetchall()

        entries = [self._row_to_credential(row) for row in rows]
        return [self._reveal(entry) for entry in entries] if reveal else entries

    def update_credential(self, entry_id: str, patch: CredentialPatch) -> CredentialEntry:
        """
        Apply the supplied fields of a patch to one credential.

        A new password (or a length to generate one) is sealed under the
        key derived from the unchanged entry id.

        Raises:
            ValidationError: If the patch is empty or holds invalid values
            NotFoundError: If the id does not exist
        """
        self._guard.require_active()

        if patch.is_empty:
            raise ValidationError("No fields to update")
        if patch.url is not None:
            validate_string_safe(patch.url, field_name="url")
        if patch.username is not None:
            validate_string_safe(patch.username, field_name="username")
        if patch.password is not None:
            validate_string_safe(patch.password, field_name="password")
        validate_optional_string(patch.title, field_name="title")
        validate_optional_string(patch.note, field_name="note")

        with self._connect() as conn:
            current = self._fetch_credential(conn, entry_id)

            sealed = None
            if patch.changes_password:
                new_password = (
                    patch.password if patch.password is not None
                    else generate_password(patch.length)
                )
                sealed = self._seal(current.id, new_password)

            updated = apply_patch(current, patch, sealed_password=sealed)
            self._write_credential(conn, updated)

        logger.info("Updated credential id=%s", entry_id)
        return updated

    def delete_credential(self, entry_id: str) -> bool:
        """
        Delete a credential. An unknown id is not an error.

        Returns:
            True if a row was removed
        """
        self._guard.require_active()

        with self._connect() as conn:
            result = conn.execute("DELETE FROM credentials WHERE id = ?", (entry_id,))
            removed = result.rowcount > 0

        logger.info("Delete credential id=%s removed=%s", entry_id, removed)
        return removed

    def _fetch_credential(self, conn: sqlite3.Connection, entry_id: str) -> CredentialEntry:
        row = conn.execute(
            "SELECT * FROM credentials WHERE id = ?", (entry_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError("credential", entry_id)
        return self._row_to_credential(row)

    @staticmethod
    def _write_credential(conn: sqlite3.Connection, entry: CredentialEntry) -> None:
        conn.execute("""
            UPDATE credentials
            SET url = ?, username = ?, password = ?, title = ?, note = ?
            WHERE id = ?
        """, (entry.url, entry.username, entry.password, entry.title, entry.note, entry.id))

    @staticmethod
    def _row_to_credential(row: sqlite3.Row) -> CredentialEntry:
        return CredentialEntry(
            id=row["id"],
            url=row["url"],
            username=row["username"],
            password=row["password"],
            created_at=row["created_at"],
            title=row["title"],
            note=row["note"],
        )

    # ------------------------------------------------------------------
    # Passkeys
    # ------------------------------------------------------------------

    def add_passkey(
        self,
        rp_id: str,
        credential_id: str,
        user_handle: str,
        public_key: str,
        sign_count: int = 0,
        title: Optional[str] = None,
        transports: Optional[str] = None,
    ) -> PasskeyEntry:
        """
        Insert a passkey. Every call creates a new row (no upsert).

        public_key is public material and is stored as given.
        """
        self._guard.require_active()

        validate_string_safe(rp_id, field_name="rp_id")
        validate_string_safe(credential_id, field_name="credential_id")
        validate_string_safe(user_handle, field_name="user_handle")
        validate_string_safe(public_key, max_length=16384, field_name="public_key")
        validate_non_negative(sign_count, field_name="sign_count")
        validate_optional_string(title, field_name="title")
        validate_optional_string(transports, field_name="transports")

        entry = PasskeyEntry(
            id=str(uuid.uuid4()),
            rp_id=rp_id,
            credential_id=credential_id,
            user_handle=user_handle,
            public_key=public_key,
            created_at=_utc_now_iso(),
            sign_count=sign_count,
            title=title,
            transports=transports,
        )

        with self._connect() as conn:
            conn.execute("""
                INSERT INTO passkeys (
                    id, rp_id, credential_id, user_handle, public_key,
                    sign_count, title, transports, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                entry.id, entry.rp_id, entry.credential_id, entry.user_handle,
                entry.public_key, entry.sign_count, entry.title, entry.transports,
                entry.created_at,
            ))

        logger.info("Created passkey id=%s", entry.id)
        return entry

    def get_passkeys_by_user(self, rp_id: str, user_handle: str) -> List[PasskeyEntry]:
        """Passkeys registered for (rp_id, user_handle), newest first."""
        self._guard.require_active()

        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM passkeys
                WHERE rp_id = ? AND user_handle = ?
                ORDER BY created_at DESC, rowid DESC
            """, (rp_id, user_handle)).fetchall()

        return [self._row_to_passkey(row) for row in rows]

    def search_passkeys(self, keyword: str) -> List[PasskeyEntry]:
        """
        Case-insensitive substring search over id, rp_id, credential_id,
        user_handle, title and transports, ordered by id descending.
        """
        self._guard.require_active()
        needle = keyword.lower()

        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM passkeys").fetchall()

        matches = [
            entry for entry in map(self._row_to_passkey, rows)
            if _matches(
                needle, entry.id, entry.rp_id, entry.credential_id,
                entry.user_handle, entry.title, entry.transports,
            )
        ]
        matches.sort(key=lambda entry: entry.id, reverse=True)
        return matches

    def list_passkeys(self) -> List[PasskeyEntry]:
        """All passkeys, newest first."""
        self._guard.require_active()

        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM passkeys ORDER BY created_at DESC, rowid DESC
            """).fetchall()

        return [self._row_to_passkey(row) for row in rows]

    def delete_passkey(self, entry_id: str) -> None:
        """
        Delete a passkey.

        Raises:
            NotFoundError: If no passkey has this id
        """
        self._guard.require_active()

        with self._connect() as conn:
            result = conn.execute("DELETE FROM passkeys WHERE id = ?", (entry_id,))
            if result.rowcount == 0:
                raise NotFoundError("passkey", entry_id)

        logger.info("Deleted passkey id=%s", entry_id)

    @staticmethod
    def _row_to_passkey(row: sqlite3.Row) -> PasskeyEntry:
        return PasskeyEntry(
            id=row["id"],
            rp_id=row["rp_id"],
            credential_id=row["credential_id"],
            user_handle=row["user_handle"],
            public_key=row["public_key"],
            created_at=row["created_at"],
            sign_count=row["sign_count"],
            title=row["title"],
            transports=row["transports"],
        )
