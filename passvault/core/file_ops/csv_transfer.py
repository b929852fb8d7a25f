"""
CSV Import / Export
===================

Maps vault records to flat CSV rows and back.

Export writes plaintext secrets (decrypted passwords) to an owner-only
file, newest entries first. Import replays every row through the same
add_credential / add_passkey path the command line uses, so credentials
upsert by url and passkeys are always inserted. Source ids and
created_at values are ignored; imported entries get fresh ones.

The first row is a header when it carries any known column name; its
recognized columns are matched by name and the rest by fixed position.
Without a header every column is read by position. All rows are
validated before the first one is written.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Iterable, List, Optional, Sequence

from passvault.core.exceptions import ImportRowInvalidError, TransferFileError
from passvault.db.vault_store import VaultStore
from passvault.utils.paths import open_private_for_write
from passvault.utils.validators import validate_path_safe

logger = logging.getLogger("passvault.transfer")

CREDENTIAL_COLUMNS: Final[tuple[str, ...]] = (
    "id", "url", "username", "password", "title", "note", "created_at",
)
CREDENTIAL_REQUIRED: Final[tuple[str, ...]] = ("url", "username", "password")

PASSKEY_COLUMNS: Final[tuple[str, ...]] = (
    "id", "rp_id", "credential_id", "user_handle", "public_key",
    "sign_count", "title", "transports", "created_at",
)
PASSKEY_REQUIRED: Final[tuple[str, ...]] = (
    "rp_id", "credential_id", "user_handle", "public_key",
)


@dataclass(frozen=True, slots=True)
class _ParsedRow:
    row_number: int
    values: dict[str, str]

    def optional(self, column: str) -> Optional[str]:
        return self.values.get(column) or None


def _column_positions(header: Sequence[str], columns: Sequence[str]) -> dict[str, int]:
    """
    Map column names to indexes for a header row.

    Recognized names map by name; the rest keep their fixed position
    unless a recognized column already occupies that index.
    """
    positions = {name: header.index(name) for name in columns if name in header}
    claimed = set(positions.values())

    for index, name in enumerate(columns):
        if name not in positions and index not in claimed:
            positions[name] = index

    return positions


def _read_rows(
    path: Path,
    columns: Sequence[str],
    required: Sequence[str],
) -> List[_ParsedRow]:
    """Read a CSV file into column-name dicts and check required fields."""
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            raw_rows = [
                (number, row)
                for number, row in enumerate(csv.reader(handle), start=1)
                if any(cell.strip() for cell in row)
            ]
    except UnicodeDecodeError as e:
        raise TransferFileError(path, "file is not valid UTF-8") from e
    except csv.Error as e:
        raise TransferFileError(path, f"malformed CSV ({e})") from e
    except OSError as e:
        raise TransferFileError(path, e.strerror or str(e)) from e

    if not raw_rows:
        return []

    first_row = raw_rows[0][1]
    header = [cell.strip().lower() for cell in first_row]

    if any(name in header for name in columns):
        positions = _column_positions(header, columns)
        data_rows = raw_rows[1:]
    else:
        logger.info("No recognizable header in %s; reading columns by position", path.name)
        positions = {name: index for index, name in enumerate(columns)}
        data_rows = raw_rows

    parsed: List[_ParsedRow] = []
    for number, row in data_rows:
        values = {
            name: row[index] if index < len(row) else ""
            for name, index in positions.items()
        }
        for name in required:
            if not values.get(name, ""):
                raise ImportRowInvalidError(number, name)
        parsed.append(_ParsedRow(number, values))

    return parsed


def _parse_sign_count(row: _ParsedRow) -> int:
    raw = row.values.get("sign_count", "").strip()
    if not raw:
        return 0
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if value < 0:
        raise ImportRowInvalidError(
            row.row_number, "sign_count", "sign_count must be a non-negative integer"
        )
    return value


def _write_rows(target: Path, header: Sequence[str], rows: Iterable[Sequence[object]]) -> None:
    """Write a header and rows to an owner-only CSV file."""
    try:
        with open_private_for_write(target) as handle:
            writer = csv.writer(handle)
            writer.writerow(header)
            writer.writerows(rows)
    except OSError as e:
        raise TransferFileError(target, e.strerror or str(e)) from e


def export_credentials(store: VaultStore, path: str | Path) -> int:
    """
    Write all credentials, passwords decrypted, to a CSV file.

    Returns:
        Number of rows written

    Raises:
        TransferFileError: If the file cannot be written
    """
    entries = store.list_credentials(reveal=True)
    target = validate_path_safe(path)

    _write_rows(target, CREDENTIAL_COLUMNS, (
        [
            entry.id, entry.url, entry.username, entry.password,
            entry.title or "", entry.note or "", entry.created_at,
        ]
        for entry in entries
    ))

    logger.warning("Exported %d credential(s) with plaintext passwords", len(entries))
    return len(entries)


def export_passkeys(store: VaultStore, path: str | Path) -> int:
    """
    Write all passkeys to a CSV file.

    Returns:
        Number of rows written
    """
    entries = store.list_passkeys()
    target = validate_path_safe(path)

    _write_rows(target, PASSKEY_COLUMNS, (
        [
            entry.id, entry.rp_id, entry.credential_id, entry.user_handle,
            entry.public_key, entry.sign_count, entry.title or "",
            entry.transports or "", entry.created_at,
        ]
        for entry in entries
    ))

    logger.info("Exported %d passkey(s)", len(entries))
    return len(entries)


def import_credentials(store: VaultStore, path: str | Path) -> int:
    """
    Replay credential rows through add_credential.

    Passwords are taken literally and sealed on ingest.

    Returns:
        Number of rows replayed

    Raises:
        ImportRowInvalidError: If any row lacks url, username or password
        TransferFileError: If the file cannot be read as UTF-8 CSV
    """
    store.guard.require_active()
    source = validate_path_safe(path, must_exist=True)
    rows = _read_rows(source, CREDENTIAL_COLUMNS, CREDENTIAL_REQUIRED)

    for row in rows:
        store.add_credential(
            row.values["url"],
            row.values["username"],
            row.values["password"],
            title=row.optional("title"),
            note=row.optional("note"),
            literal=True,
        )

    logger.info("Imported %d credential row(s)", len(rows))
    return len(rows)


def import_passkeys(store: VaultStore, path: str | Path) -> int:
    """
    Replay passkey rows through add_passkey.

    Returns:
        Number of rows replayed

    Raises:
        ImportRowInvalidError: If any row lacks a required column or has
            an invalid sign_count
    """
    store.guard.require_active()
    source = validate_path_safe(path, must_exist=True)
    rows = _read_rows(source, PASSKEY_COLUMNS, PASSKEY_REQUIRED)
    sign_counts = [_parse_sign_count(row) for row in rows]

    for row, sign_count in zip(rows, sign_counts):
        store.add_passkey(
            row.values["rp_id"],
            row.values["credential_id"],
            row.values["user_handle"],
            row.values["public_key"],
            sign_count=sign_count,
            title=row.optional("title"),
            transports=row.optional("transports"),
        )

    logger.info("Imported %d passkey row(s)", len(rows))
    return len(rows)
