"""
Vault Records
=============

Entry records as stored, plus the typed patch used by credential updates.

CredentialEntry.password always holds the stored form (base64 AEAD blob)
unless a record was explicitly revealed by the store for output.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Optional

from passvault.core.exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class CredentialEntry:
    """
    Website credential.

    Note: password is never exposed in repr.
    """
    id: str
    url: str
    username: str
    password: str
    created_at: str
    title: Optional[str] = None
    note: Optional[str] = None

    def __repr__(self) -> str:
        """Safe representation without the password field."""
        return (
            f"CredentialEntry(id={self.id!r}, url={self.url!r}, "
            f"username={self.username!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class PasskeyEntry:
    """
    WebAuthn passkey metadata. Holds public material only.
    """
    id: str
    rp_id: str
    credential_id: str
    user_handle: str
    public_key: str
    created_at: str
    sign_count: int = 0
    title: Optional[str] = None
    transports: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"PasskeyEntry(id={self.id!r}, rp_id={self.rp_id!r}, "
            f"user_handle={self.user_handle!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class CredentialPatch:
    """
    One optional slot per mutable credential field.

    None means "leave untouched". password and length are mutually
    exclusive: length asks the store to generate a new password.
    """
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    length: Optional[int] = None
    title: Optional[str] = None
    note: Optional[str] = None

    def __post_init__(self) -> None:
        if self.password is not None and self.length is not None:
            raise ValidationError("Specify either a password or a length, not both")
        if self.length is not None and self.length < 1:
            raise ValidationError("Password length must be at least 1")

    @property
    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.url, self.username, self.password,
                          self.length, self.title, self.note)
        )

    @property
    def changes_password(self) -> bool:
        return self.password is not None or self.length is not None


def apply_patch(
    entry: CredentialEntry,
    patch: CredentialPatch,
    sealed_password: Optional[str] = None,
) -> CredentialEntry:
    """
    Merge a patch into an entry.

    id and created_at never change. sealed_password is the already
    re-encrypted blob when the patch changes the password.
    """
    if patch.changes_password and sealed_password is None:
        raise ValueError("sealed_password is required when the patch changes the password")

    return replace(
        entry,
        url=entry.url if patch.url is None else patch.url,
        username=entry.username if patch.username is None else patch.username,
        password=entry.password if sealed_password is None else sealed_password,
        title=entry.title if patch.title is None else patch.title,
        note=entry.note if patch.note is None else patch.note,
    )


def merge_upsert(
    existing: CredentialEntry,
    username: str,
    sealed_password: str,
    title: Optional[str],
    note: Optional[str],
) -> CredentialEntry:
    """
    Merge a repeated add for the same url into the existing entry.

    username and password are overwritten; title and note keep their
    previous value unless a new one is given.
    """
    return replace(
        existing,
        username=username,
        password=sealed_password,
        title=existing.title if title is None else title,
        note=existing.note if note is None else note,
    )
