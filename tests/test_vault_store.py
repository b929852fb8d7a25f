# Tests for the SQLite vault store
#
# Coverage:
#   - Session gating of every operation
#   - Credential upsert/merge, update, delete, search
#   - Ciphertext at rest and the decrypt fallback
#   - Passkey insert, lookup, search, delete

import sqlite3

import pytest

from passvault.core.crypto.kdf import KeyDeriver
from passvault.core.exceptions import (
    MissingSecretError,
    NotFoundError,
    SessionExpiredError,
    UnauthenticatedError,
    ValidationError,
)
from passvault.db.models import (
    CredentialEntry,
    CredentialPatch,
    apply_patch,
    merge_upsert,
)
from passvault.db.vault_store import VaultStore

SECRET = "test-secret-123"


def _raw_rows(store, table="credentials"):
    conn = sqlite3.connect(store._db_path)
    conn.row_factory = sqlite3.Row
    try:
        return [dict(row) for row in conn.execute(f"SELECT * FROM {table}")]
    finally:
        conn.close()


# ── Session gating ──────────────────────────────────────────────────


GATED_CALLS = [
    ("add_credential", ("a.com", "alice", "pw")),
    ("get_by_url", ("a.com",)),
    ("get_credential", ("some-id",)),
    ("search", ("a",)),
    ("list_credentials", ()),
    ("update_credential", ("some-id", CredentialPatch(note="x"))),
    ("delete_credential", ("some-id",)),
    ("add_passkey", ("rp", "cred", "user", "pk")),
    ("get_passkeys_by_user", ("rp", "user")),
    ("search_passkeys", ("rp",)),
    ("list_passkeys", ()),
    ("delete_passkey", ("some-id",)),
]


class TestSessionGating:
    @pytest.mark.parametrize("method,args", GATED_CALLS)
    def test_requires_session(self, store, method, args):
        with pytest.raises(UnauthenticatedError):
            getattr(store, method)(*args)

    @pytest.mark.parametrize("method,args", GATED_CALLS)
    def test_expired_session_rejected(self, store, clock, method, args):
        store.guard.authenticate(SECRET, 1)
        clock.advance(60)
        with pytest.raises(SessionExpiredError):
            getattr(store, method)(*args)

    def test_rejected_add_writes_nothing(self, store):
        with pytest.raises(UnauthenticatedError):
            store.add_credential("a.com", "alice", "pw")
        assert _raw_rows(store) == []


# ── Credentials ─────────────────────────────────────────────────────


class TestAddCredential:
    def test_password_is_sealed_at_rest(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "hunter2")
        [row] = _raw_rows(authed_store)
        assert row["password"] == entry.password
        assert "hunter2" not in row["password"]

        [revealed] = authed_store.get_by_url("a.com")
        assert revealed.password == "hunter2"
        assert revealed.id == entry.id

    def test_numeric_secret_generates_password(self, authed_store):
        authed_store.add_credential("a.com", "alice", "20")
        [entry] = authed_store.get_by_url("a.com")
        assert len(entry.password) == 20
        assert entry.password != "20"

    def test_no_secret_uses_default_length(self, authed_store):
        authed_store.add_credential("a.com", "alice")
        [entry] = authed_store.get_by_url("a.com")
        assert len(entry.password) == 16

    def test_literal_numeric_password(self, authed_store):
        authed_store.add_credential("a.com", "alice", "1234", literal=True)
        assert authed_store.get_by_url("a.com")[0].password == "1234"

    def test_zero_is_a_literal_password(self, authed_store):
        authed_store.add_credential("a.com", "alice", "0")
        assert authed_store.get_by_url("a.com")[0].password == "0"

    def test_upsert_by_url_merges(self, authed_store):
        first = authed_store.add_credential("a.com", "alice", "pw1", title="T", note="N")
        second = authed_store.add_credential("a.com", "bob", "pw2", note="N2")

        assert second.id == first.id
        assert second.created_at == first.created_at
        [entry] = authed_store.get_by_url("a.com")
        assert entry.username == "bob"
        assert entry.password == "pw2"
        assert entry.title == "T"
        assert entry.note == "N2"

    def test_different_urls_are_separate(self, authed_store):
        authed_store.add_credential("a.com", "alice", "pw")
        authed_store.add_credential("b.com", "alice", "pw")
        assert len(_raw_rows(authed_store)) == 2

    @pytest.mark.parametrize("url,username", [("", "alice"), ("a.com", ""), ("a\x00b", "alice")])
    def test_invalid_input_rejected(self, authed_store, url, username):
        with pytest.raises(ValidationError):
            authed_store.add_credential(url, username, "pw")

    def test_missing_master_secret(self, tmp_path, guard):
        store = VaultStore(tmp_path / "vault.db", guard, KeyDeriver(None))
        guard.authenticate(SECRET, 5)
        with pytest.raises(MissingSecretError):
            store.add_credential("a.com", "alice", "pw")


class TestGetCredential:
    def test_sealed_by_default(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "pw")
        assert authed_store.get_credential(entry.id).password == entry.password
        assert authed_store.get_credential(entry.id, reveal=True).password == "pw"

    def test_unknown_id(self, authed_store):
        with pytest.raises(NotFoundError, match="credential id=nope not found"):
            authed_store.get_credential("nope")

    def test_get_by_url_unknown_is_empty(self, authed_store):
        assert authed_store.get_by_url("missing.com") == []


class TestUpdateCredential:
    def test_note_only_keeps_other_fields(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "pw", title="T")
        updated = authed_store.update_credential(entry.id, CredentialPatch(note="rotated"))

        assert updated.note == "rotated"
        assert updated.password == entry.password
        stored = authed_store.get_credential(entry.id)
        assert (stored.url, stored.username, stored.title, stored.created_at) == (
            "a.com", "alice", "T", entry.created_at,
        )
        assert stored.password == entry.password

    def test_new_password_resealed_under_same_id(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "old")
        authed_store.update_credential(entry.id, CredentialPatch(password="new"))

        revealed = authed_store.get_credential(entry.id, reveal=True)
        assert revealed.id == entry.id
        assert revealed.password == "new"

    def test_length_generates_password(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "old")
        authed_store.update_credential(entry.id, CredentialPatch(length=30))
        assert len(authed_store.get_credential(entry.id, reveal=True).password) == 30

    def test_url_change(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "pw")
        authed_store.update_credential(entry.id, CredentialPatch(url="b.com"))
        assert authed_store.get_by_url("a.com") == []
        assert authed_store.get_by_url("b.com")[0].password == "pw"

    def test_unknown_id(self, authed_store):
        with pytest.raises(NotFoundError):
            authed_store.update_credential("nope", CredentialPatch(note="x"))

    def test_empty_patch_rejected(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "pw")
        with pytest.raises(ValidationError):
            authed_store.update_credential(entry.id, CredentialPatch())


class TestDeleteCredential:
    def test_delete_then_gone(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "pw")
        assert authed_store.delete_credential(entry.id) is True
        assert authed_store.get_by_url("a.com") == []

    def test_unknown_id_is_not_an_error(self, authed_store):
        assert authed_store.delete_credential("nope") is False


class TestSearch:
    def test_case_insensitive_over_fields(self, authed_store):
        authed_store.add_credential("Example.com", "alice", "pw")
        authed_store.add_credential("other.org", "BOB", "pw", title="Work Mail")
        authed_store.add_credential("third.net", "carol", "pw", note="shared EXAMPLE")

        assert {e.url for e in authed_store.search("example")} == {"Example.com", "third.net"}
        assert [e.url for e in authed_store.search("bob")] == ["other.org"]
        assert [e.url for e in authed_store.search("work")] == ["other.org"]
        assert authed_store.search("zzz") == []

    def test_matches_id_and_orders_by_id_descending(self, authed_store):
        ids = [authed_store.add_credential(f"site{i}.com", "u", "pw").id for i in range(4)]
        results = authed_store.search("site")
        assert [e.id for e in results] == sorted(ids, reverse=True)
        assert [e.id for e in authed_store.search(ids[2][:13])] == [ids[2]]

    def test_results_are_decrypted(self, authed_store):
        authed_store.add_credential("a.com", "alice", "hunter2")
        assert authed_store.search("a.com")[0].password == "hunter2"

    def test_list_credentials(self, authed_store):
        authed_store.add_credential("a.com", "alice", "pw1")
        authed_store.add_credential("b.com", "bob", "pw2")
        assert {e.password for e in authed_store.list_credentials()} == {"pw1", "pw2"}
        assert all(e.password not in ("pw1", "pw2") for e in authed_store.list_credentials(reveal=False))


class TestDecryptFallback:
    def test_swapped_ciphertext_shows_raw_value(self, authed_store):
        a = authed_store.add_credential("a.com", "alice", "pw-a")
        b = authed_store.add_credential("b.com", "bob", "pw-b")

        conn = sqlite3.connect(authed_store._db_path)
        with conn:
            conn.execute("UPDATE credentials SET password = ? WHERE id = ?", (b.password, a.id))
        conn.close()

        [entry] = authed_store.get_by_url("a.com")
        assert entry.password == b.password
        assert authed_store.get_by_url("b.com")[0].password == "pw-b"

    def test_malformed_ciphertext_does_not_abort(self, authed_store):
        entry = authed_store.add_credential("a.com", "alice", "pw")
        conn = sqlite3.connect(authed_store._db_path)
        with conn:
            conn.execute("UPDATE credentials SET password = 'garbage!' WHERE id = ?", (entry.id,))
        conn.close()

        assert authed_store.get_by_url("a.com")[0].password == "garbage!"
        assert authed_store.search("alice")[0].password == "garbage!"

    def test_changed_master_secret_uses_placeholder(self, tmp_path, guard):
        path = tmp_path / "vault.db"
        guard.authenticate(SECRET, 5)
        VaultStore(path, guard, KeyDeriver(SECRET)).add_credential("a.com", "alice", "pw")

        rotated = VaultStore(
            path, guard, KeyDeriver("rotated"), undecryptable_placeholder="<unreadable>",
        )
        assert rotated.get_by_url("a.com")[0].password == "<unreadable>"


# ── Passkeys ────────────────────────────────────────────────────────


class TestPasskeys:
    def test_add_and_lookup_by_user(self, authed_store):
        entry = authed_store.add_passkey(
            "example.com", "cred-123", "user-abc", "pubkey-xyz",
            sign_count=42, title="Laptop", transports="usb,nfc",
        )
        [found] = authed_store.get_passkeys_by_user("example.com", "user-abc")
        assert found == entry
        assert found.sign_count == 42
        assert found.transports == "usb,nfc"

        [row] = _raw_rows(authed_store, "passkeys")
        assert row["public_key"] == "pubkey-xyz"

    def test_always_inserts(self, authed_store):
        first = authed_store.add_passkey("rp", "cred", "user", "pk")
        second = authed_store.add_passkey("rp", "cred", "user", "pk")
        assert first.id != second.id
        assert len(authed_store.get_passkeys_by_user("rp", "user")) == 2

    def test_lookup_needs_both_keys(self, authed_store):
        authed_store.add_passkey("rp", "cred", "user", "pk")
        assert authed_store.get_passkeys_by_user("rp", "other") == []
        assert authed_store.get_passkeys_by_user("other", "user") == []

    @pytest.mark.parametrize("sign_count", [-1, "3", True])
    def test_invalid_sign_count(self, authed_store, sign_count):
        with pytest.raises(ValidationError):
            authed_store.add_passkey("rp", "cred", "user", "pk", sign_count=sign_count)

    def test_search(self, authed_store):
        authed_store.add_passkey("Example.com", "cred-1", "user-a", "pk", transports="USB")
        authed_store.add_passkey("other.org", "cred-2", "user-b", "pk", title="Phone")

        assert [e.rp_id for e in authed_store.search_passkeys("example")] == ["Example.com"]
        assert [e.rp_id for e in authed_store.search_passkeys("usb")] == ["Example.com"]
        assert [e.rp_id for e in authed_store.search_passkeys("phone")] == ["other.org"]
        assert len(authed_store.search_passkeys("cred")) == 2
        assert authed_store.search_passkeys("pk") == []

    def test_delete(self, authed_store):
        entry = authed_store.add_passkey("rp", "cred", "user", "pk")
        authed_store.delete_passkey(entry.id)
        assert authed_store.list_passkeys() == []

    def test_delete_unknown_raises(self, authed_store):
        with pytest.raises(NotFoundError, match="passkey id=nope not found"):
            authed_store.delete_passkey("nope")


# ── Patch helpers ───────────────────────────────────────────────────


def _entry(**overrides):
    values = dict(
        id="id-1", url="a.com", username="alice", password="sealed",
        created_at="2024-01-01T00:00:00+00:00", title="T", note="N",
    )
    values.update(overrides)
    return CredentialEntry(**values)


class TestPatchHelpers:
    def test_patch_rejects_password_and_length(self):
        with pytest.raises(ValidationError):
            CredentialPatch(password="x", length=10)

    @pytest.mark.parametrize("length", [0, -5])
    def test_patch_rejects_non_positive_length(self, length):
        with pytest.raises(ValidationError):
            CredentialPatch(length=length)

    def test_is_empty(self):
        assert CredentialPatch().is_empty
        assert not CredentialPatch(title="").is_empty

    def test_apply_patch_keeps_identity(self):
        updated = apply_patch(_entry(), CredentialPatch(username="bob", title=""))
        assert updated.id == "id-1"
        assert updated.created_at == "2024-01-01T00:00:00+00:00"
        assert updated.username == "bob"
        assert updated.title == ""
        assert updated.note == "N"
        assert updated.password == "sealed"

    def test_apply_patch_requires_sealed_password(self):
        with pytest.raises(ValueError):
            apply_patch(_entry(), CredentialPatch(password="new"))

    def test_merge_upsert(self):
        merged = merge_upsert(_entry(), "bob", "sealed-2", title=None, note="N2")
        assert (merged.username, merged.password, merged.title, merged.note) == (
            "bob", "sealed-2", "T", "N2",
        )

    def test_repr_hides_password(self):
        assert "sealed" not in repr(_entry())
