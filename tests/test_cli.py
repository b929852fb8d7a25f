# End-to-end tests of the passvault command line
#
# Each test runs main() in-process against a temporary data directory
# (see conftest) with AUTH_SECRET set in the environment.

import json

import pytest

from passvault.__main__ import main

SECRET = "test-secret-123"


@pytest.fixture
def cli(monkeypatch, capsys):
    monkeypatch.setenv("AUTH_SECRET", SECRET)

    def run(*argv):
        code = main(list(argv))
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    return run


@pytest.fixture
def authed_cli(cli):
    code, out, _ = cli("auth", SECRET, "--ttl", "5")
    assert code == 0
    assert "Authenticated: valid for 300 seconds" in out
    return cli


def _first_id(output):
    first_line = output.splitlines()[0]
    return next(tok[len("id="):] for tok in first_line.split() if tok.startswith("id="))


class TestGenerate:
    def test_gen_length(self, cli):
        code, out, _ = cli("gen", "24")
        assert code == 0
        assert len(out.strip()) == 24

    def test_no_command_prints_default_length(self, cli):
        code, out, _ = cli()
        assert code == 0
        assert len(out.strip()) == 16

    def test_gen_needs_no_session_or_secret(self, cli, monkeypatch):
        monkeypatch.delenv("AUTH_SECRET")
        code, out, _ = cli("gen", "8")
        assert code == 0
        assert len(out.strip()) == 8

    def test_gen_zero_prints_empty_line(self, cli):
        code, out, _ = cli("gen", "0")
        assert (code, out) == (0, "\n")

    def test_gen_negative_length_fails(self, cli):
        code, _, err = cli("gen", "-1")
        assert code == 1
        assert "error:" in err

    def test_bare_length_generates(self, cli):
        code, out, _ = cli("24")
        assert code == 0
        assert len(out.strip()) == 24


class TestSession:
    def test_wrong_secret(self, cli):
        code, _, err = cli("auth", "wrong")
        assert code == 1
        assert "error:" in err

    def test_missing_secret(self, cli, monkeypatch):
        monkeypatch.delenv("AUTH_SECRET")
        code, _, err = cli("auth", SECRET)
        assert code == 1
        assert "AUTH_SECRET" in err

    def test_unauthenticated_command_fails(self, cli):
        code, _, err = cli("get", "example.com")
        assert code == 1
        assert "error:" in err

    def test_status_and_logout(self, authed_cli):
        code, out, _ = authed_cli("status")
        assert code == 0
        assert out.startswith("Session: active")

        code, out, _ = authed_cli("logout")
        assert (code, out.strip()) == (0, "Logged out")

        code, out, _ = authed_cli("status")
        assert code == 1
        assert "no_session" in out

        code, _, _ = authed_cli("search", "x")
        assert code == 1


class TestCredentialCommands:
    def test_add_get_search_update_delete(self, authed_cli):
        code, out, _ = authed_cli("add", "example.com", "alice", "hunter2", "--title", "Work")
        assert code == 0
        assert "Saved: url=example.com user=alice" in out

        code, out, _ = authed_cli("get", "example.com")
        assert code == 0
        assert out.strip() == 'user="alice" password="hunter2" title="Work"'

        code, out, _ = authed_cli("search", "EXAMPLE")
        assert code == 0
        assert 'url="example.com"' in out
        assert "hunter2" not in out
        entry_id = _first_id(out)

        code, out, _ = authed_cli("update", entry_id, "--note", "rotated")
        assert (code, out.strip()) == (0, f"Updated: id={entry_id}")

        code, out, _ = authed_cli("get", "example.com")
        assert 'password="hunter2"' in out
        assert 'note="rotated"' in out

        code, out, _ = authed_cli("delete", entry_id)
        assert (code, out.strip()) == (0, f"Deleted: id={entry_id}")

        code, _, err = authed_cli("get", "example.com")
        assert code == 1
        assert "Not found: url=example.com" in err

    def test_add_with_length(self, authed_cli):
        authed_cli("add", "example.com", "alice", "20")
        _, out, _ = authed_cli("--json", "get", "example.com")
        [record] = json.loads(out)
        assert len(record["password"]) == 20

    def test_delete_unknown_credential_succeeds(self, authed_cli):
        code, _, _ = authed_cli("delete", "no-such-id")
        assert code == 0

    def test_update_unknown_id(self, authed_cli):
        code, _, err = authed_cli("update", "no-such-id", "--note", "x")
        assert code == 1
        assert "not found" in err

    def test_update_without_fields(self, authed_cli):
        authed_cli("add", "example.com", "alice", "pw")
        _, out, _ = authed_cli("search", "example")
        code, _, err = authed_cli("update", _first_id(out))
        assert code == 1
        assert "No fields to update" in err

    def test_password_and_length_are_exclusive(self, authed_cli):
        with pytest.raises(SystemExit):
            authed_cli("update", "some-id", "--password", "x", "--length", "5")

    def test_export_import(self, authed_cli, tmp_path):
        authed_cli("add", "a.com", "alice", "pw-a")
        target = tmp_path / "creds.csv"

        code, out, _ = authed_cli("export", str(target))
        assert code == 0
        assert "Exported 1 credential(s)" in out
        assert target.exists()

        code, out, _ = authed_cli("import", str(target))
        assert code == 0
        assert "Imported 1 credential(s)" in out

    def test_export_to_missing_directory_fails_cleanly(self, authed_cli, tmp_path):
        code, out, err = authed_cli("export", str(tmp_path / "nope" / "out.csv"))
        assert code == 1
        assert out == ""
        assert "error:" in err
        assert "No such file or directory" in err

    def test_import_non_utf8_file_fails_cleanly(self, authed_cli, tmp_path):
        source = tmp_path / "creds.csv"
        source.write_bytes(b"url,username,password\n\xff\xfe,alice,pw\n")

        code, _, err = authed_cli("import", str(source))
        assert code == 1
        assert "error:" in err
        assert "not valid UTF-8" in err


class TestPasskeyCommands:
    def test_add_get_search_export_delete_flow(self, authed_cli, tmp_path):
        code, out, _ = authed_cli(
            "passkey", "add", "example.com", "cred-123", "user-abc", "pubkey-xyz",
            "--sign-count", "42", "--transports", "usb,nfc",
        )
        assert code == 0
        assert out.startswith("Saved:")

        code, out, _ = authed_cli("passkey", "get", "example.com", "user-abc")
        assert code == 0
        assert 'rp_id="example.com"' in out
        assert 'credential_id="cred-123"' in out
        assert 'user_handle="user-abc"' in out
        assert "sign_count=42" in out
        assert 'transports="usb,nfc"' in out

        code, out, _ = authed_cli("passkey", "search", "example.com")
        assert code == 0
        entry_id = _first_id(out)

        csv_path = tmp_path / "passkeys.csv"
        code, _, _ = authed_cli("passkey", "export", str(csv_path))
        assert code == 0
        assert csv_path.exists()

        code, _, _ = authed_cli("passkey", "delete", entry_id)
        assert code == 0

        code, _, err = authed_cli("passkey", "get", "example.com", "user-abc")
        assert code == 1
        assert "Not found" in err

        code, out, _ = authed_cli("passkey", "import", str(csv_path))
        assert code == 0
        assert "Imported 1 passkey(s)" in out

    def test_delete_unknown_passkey_fails(self, authed_cli):
        code, _, err = authed_cli("passkey", "delete", "no-such-id")
        assert code == 1
        assert "passkey id=no-such-id not found" in err

    def test_json_records(self, authed_cli):
        authed_cli("passkey", "add", "rp.example", "cred", "user", "pk")
        code, out, _ = authed_cli("--json", "passkey", "search", "rp.example")
        assert code == 0
        [record] = json.loads(out)
        assert record["rp_id"] == "rp.example"
        assert record["sign_count"] == 0
