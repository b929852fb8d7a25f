"""
PassVault command line.

Usage:
    passvault [length]
    passvault gen [length]
    passvault auth <secret> [--ttl MINUTES]
    passvault add <url> <user> [password|length] [--title T] [--note N]
    passvault get <url>
    passvault passkey add <rp_id> <credential_id> <user_handle> <public_key>
    ...

Every vault command except gen requires a session started with auth.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Iterable, Optional, Sequence

from passvault import __version__
from passvault.core.config import SecureConfig
from passvault.core.crypto.password_gen import generate_password
from passvault.core.exceptions import VaultError
from passvault.core.file_ops.csv_transfer import (
    export_credentials,
    export_passkeys,
    import_credentials,
    import_passkeys,
)
from passvault.core.logging import configure_logging
from passvault.db.models import CredentialEntry, CredentialPatch, PasskeyEntry
from passvault.vault import Vault, open_vault


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="passvault",
        description="Local vault for website credentials and passkey metadata",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("--version", action="version", version=f"PassVault {__version__}")

    commands = parser.add_subparsers(dest="command")

    gen = commands.add_parser("gen", help="Generate a password (no session needed)")
    gen.add_argument("length", nargs="?", type=int, help="Password length (default: 16)")

    auth = commands.add_parser("auth", help="Start a session")
    auth.add_argument("secret", help="Master secret")
    auth.add_argument("--ttl", type=int, help="Session lifetime in minutes")

    commands.add_parser("logout", help="End the session")
    commands.add_parser("status", help="Show the session state")

    add = commands.add_parser("add", help="Add or update the credential for a url")
    add.add_argument("url")
    add.add_argument("user")
    add.add_argument("secret", nargs="?", help="Password, or a length to generate one")
    add.add_argument("--title")
    add.add_argument("--note")

    get = commands.add_parser("get", help="Show credentials for a url")
    get.add_argument("url")

    search = commands.add_parser("search", help="Search credentials")
    search.add_argument("keyword")

    update = commands.add_parser("update", help="Update fields of a credential")
    update.add_argument("id")
    update.add_argument("--url")
    update.add_argument("--user")
    secret_group = update.add_mutually_exclusive_group()
    secret_group.add_argument("--password")
    secret_group.add_argument("--length", type=int)
    update.add_argument("--title")
    update.add_argument("--note")

    delete = commands.add_parser("delete", help="Delete a credential")
    delete.add_argument("id")

    export = commands.add_parser("export", help="Export credentials to CSV (plaintext)")
    export.add_argument("path")

    import_ = commands.add_parser("import", help="Import credentials from CSV")
    import_.add_argument("path")

    passkey = commands.add_parser("passkey", help="Passkey commands")
    passkey_commands = passkey.add_subparsers(dest="passkey_command", required=True)

    pk_add = passkey_commands.add_parser("add", help="Add a passkey")
    pk_add.add_argument("rp_id")
    pk_add.add_argument("credential_id")
    pk_add.add_argument("user_handle")
    pk_add.add_argument("public_key")
    pk_add.add_argument("--sign-count", type=int, default=0)
    pk_add.add_argument("--title")
    pk_add.add_argument("--transports")

    pk_get = passkey_commands.add_parser("get", help="Show passkeys for a user")
    pk_get.add_argument("rp_id")
    pk_get.add_argument("user_handle")

    pk_search = passkey_commands.add_parser("search", help="Search passkeys")
    pk_search.add_argument("keyword")

    pk_delete = passkey_commands.add_parser("delete", help="Delete a passkey")
    pk_delete.add_argument("id")

    pk_export = passkey_commands.add_parser("export", help="Export passkeys to CSV")
    pk_export.add_argument("path")

    pk_import = passkey_commands.add_parser("import", help="Import passkeys from CSV")
    pk_import.add_argument("path")

    return parser


def _quoted(pairs: Iterable[tuple[str, Any]]) -> str:
    parts = []
    for name, value in pairs:
        if value is None:
            continue
        if name == "id" or isinstance(value, int):
            parts.append(f"{name}={value}")
        else:
            parts.append(f'{name}="{value}"')
    return " ".join(parts)


def _format_credential(entry: CredentialEntry, with_password: bool) -> str:
    pairs: list[tuple[str, Any]] = []
    if not with_password:
        pairs += [("id", entry.id), ("url", entry.url)]
    pairs.append(("user", entry.username))
    if with_password:
        pairs.append(("password", entry.password))
    pairs += [("title", entry.title), ("note", entry.note)]
    return _quoted(pairs)


def _format_passkey(entry: PasskeyEntry) -> str:
    return _quoted([
        ("id", entry.id),
        ("rp_id", entry.rp_id),
        ("credential_id", entry.credential_id),
        ("user_handle", entry.user_handle),
        ("public_key", entry.public_key),
        ("sign_count", entry.sign_count),
        ("title", entry.title),
        ("transports", entry.transports),
    ])


class _Output:
    def __init__(self, as_json: bool) -> None:
        self.as_json = as_json

    def message(self, text: str, **data: Any) -> None:
        if self.as_json:
            print(json.dumps({"message": text, **data}, ensure_ascii=False))
        else:
            print(text)

    def records(self, entries: Sequence[Any], formatter) -> None:
        if self.as_json:
            print(json.dumps([entry.to_dict() for entry in entries], ensure_ascii=False, indent=2))
        else:
            for entry in entries:
                print(formatter(entry))


def _run_passkey(args: argparse.Namespace, vault: Vault, out: _Output) -> int:
    store = vault.store
    command = args.passkey_command

    if command == "add":
        entry = store.add_passkey(
            args.rp_id, args.credential_id, args.user_handle, args.public_key,
            sign_count=args.sign_count, title=args.title, transports=args.transports,
        )
        out.message(f"Saved: rp_id={entry.rp_id} user_handle={entry.user_handle}", id=entry.id)
    elif command in ("get", "search"):
        if command == "get":
            entries = store.get_passkeys_by_user(args.rp_id, args.user_handle)
            subject = f"rp_id={args.rp_id} user_handle={args.user_handle}"
        else:
            entries = store.search_passkeys(args.keyword)
            subject = f"keyword={args.keyword}"
        if not entries:
            print(f"Not found: {subject}", file=sys.stderr)
            return 1
        out.records(entries, _format_passkey)
    elif command == "delete":
        store.delete_passkey(args.id)
        out.message(f"Deleted: id={args.id}", id=args.id)
    elif command == "export":
        count = export_passkeys(store, args.path)
        out.message(f"Exported {count} passkey(s) to {args.path}", count=count)
    elif command == "import":
        count = import_passkeys(store, args.path)
        out.message(f"Imported {count} passkey(s) from {args.path}", count=count)

    return 0


def _run(args: argparse.Namespace, config: SecureConfig, out: _Output) -> int:
    if args.command in (None, "gen"):
        length = getattr(args, "length", None)
        if length is None:
            length = config.security.default_generate_length
        print(generate_password(length))
        return 0

    vault = open_vault(config)
    store = vault.store

    if args.command == "auth":
        ttl = args.ttl if args.ttl is not None else config.security.default_session_ttl_minutes
        status = vault.guard.authenticate(args.secret, ttl)
        out.message(
            f"Authenticated: valid for {status.remaining} seconds",
            expiry=status.expiry, remaining=status.remaining,
        )
    elif args.command == "logout":
        vault.guard.end_session()
        out.message("Logged out")
    elif args.command == "status":
        status = vault.guard.check()
        out.message(
            f"Session: {status.state.value} (remaining {status.remaining} seconds)",
            state=status.state.value, expiry=status.expiry, remaining=status.remaining,
        )
        return 0 if status.is_active else 1
    elif args.command == "add":
        entry = store.add_credential(args.url, args.user, args.secret, title=args.title, note=args.note)
        out.message(f"Saved: url={entry.url} user={entry.username}", id=entry.id)
    elif args.command == "get":
        entries = store.get_by_url(args.url)
        if not entries:
            print(f"Not found: url={args.url}", file=sys.stderr)
            return 1
        out.records(entries, lambda entry: _format_credential(entry, with_password=True))
    elif args.command == "search":
        entries = store.search(args.keyword)
        if not entries:
            print(f"Not found: keyword={args.keyword}", file=sys.stderr)
            return 1
        out.records(entries, lambda entry: _format_credential(entry, with_password=False))
    elif args.command == "update":
        patch = CredentialPatch(
            url=args.url, username=args.user, password=args.password,
            length=args.length, title=args.title, note=args.note,
        )
        store.update_credential(args.id, patch)
        out.message(f"Updated: id={args.id}", id=args.id)
    elif args.command == "delete":
        store.delete_credential(args.id)
        out.message(f"Deleted: id={args.id}", id=args.id)
    elif args.command == "export":
        count = export_credentials(store, args.path)
        out.message(f"Exported {count} credential(s) to {args.path}", count=count)
    elif args.command == "import":
        count = import_credentials(store, args.path)
        out.message(f"Imported {count} credential(s) from {args.path}", count=count)
    elif args.command == "passkey":
        return _run_passkey(args, vault, out)

    return 0


def _with_generate_shortcut(argv: Sequence[str]) -> list[str]:
    """Treat a bare numeric first argument (`passvault 24`) as `gen 24`."""
    argv = list(argv)
    for index, arg in enumerate(argv):
        if arg.startswith("-"):
            continue
        if arg.isascii() and arg.isdigit():
            argv.insert(index, "gen")
        break
    return argv


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the passvault console script."""
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(_with_generate_shortcut(argv))

    try:
        config = SecureConfig.load()
    except ValueError as e:
        print(f"error: invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config)

    try:
        return _run(args, config, _Output(args.json))
    except VaultError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e.strerror or e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
