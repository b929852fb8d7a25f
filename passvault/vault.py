"""
Vault wiring: configuration -> session guard -> key deriver -> store.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from passvault.core.auth.session_control import (
    FileSessionStore,
    SessionGuard,
    SessionStore,
)
from passvault.core.config import SecureConfig
from passvault.core.crypto.kdf import KeyDeriver
from passvault.db.vault_store import VaultStore


@dataclass(frozen=True)
class Vault:
    """The objects one command invocation works with."""
    config: SecureConfig
    guard: SessionGuard
    store: VaultStore


def open_vault(
    config: Optional[SecureConfig] = None,
    session_store: Optional[SessionStore] = None,
    clock: Callable[[], float] = time.time,
) -> Vault:
    """
    Build a Vault from configuration.

    The master secret is read from the configured environment variable
    once, here. It is both the authentication secret and the key
    derivation input.

    Args:
        config: Configuration (default: SecureConfig.get_instance())
        session_store: Session persistence (default: file under data_dir)
        clock: Source of the current unix time
    """
    config = config or SecureConfig.get_instance()
    config.ensure_directories()

    security = config.security
    secret = security.read_master_secret()

    guard = SessionGuard(
        session_store or FileSessionStore(config.paths.session_path),
        expected_secret=secret,
        env_var=security.secret_env_var,
        clock=clock,
    )
    store = VaultStore(
        config.paths.database_path,
        guard,
        KeyDeriver(secret, security.secret_env_var),
        default_generate_length=security.default_generate_length,
        undecryptable_placeholder=security.undecryptable_placeholder,
    )
    return Vault(config=config, guard=guard, store=store)
