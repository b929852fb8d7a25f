"""
Shared pytest fixtures for the PassVault test suite.

Autouse fixtures isolate every test from the real environment:
  - HOME / XDG directories -> temp directory (no real vault or session file)
  - PASSVAULT_* and AUTH_SECRET variables -> removed
  - passvault logger -> reset, so handlers never hold a stale stream
"""

import logging
import os

import pytest

from passvault.core import logging as vault_logging
from passvault.core.auth.session_control import MemorySessionStore, SessionGuard
from passvault.core.config import SecureConfig
from passvault.core.crypto.kdf import KeyDeriver
from passvault.db.vault_store import VaultStore

SECRET = "test-secret-123"


class FakeClock:
    """Controllable unix-time source for session tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _reset_vault_logger():
    logger = logging.getLogger(vault_logging.ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if any(isinstance(f, vault_logging.SecureLogFilter) for f in handler.filters):
            handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    vault_logging._configured = False


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / "data"))
    monkeypatch.setenv("XDG_STATE_HOME", str(home / "state"))
    monkeypatch.delenv("AUTH_SECRET", raising=False)

    for name in list(os.environ):
        if name.startswith("PASSVAULT_"):
            monkeypatch.delenv(name)

    SecureConfig.reset_instance()
    _reset_vault_logger()

    yield

    SecureConfig.reset_instance()
    _reset_vault_logger()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def guard(session_store, clock):
    return SessionGuard(session_store, expected_secret=SECRET, clock=clock)


@pytest.fixture
def deriver():
    return KeyDeriver(SECRET)


@pytest.fixture
def store(tmp_path, guard, deriver):
    """VaultStore backed by a temp database, no session yet."""
    return VaultStore(tmp_path / "vault.db", guard, deriver)


@pytest.fixture
def authed_store(store):
    """VaultStore with an active five-minute session."""
    store.guard.authenticate(SECRET, 5)
    return store
