"""Tests for token provisioning and the auth gate."""

from __future__ import annotations

import os
import re
import stat
from pathlib import Path

import pytest

from contexthub.auth import AuthGate, TokenStore


@pytest.fixture
def store(tmp_path: Path) -> TokenStore:
    return TokenStore(tmp_path / ".contexthub" / "context-hub.token")


class TestTokenStore:
    def test_read_missing(self, store: TokenStore):
        assert store.read() is None
        assert not store.exists()

    def test_create(self, store: TokenStore):
        token = store.get_or_create()
        assert re.fullmatch(r"[0-9a-f]{32}", token)
        assert store.read() == token

    def test_owner_only_permissions(self, store: TokenStore):
        store.get_or_create()
        assert stat.S_IMODE(os.stat(store.token_file).st_mode) == 0o600

    def test_idempotent(self, store: TokenStore):
        assert store.get_or_create() == store.get_or_create()

    def test_reads_existing_with_whitespace(self, store: TokenStore):
        store.token_file.parent.mkdir(parents=True)
        store.token_file.write_text("abc123\n", encoding="utf-8")
        assert store.get_or_create() == "abc123"

    def test_remove(self, store: TokenStore):
        store.get_or_create()
        store.remove()
        assert not store.exists()
        store.remove()  # missing file is fine


class TestAuthGate:
    def test_open_when_unconfigured(self, store: TokenStore):
        gate = AuthGate(store)
        assert not gate.configured
        assert gate.check(None)
        assert gate.check("Bearer anything")

    def test_requires_header_once_configured(self, store: TokenStore):
        store.get_or_create()
        gate = AuthGate(store)
        assert gate.configured
        assert not gate.check(None)
        assert not gate.check("")

    def test_accepts_bearer_and_raw(self, store: TokenStore):
        token = store.get_or_create()
        gate = AuthGate(store)
        assert gate.check(f"Bearer {token}")
        assert gate.check(token)

    def test_rejects_wrong_token(self, store: TokenStore):
        token = store.get_or_create()
        gate = AuthGate(store)
        assert not gate.check("Bearer nope")
        assert not gate.check(f"bearer {token}")
        assert not gate.check(f"Bearer {token}x")
