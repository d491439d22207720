"""Shared-secret bearer token: provisioning on disk and request validation."""

from __future__ import annotations

import hmac
import logging
import os
import secrets
from pathlib import Path

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class TokenStore:
    """The token file: 32 hex characters, readable and writable by the owner only."""

    def __init__(self, token_file: Path) -> None:
        self.token_file = token_file

    def exists(self) -> bool:
        return self.token_file.exists()

    def read(self) -> str | None:
        try:
            return self.token_file.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None

    def get_or_create(self) -> str:
        existing = self.read()
        if existing:
            return existing

        token = secrets.token_hex(16)
        self.token_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.token_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(token)
        os.chmod(self.token_file, 0o600)
        logger.info("Auth token written: %s", self.token_file)
        return token

    def remove(self) -> None:
        self.token_file.unlink(missing_ok=True)


class AuthGate:
    """Validates Authorization headers against the stored token.

    With no token file on disk, authentication is not configured yet and
    every request is allowed.
    """

    def __init__(self, store: TokenStore) -> None:
        self.store = store

    @property
    def configured(self) -> bool:
        return self.store.exists()

    def check(self, header: str | None) -> bool:
        expected = self.store.read()
        if expected is None:
            return True
        if not header:
            return False

        provided = header[len(BEARER_PREFIX):] if header.startswith(BEARER_PREFIX) else header
        return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
