"""Bearer-token authentication for the web surface."""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Dict, Mapping, Optional, Protocol

from .persistence.base import ANONYMOUS_USER

logger = logging.getLogger(__name__)


class AuthError(RuntimeError):
    """Raised when a token cannot be verified."""


class AuthProvider(Protocol):
    def verify(self, token: str) -> str:  # pragma: no cover - interface
        ...


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class StaticTokenAuthProvider:
    """Verifies tokens against configured SHA-256 hashes."""

    def __init__(self, token_hashes: Mapping[str, str] | None = None) -> None:
        self._hashes: Dict[str, str] = {key.lower(): value for key, value in (token_hashes or {}).items()}

    def verify(self, token: str) -> str:
        if not token:
            raise AuthError("Missing token")
        digest = hash_token(token)
        for known, user_id in self._hashes.items():
            if secrets.compare_digest(known, digest):
                return user_id
        raise AuthError("Unknown token")


def resolve_user(auth: Optional[AuthProvider], token: Optional[str]) -> str:
    if auth is None or not token:
        return ANONYMOUS_USER
    try:
        return auth.verify(token)
    except AuthError as exc:
        logger.warning("Rejected token, continuing as %s: %s", ANONYMOUS_USER, exc)
        return ANONYMOUS_USER
