import hashlib

import pytest

from taskpilot.auth import AuthError, StaticTokenAuthProvider, hash_token, resolve_user
from taskpilot.persistence import ANONYMOUS_USER


def test_hash_token_is_sha256_hex():
    assert hash_token("secret") == hashlib.sha256(b"secret").hexdigest()


def test_verify_known_and_unknown_tokens():
    provider = StaticTokenAuthProvider({hash_token("secret"): "alice"})

    assert provider.verify("secret") == "alice"
    with pytest.raises(AuthError):
        provider.verify("guess")
    with pytest.raises(AuthError):
        provider.verify("")


def test_configured_hashes_are_case_insensitive():
    provider = StaticTokenAuthProvider({hash_token("secret").upper(): "alice"})

    assert provider.verify("secret") == "alice"


def test_resolve_user_falls_back_to_anonymous():
    provider = StaticTokenAuthProvider({hash_token("secret"): "alice"})

    assert resolve_user(provider, "secret") == "alice"
    assert resolve_user(provider, "guess") == ANONYMOUS_USER
    assert resolve_user(provider, None) == ANONYMOUS_USER
    assert resolve_user(None, "secret") == ANONYMOUS_USER
