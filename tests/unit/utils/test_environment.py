"""Unit tests for environment-driven configuration."""

from __future__ import annotations

import base64
import logging
from pathlib import Path

import pytest

from oauth_codeflow.auth.errors import ConfigurationError
from oauth_codeflow.auth.handler import OAuthHandler
from oauth_codeflow.auth.store import DiskCorrelationStore, MemoryCorrelationStore
from oauth_codeflow.utils.environment import (
    _truthy,
    correlation_store_from_env,
    handler_from_env,
    options_from_env,
    state_key_from_env,
)

_BASE_ENV = {
    "OAUTH_CLIENT_ID": "client-123",
    "OAUTH_CLIENT_SECRET": "s3cret",
    "OAUTH_AUTHORIZATION_ENDPOINT": "https://idp.example.com/oauth/authorize",
    "OAUTH_TOKEN_ENDPOINT": "https://idp.example.com/oauth/token",
    "OAUTH_CALLBACK_PATH": "/signin-oauth",
}
_OPTIONAL = (
    "SCOPE",
    "BACKCHANNEL_TIMEOUT",
    "SAVE_TOKENS",
    "SCHEME",
    "USER_INFORMATION_ENDPOINT",
    "STATE_KEY",
    "CORRELATION_DIR",
)


@pytest.fixture()
def env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in _OPTIONAL:
        monkeypatch.delenv(f"OAUTH_{key}", raising=False)
    for key, value in _BASE_ENV.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


@pytest.mark.parametrize("value", ["true", "1", "YES", " on ", "y"])
def test_truthy(value: str) -> None:
    assert _truthy(value)


@pytest.mark.parametrize("value", [None, "", "0", "false", "off", "nope"])
def test_not_truthy(value) -> None:
    assert not _truthy(value)


def test_defaults(env: pytest.MonkeyPatch) -> None:
    options = options_from_env()
    assert options.client_id == "client-123"
    assert options.callback_path == "/signin-oauth"
    assert options.scopes == ()
    assert options.backchannel_timeout == 60.0
    assert options.save_tokens is False
    assert options.scheme_name == "OAuth"
    assert options.user_information_endpoint is None


def test_all_values(env: pytest.MonkeyPatch) -> None:
    env.setenv("OAUTH_SCOPE", "read:user, user:email  repo")
    env.setenv("OAUTH_BACKCHANNEL_TIMEOUT", "7.5")
    env.setenv("OAUTH_SAVE_TOKENS", "true")
    env.setenv("OAUTH_SCHEME", "GitHub")
    env.setenv("OAUTH_USER_INFORMATION_ENDPOINT", "https://api.example.com/user")

    options = options_from_env()
    assert options.scopes == ("read:user", "user:email", "repo")
    assert options.backchannel_timeout == 7.5
    assert options.save_tokens is True
    assert options.scheme_name == "GitHub"
    assert options.user_information_endpoint == "https://api.example.com/user"


def test_custom_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in _BASE_ENV.items():
        monkeypatch.setenv(key.replace("OAUTH_", "GITHUB_"), value)
    assert options_from_env("GITHUB").client_id == "client-123"


def test_missing_callback_path(env: pytest.MonkeyPatch) -> None:
    env.delenv("OAUTH_CALLBACK_PATH")
    with pytest.raises(ConfigurationError) as exc:
        options_from_env()
    assert exc.value.option == "callback_path"


def test_bad_timeout(env: pytest.MonkeyPatch) -> None:
    env.setenv("OAUTH_BACKCHANNEL_TIMEOUT", "soon")
    with pytest.raises(ConfigurationError, match="OAUTH_BACKCHANNEL_TIMEOUT"):
        options_from_env()


# --------------------------------------------------------------------------- #
# State key                                                                   #
# --------------------------------------------------------------------------- #
def test_state_key_decoded(env: pytest.MonkeyPatch) -> None:
    key = bytes(range(32))
    env.setenv("OAUTH_STATE_KEY", base64.urlsafe_b64encode(key).rstrip(b"=").decode())
    assert state_key_from_env() == key


def test_transient_state_key(env: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="oauth-codeflow.utils.environment"):
        key = state_key_from_env()
    assert len(key) == 32
    assert "OAUTH_STATE_KEY not set" in caplog.text
    assert state_key_from_env() != key


@pytest.mark.parametrize("raw", ["@@@@", base64.urlsafe_b64encode(b"short").decode()])
def test_invalid_state_key(env: pytest.MonkeyPatch, raw: str) -> None:
    env.setenv("OAUTH_STATE_KEY", raw)
    with pytest.raises(ConfigurationError) as exc:
        state_key_from_env()
    assert exc.value.option == "state_key"


# --------------------------------------------------------------------------- #
# Assembly                                                                    #
# --------------------------------------------------------------------------- #
def test_memory_store_by_default(env: pytest.MonkeyPatch) -> None:
    store = correlation_store_from_env(options_from_env())
    assert isinstance(store, MemoryCorrelationStore)


def test_disk_store_when_dir_set(env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env.setenv("OAUTH_CORRELATION_DIR", str(tmp_path))
    store = correlation_store_from_env(options_from_env())
    assert isinstance(store, DiskCorrelationStore)
    assert store.base_dir == tmp_path
    assert store.ttl_seconds == 900


@pytest.mark.anyio
async def test_handler_from_env(env: pytest.MonkeyPatch) -> None:
    env.setenv("OAUTH_STATE_KEY", base64.urlsafe_b64encode(b"k" * 32).decode())
    handler = handler_from_env()
    try:
        assert isinstance(handler, OAuthHandler)
        assert handler.options.token_endpoint == "https://idp.example.com/oauth/token"
    finally:
        await handler.aclose()
