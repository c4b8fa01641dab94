"""
Unit tests for the state codec and its protectors.

These tests are CI-safe (no network), cover:
* Protect / unprotect happy-path for both protectors
* Single-character tamper detection over the whole state string
* Malformed, truncated and foreign input
"""

from __future__ import annotations

import base64
import re

import pytest

from oauth_codeflow.auth.errors import ProtectionError
from oauth_codeflow.auth.models import AuthProperties, AuthToken
from oauth_codeflow.auth.protection import AesGcmProtector, HmacProtector
from oauth_codeflow.auth.state import PropertiesDataFormat

URL_SAFE_RE = re.compile(r"^[A-Za-z0-9_-]+$")
KEY = b"k" * 32


def _props() -> AuthProperties:
    return AuthProperties(
        items={".xsrf": "nonce-1", "tenant": "acme"},
        redirect_uri="/private?page=2",
        tokens=[AuthToken("access_token", "tok")],
    )


@pytest.fixture()
def fmt() -> PropertiesDataFormat:
    return PropertiesDataFormat(AesGcmProtector(KEY, purpose="test|OAuth|v1"))


# --------------------------------------------------------------------------- #
# HAPPY PATH                                                                  #
# --------------------------------------------------------------------------- #
def test_round_trip(fmt: PropertiesDataFormat) -> None:
    state = fmt.protect(_props())
    assert URL_SAFE_RE.match(state)
    assert fmt.unprotect(state) == _props()


def test_round_trip_without_redirect(fmt: PropertiesDataFormat) -> None:
    restored = fmt.unprotect(fmt.protect(AuthProperties()))
    assert restored == AuthProperties()


def test_state_is_not_readable(fmt: PropertiesDataFormat) -> None:
    state = fmt.protect(_props())
    assert b"acme" not in base64.urlsafe_b64decode(state + "=" * (-len(state) % 4))


def test_same_properties_give_different_state(fmt: PropertiesDataFormat) -> None:
    assert fmt.protect(_props()) != fmt.protect(_props())


def test_hmac_round_trip() -> None:
    fmt = PropertiesDataFormat(HmacProtector("secret", purpose="p"))
    assert fmt.unprotect(fmt.protect(_props())) == _props()


# --------------------------------------------------------------------------- #
# TAMPER / MALFORMED                                                          #
# --------------------------------------------------------------------------- #
@pytest.mark.parametrize("protector", [
    AesGcmProtector(KEY, purpose="p"),
    HmacProtector("secret", purpose="p"),
], ids=["aes-gcm", "hmac"])
def test_any_single_character_change_is_rejected(protector) -> None:
    fmt = PropertiesDataFormat(protector)
    state = fmt.protect(_props())
    for index, char in enumerate(state):
        replacement = "A" if char != "A" else "B"
        tampered = state[:index] + replacement + state[index + 1:]
        assert fmt.unprotect(tampered) is None, f"tamper at {index} accepted"


@pytest.mark.parametrize("value", [None, "", "!!!", "not-a-state", "é", "a/b?c"])
def test_malformed_input_returns_none(fmt: PropertiesDataFormat, value) -> None:
    assert fmt.unprotect(value) is None


def test_truncated_state_is_rejected(fmt: PropertiesDataFormat) -> None:
    state = fmt.protect(_props())
    assert fmt.unprotect(state[:10]) is None
    assert fmt.unprotect(state[:-4]) is None


def test_state_from_other_purpose_is_rejected() -> None:
    github = PropertiesDataFormat(AesGcmProtector(KEY, purpose="GitHub"))
    gitlab = PropertiesDataFormat(AesGcmProtector(KEY, purpose="GitLab"))
    assert gitlab.unprotect(github.protect(_props())) is None


def test_state_from_other_key_is_rejected(fmt: PropertiesDataFormat) -> None:
    other = PropertiesDataFormat(AesGcmProtector(b"x" * 32, purpose="test|OAuth|v1"))
    assert fmt.unprotect(other.protect(_props())) is None


def test_unknown_layout_is_rejected() -> None:
    protector = HmacProtector("secret")
    fmt = PropertiesDataFormat(protector)
    for doc in (b'{"v":2,"items":{},"redirect_uri":null,"tokens":[]}',
                b'{"v":1,"items":{"a":1},"redirect_uri":null,"tokens":[]}',
                b'{"v":1,"items":{},"redirect_uri":null,"tokens":[["only-name"]]}',
                b"[1,2,3]"):
        blob = protector.protect(doc)
        state = base64.urlsafe_b64encode(blob).rstrip(b"=").decode()
        assert fmt.unprotect(state) is None


# --------------------------------------------------------------------------- #
# PROTECTORS                                                                  #
# --------------------------------------------------------------------------- #
def test_aes_key_length_is_checked() -> None:
    with pytest.raises(ValueError):
        AesGcmProtector(b"short")


def test_generated_key_is_usable() -> None:
    protector = AesGcmProtector(AesGcmProtector.generate_key())
    assert protector.unprotect(protector.protect(b"hello")) == b"hello"


def test_aes_truncated_payload_raises() -> None:
    with pytest.raises(ProtectionError):
        AesGcmProtector(KEY).unprotect(b"\x00" * 12)


def test_hmac_requires_secret() -> None:
    with pytest.raises(ValueError):
        HmacProtector("")


def test_hmac_signature_mismatch_raises() -> None:
    blob = HmacProtector("one").protect(b"payload")
    with pytest.raises(ProtectionError):
        HmacProtector("two").unprotect(blob)
