"""Byte-level protection primitives for the ``state`` parameter.

A *protector* turns plaintext bytes into an opaque, tamper-evident blob and
back.  Two implementations are provided:

``AesGcmProtector``
    AES-256-GCM authenticated encryption from :pypi:`cryptography`.  The
    payload is confidential and any modification is detected.
``HmacProtector``
    HMAC-SHA256 signature appended to the plaintext.  Authenticates only; use
    it when the state carries nothing confidential.

Both bind their output to a *purpose* string (passed as associated data /
mixed into the MAC) so a blob produced for one scheme cannot be replayed
against another.  Keys and plaintext are never logged.
"""

from __future__ import annotations

import hmac
import os
from hashlib import sha256
from typing import Final, Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from oauth_codeflow.auth.errors import ProtectionError

_NONCE_LEN: Final[int] = 12
_MAC_LEN: Final[int] = 32


@runtime_checkable
class Protector(Protocol):
    """Encrypt+authenticate / decrypt+verify over byte strings."""

    def protect(self, plaintext: bytes) -> bytes: ...

    def unprotect(self, protected: bytes) -> bytes:
        """Return the plaintext or raise :class:`ProtectionError`."""
        ...


class AesGcmProtector:
    """AES-GCM protector; output layout is ``nonce || ciphertext+tag``."""

    def __init__(self, key: bytes, *, purpose: str = "") -> None:
        if len(key) not in (16, 24, 32):
            raise ValueError("AES-GCM key must be 16, 24 or 32 bytes")
        self._aead = AESGCM(key)
        self._aad = purpose.encode("utf-8")

    @staticmethod
    def generate_key() -> bytes:
        return AESGCM.generate_key(bit_length=256)

    def protect(self, plaintext: bytes) -> bytes:
        nonce = os.urandom(_NONCE_LEN)
        return nonce + self._aead.encrypt(nonce, plaintext, self._aad)

    def unprotect(self, protected: bytes) -> bytes:
        if len(protected) <= _NONCE_LEN:
            raise ProtectionError("protected payload is truncated")
        nonce, ciphertext = protected[:_NONCE_LEN], protected[_NONCE_LEN:]
        try:
            return self._aead.decrypt(nonce, ciphertext, self._aad)
        except InvalidTag:
            raise ProtectionError("protected payload failed verification") from None


class HmacProtector:
    """HMAC-SHA256 protector; output layout is ``plaintext || mac``."""

    def __init__(self, secret: str | bytes, *, purpose: str = "") -> None:
        if not secret:
            raise ValueError("HMAC secret must not be empty")
        self._secret = secret.encode("utf-8") if isinstance(secret, str) else secret
        self._purpose = purpose.encode("utf-8")

    def _sign(self, message: bytes) -> bytes:
        return hmac.new(self._secret, msg=self._purpose + b"\x00" + message, digestmod=sha256).digest()

    def protect(self, plaintext: bytes) -> bytes:
        return plaintext + self._sign(plaintext)

    def unprotect(self, protected: bytes) -> bytes:
        if len(protected) < _MAC_LEN:
            raise ProtectionError("protected payload is truncated")
        message, mac = protected[:-_MAC_LEN], protected[-_MAC_LEN:]
        if not hmac.compare_digest(mac, self._sign(message)):
            raise ProtectionError("protected payload signature mismatch")
        return message
