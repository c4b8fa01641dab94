"""OAuth 2.0 authorization code core package.

This namespace hosts the building blocks of the relying-party side of the
authorization code grant.  Apart from Starlette's request/response types it
is independent of the web framework.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
protection
    AES-GCM and HMAC protectors for opaque state blobs.
state
    ``AuthProperties`` <-> URL-safe ``state`` codec.
store / correlation
    Single-use anti-CSRF correlation nonces.
backchannel
    Authorization code to token exchange.
tickets
    Ticket construction and the ``on_creating_ticket`` hook.
handler
    ``OAuthHandler`` tying the flow together.
models / options / events / errors
    Records, configuration, hook contexts and exception types.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .errors import ConfigurationError, ProtectionError  # noqa: F401
from .events import (  # noqa: F401
    CreatingTicketContext,
    OAuthEvents,
    RedirectContext,
    RemoteFailureContext,
    TicketReceivedContext,
)
from .handler import OAuthHandler, state_purpose  # noqa: F401
from .log_utils import get_auth_logger, mask_sensitive  # noqa: F401
from .models import (  # noqa: F401
    AuthenticateResult,
    AuthenticationTicket,
    AuthProperties,
    AuthToken,
    Claim,
    Identity,
    TokenResponse,
)
from .options import OAuthOptions  # noqa: F401
from .protection import AesGcmProtector, HmacProtector, Protector  # noqa: F401
from .state import PropertiesDataFormat  # noqa: F401
from .store import CorrelationStore, DiskCorrelationStore, MemoryCorrelationStore  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # errors
    "ConfigurationError",
    "ProtectionError",
    # events
    "CreatingTicketContext",
    "OAuthEvents",
    "RedirectContext",
    "RemoteFailureContext",
    "TicketReceivedContext",
    # handler
    "OAuthHandler",
    "state_purpose",
    # logging helpers
    "get_auth_logger",
    "mask_sensitive",
    # models
    "AuthenticateResult",
    "AuthenticationTicket",
    "AuthProperties",
    "AuthToken",
    "Claim",
    "Identity",
    "TokenResponse",
    # options
    "OAuthOptions",
    # protection
    "AesGcmProtector",
    "HmacProtector",
    "Protector",
    # state
    "PropertiesDataFormat",
    # correlation stores
    "CorrelationStore",
    "DiskCorrelationStore",
    "MemoryCorrelationStore",
]
