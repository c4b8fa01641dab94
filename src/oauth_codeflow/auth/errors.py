"""Exception types raised by the OAuth core.

Per-request failures are never raised: the callback handler returns them as
:class:`~oauth_codeflow.auth.models.AuthenticateResult` values.  Only the
lightweight exceptions below cross module boundaries.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised at startup when a required option is missing or invalid."""

    def __init__(self, option: str, message: str | None = None) -> None:
        super().__init__(message or f"The '{option}' option must be provided.")
        self.option: str = option

    def to_payload(self) -> dict[str, str]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {
            "error": "configuration_error",
            "option": self.option,
            "message": str(self),
        }


class ProtectionError(Exception):
    """Raised by a protector when data cannot be decrypted or verified."""
