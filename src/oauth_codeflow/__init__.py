"""Relying-party side of the OAuth 2.0 authorization code grant."""

from oauth_codeflow.auth import OAuthHandler, OAuthOptions  # noqa: F401

__version__ = "0.1.0"
