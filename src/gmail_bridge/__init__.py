"""Gmail Bridge - durable OAuth2 credentials for Gmail API clients.

This package turns a one-time Google authorization into an auto-refreshing
access token that downstream Gmail API code can use without user interaction.
"""
from .auth import AuthSession, AuthorizedSession, OAuthConfig

__version__ = "0.1.0"
__all__ = ["AuthSession", "AuthorizedSession", "OAuthConfig"]
