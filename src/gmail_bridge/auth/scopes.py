"""
Google OAuth Scopes for Gmail Bridge.

This module defines the OAuth scopes requested for Gmail access.
"""

from typing import List

GMAIL_READONLY_SCOPE = "https://www.googleapis.com/auth/gmail.readonly"
GMAIL_SEND_SCOPE = "https://www.googleapis.com/auth/gmail.send"
GMAIL_COMPOSE_SCOPE = "https://www.googleapis.com/auth/gmail.compose"
GMAIL_MODIFY_SCOPE = "https://www.googleapis.com/auth/gmail.modify"
GMAIL_LABELS_SCOPE = "https://www.googleapis.com/auth/gmail.labels"

# Combined scopes for Gmail Bridge
SCOPES = [
    GMAIL_READONLY_SCOPE,
    GMAIL_SEND_SCOPE,
    GMAIL_COMPOSE_SCOPE,
    GMAIL_MODIFY_SCOPE,
    GMAIL_LABELS_SCOPE,
]


def get_scopes() -> List[str]:
    """
    Get the list of OAuth scopes required for Gmail Bridge.

    Returns:
        List of unique OAuth scopes, in request order.
    """
    return list(dict.fromkeys(SCOPES))
