"""
Credential Store for Gmail Bridge.

This module provides a standardized interface for loading the client
registration and for loading and saving the granted token, using local JSON
files for persistence.
"""

import os
import json
import logging
import stat
import tempfile
from abc import ABC, abstractmethod
from typing import Optional

from .errors import TokenPersistError
from .models import ClientRegistration, GrantedToken
from .oauth_config import OAuthConfig

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Abstract base class for registration and token storage."""

    @abstractmethod
    def load_registration(self) -> Optional[ClientRegistration]:
        """Load the client registration, or None if not configured."""
        pass

    @abstractmethod
    def load_token(self) -> Optional[GrantedToken]:
        """Load the granted token, or None if there is none."""
        pass

    @abstractmethod
    def save_token(self, token: GrantedToken) -> bool:
        """Persist the granted token."""
        pass

    @abstractmethod
    def registration_exists(self) -> bool:
        """Check whether a registration document is present."""
        pass

    @abstractmethod
    def token_exists(self) -> bool:
        """Check whether a token document is present."""
        pass


class LocalDirectoryCredentialStore(CredentialStore):
    """Credential store that keeps credentials.json and token.json in one directory."""

    def __init__(self, config: Optional[OAuthConfig] = None) -> None:
        """
        Initialize the local credential store.

        Args:
            config: OAuth configuration. The directory is not created until
                    the first token is written.
        """
        config = config or OAuthConfig()
        self.base_dir = config.config_dir
        self.credentials_path = config.credentials_path
        self.token_path = config.token_path
        logger.debug(f"LocalDirectoryCredentialStore initialized: {self.base_dir}")

    def _ensure_dir_exists(self) -> None:
        """Ensure the config directory exists."""
        if not os.path.exists(self.base_dir):
            os.makedirs(self.base_dir, exist_ok=True)
            logger.info(f"Created config directory: {self.base_dir}")

    def _read_json(self, path: str, label: str) -> Optional[object]:
        if not os.path.exists(path):
            logger.debug(f"No {label} file found at {path}")
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading {label} from {path}: {e}")
            return None

    def load_registration(self) -> Optional[ClientRegistration]:
        """Load the client registration from credentials.json."""
        document = self._read_json(self.credentials_path, "credentials")
        if document is None:
            return None

        try:
            registration = ClientRegistration.from_document(document)  # type: ignore[arg-type]
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Invalid credentials file {self.credentials_path}: {e}")
            return None

        logger.debug(f"Loaded {registration.kind.value} client registration")
        return registration

    def load_token(self) -> Optional[GrantedToken]:
        """Load the granted token from token.json."""
        document = self._read_json(self.token_path, "token")
        if document is None:
            return None

        try:
            token = GrantedToken.from_dict(document)  # type: ignore[arg-type]
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid token file {self.token_path}: {e}")
            return None

        logger.debug("Loaded stored token")
        return token

    def save_token(self, token: GrantedToken) -> bool:
        """
        Store the token atomically.

        The document is written to a temp file next to token.json and renamed
        over it, so a failed write leaves the previous token intact.

        Raises:
            TokenPersistError: If the token cannot be written.
        """
        try:
            self._ensure_dir_exists()
            fd, temp_path = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
        except OSError as e:
            logger.error(f"Error preparing token file in {self.base_dir}: {e}")
            raise TokenPersistError(f"Could not write token to {self.token_path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(token.to_dict(), f, indent=2)
            os.chmod(temp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(temp_path, self.token_path)
        except (IOError, OSError, TypeError, ValueError) as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            logger.error(f"Error storing token to {self.token_path}: {e}")
            raise TokenPersistError(f"Could not write token to {self.token_path}: {e}") from e

        logger.info(f"Stored token in {self.token_path}")
        return True

    def registration_exists(self) -> bool:
        return os.path.exists(self.credentials_path)

    def token_exists(self) -> bool:
        return os.path.exists(self.token_path)

    def token_fingerprint(self) -> Optional[bytes]:
        """Raw bytes of token.json, or None if it does not exist."""
        if not self.token_exists():
            return None
        with open(self.token_path, "rb") as f:
            return f.read()
