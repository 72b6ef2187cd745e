"""OAuth2 credential providers injected into the mailbox client."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

import requests

from .errors import ConfigError

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Refresh this many seconds before the access token actually expires
EXPIRY_MARGIN_SEC = 60


class CredentialProvider(ABC):
    """Abstract source of OAuth2 access tokens."""

    @abstractmethod
    def get_access_token(self) -> str:
        """Return a currently valid access token.

        Raises:
            ConfigError: If no valid token can be obtained
        """
        pass


class StaticTokenProvider(CredentialProvider):
    """Provider for an access token obtained elsewhere."""

    def __init__(self, access_token: str):
        if not access_token:
            raise ConfigError("Access token is empty")
        self.access_token = access_token

    def get_access_token(self) -> str:
        return self.access_token


class OAuth2RefreshTokenProvider(CredentialProvider):
    """Exchanges a long-lived refresh token for short-lived access tokens.

    The access token is cached in memory only and refreshed shortly before it
    expires.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_url: str = GOOGLE_TOKEN_URL,
        timeout: float = 30.0,
    ):
        """Initialize the provider.

        Args:
            client_id: OAuth2 client ID
            client_secret: OAuth2 client secret
            refresh_token: OAuth2 refresh token
            token_url: Token endpoint
            timeout: HTTP timeout in seconds
        """
        if not refresh_token or not client_id or not client_secret:
            raise ConfigError("Missing OAuth2 credentials for token refresh")

        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_url = token_url
        self.timeout = timeout
        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def get_access_token(self) -> str:
        with self._lock:
            if self._access_token is None or time.monotonic() >= self._expires_at:
                self._refresh()
            return self._access_token

    def _refresh(self):
        """Request a new access token from the token endpoint."""
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
            "grant_type": "refresh_token",
        }

        try:
            response = requests.post(self.token_url, data=data, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise ConfigError(f"Unable to refresh OAuth2 access token: {e}") from e
        except ValueError as e:
            raise ConfigError(f"Token endpoint returned invalid JSON: {e}") from e

        if "access_token" not in payload:
            raise ConfigError("Token endpoint response has no access_token")

        expires_in = int(payload.get("expires_in", 3600))
        self._access_token = payload["access_token"]
        self._expires_at = time.monotonic() + max(expires_in - EXPIRY_MARGIN_SEC, 0)
        logger.info(f"Refreshed OAuth2 access token (expires in {expires_in}s)")
