"""
Google credentials for the Drive and Sheets collaborators.

Two credential sources are supported:
- A service account JSON key (the usual choice for unattended batch runs)
- A cached authorized-user token file, refreshed in place when it is about
  to expire

No interactive consent flow runs here. If neither source is usable,
GoogleAuthError explains how to provide one.
"""

import asyncio
import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError as _GoogleAuthLibError
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account

from sourcestack.common.config import SourceStackSettings
from sourcestack.common.error_handling import RemoteApiError, SourceStackError
from sourcestack.services.base import TokenProvider

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/spreadsheets",
]
REFRESH_MARGIN = timedelta(minutes=5)


class GoogleAuthError(SourceStackError):
    """No usable Google credentials are configured, or they were revoked."""


class GoogleCredentialsProvider(TokenProvider):
    """
    Loads, caches and refreshes Google credentials.

    All loading and refreshing happens under one thread lock, so Drive and
    Sheets calls running in worker threads never refresh the same
    credentials twice at once.
    """

    def __init__(
        self,
        service_account_path: Optional[Path] = None,
        token_path: Optional[Path] = None,
        request_factory=Request,
    ):
        self.service_account_path = Path(service_account_path).expanduser() if service_account_path else None
        self.token_path = Path(token_path).expanduser() if token_path else None
        self._request_factory = request_factory
        self._credentials: Optional[Credentials] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: SourceStackSettings) -> "GoogleCredentialsProvider":
        return cls(
            service_account_path=settings.google_service_account_path,
            token_path=settings.google_token_path,
        )

    def get_credentials(self) -> Credentials:
        """
        Return valid credentials, loading or refreshing them as needed.

        Blocking; call from a worker thread when inside the event loop.

        Raises:
            GoogleAuthError: Nothing configured, or the refresh token was rejected
            RemoteApiError: The token endpoint could not be reached
        """
        with self._lock:
            if self._credentials is None:
                self._credentials = self._load()
            if self._needs_refresh(self._credentials):
                self._refresh(self._credentials)
            return self._credentials

    async def get_access_token(self) -> str:
        credentials = await asyncio.to_thread(self.get_credentials)
        return credentials.token

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear_sync)

    def _clear_sync(self) -> None:
        with self._lock:
            self._credentials = None
            if self.token_path and self.token_path.exists():
                self.token_path.unlink()
                logger.info(f"Deleted cached Google token {self.token_path}")

    def _load(self) -> Credentials:
        if self.service_account_path:
            if not self.service_account_path.exists():
                raise GoogleAuthError(
                    f"Service account file not found: {self.service_account_path}"
                )
            logger.info(f"Using Google service account {self.service_account_path}")
            return service_account.Credentials.from_service_account_file(
                str(self.service_account_path), scopes=SCOPES
            )

        if self.token_path and self.token_path.exists():
            logger.info(f"Using cached Google token {self.token_path}")
            return user_credentials.Credentials.from_authorized_user_file(
                str(self.token_path), SCOPES
            )

        raise GoogleAuthError(
            "No Google credentials configured. Set SOURCESTACK_GOOGLE_SERVICE_ACCOUNT_PATH "
            "to a service account key, or SOURCESTACK_GOOGLE_TOKEN_PATH to an authorized-user "
            "token file."
        )

    @staticmethod
    def _needs_refresh(credentials: Credentials) -> bool:
        if not credentials.token:
            return True
        expiry = credentials.expiry
        if expiry is None:
            return False
        # google-auth stores expiry as naive UTC
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return expiry - datetime.now(timezone.utc) <= REFRESH_MARGIN

    def _refresh(self, credentials: Credentials) -> None:
        try:
            credentials.refresh(self._request_factory())
        except RefreshError as e:
            raise GoogleAuthError(f"Google credentials were rejected: {e}") from e
        except TransportError as e:
            raise RemoteApiError(f"Could not reach Google token endpoint: {e}") from e
        except _GoogleAuthLibError as e:
            raise GoogleAuthError(f"Google authentication failed: {e}") from e

        if isinstance(credentials, user_credentials.Credentials) and self.token_path:
            self._persist(credentials)

    def _persist(self, credentials: user_credentials.Credentials) -> None:
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.token_path.with_suffix(self.token_path.suffix + ".tmp")
        tmp_path.write_text(credentials.to_json(), encoding="utf-8")
        os.replace(tmp_path, self.token_path)
        logger.debug(f"Saved refreshed Google token to {self.token_path}")
