"""
Google Drive file source.

Lists PDF/DOCX resumes in a Drive folder and downloads their content with
the Drive v3 API. The google-api-python-client objects are blocking and not
thread-safe, so every call runs in a worker thread that owns its own API
client.
"""

import asyncio
import io
import logging
import threading
from typing import Any, Callable, List, Optional

import httplib2
from google.auth.exceptions import TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload

from sourcestack.common.error_handling import RemoteApiError
from sourcestack.common.types import RemoteFileRef
from sourcestack.services.base import SUPPORTED_MIME_TYPES, RemoteFileSource
from sourcestack.services.google_auth import GoogleCredentialsProvider

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
LIST_FIELDS = "files(id,name,mimeType),nextPageToken"

_TRANSPORT_ERRORS = (httplib2.HttpLib2Error, TransportError, ConnectionError, TimeoutError)


def build_folder_query(folder_id: str) -> str:
    """Drive search query for supported, non-trashed files in one folder."""
    escaped = folder_id.replace("\\", "\\\\").replace("'", "\\'")
    mime_clause = " or ".join(f"mimeType='{mime}'" for mime in SUPPORTED_MIME_TYPES)
    return f"'{escaped}' in parents and trashed=false and ({mime_clause})"


def _http_error_to_remote(e: HttpError, operation: str) -> RemoteApiError:
    status = getattr(e.resp, "status", None)
    body = e.content.decode("utf-8", errors="replace") if isinstance(e.content, bytes) else str(e.content)
    return RemoteApiError(
        f"Drive {operation} failed",
        status_code=int(status) if status is not None else None,
        body=body,
    )


class GoogleDriveService(RemoteFileSource):
    """RemoteFileSource backed by the Google Drive v3 API."""

    def __init__(
        self,
        credentials_provider: Optional[GoogleCredentialsProvider] = None,
        service_factory: Optional[Callable[[], Any]] = None,
    ):
        """
        Args:
            credentials_provider: Supplies credentials for the default client builder
            service_factory: Returns a Drive v3 resource; called once per worker thread
        """
        if service_factory is None and credentials_provider is None:
            raise ValueError("Either credentials_provider or service_factory is required")
        self._credentials_provider = credentials_provider
        self._service_factory = service_factory or self._build_service
        self._local = threading.local()

    def _build_service(self) -> Any:
        credentials = self._credentials_provider.get_credentials()
        return build("drive", "v3", credentials=credentials, cache_discovery=False)

    def _service(self) -> Any:
        service = getattr(self._local, "service", None)
        if service is None:
            service = self._service_factory()
            self._local.service = service
        return service

    async def list_files(self, folder_id: str) -> List[RemoteFileRef]:
        return await asyncio.to_thread(self._list_files_sync, folder_id)

    async def download_file(self, file_id: str) -> bytes:
        return await asyncio.to_thread(self._download_sync, file_id)

    def _list_files_sync(self, folder_id: str) -> List[RemoteFileRef]:
        query = build_folder_query(folder_id)
        files: List[RemoteFileRef] = []
        page_token = None
        try:
            while True:
                response = self._service().files().list(
                    q=query,
                    fields=LIST_FIELDS,
                    pageSize=PAGE_SIZE,
                    pageToken=page_token,
                    supportsAllDrives=True,
                    includeItemsFromAllDrives=True,
                ).execute()

                for item in response.get("files", []):
                    file_id = item.get("id")
                    name = item.get("name")
                    mime_type = item.get("mimeType")
                    if not (file_id and name and mime_type):
                        logger.debug(f"Skipping incomplete Drive entry: {item}")
                        continue
                    files.append(RemoteFileRef(id=file_id, name=name, mime_type=mime_type))

                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except HttpError as e:
            raise _http_error_to_remote(e, "listing") from e
        except _TRANSPORT_ERRORS as e:
            raise RemoteApiError(f"Drive listing failed: {e}") from e

        logger.info(f"Listed {len(files)} resume files in folder {folder_id}")
        return files

    def _download_sync(self, file_id: str) -> bytes:
        buffer = io.BytesIO()
        try:
            request = self._service().files().get_media(fileId=file_id, supportsAllDrives=True)
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()
        except HttpError as e:
            raise _http_error_to_remote(e, f"download of {file_id}") from e
        except _TRANSPORT_ERRORS as e:
            raise RemoteApiError(f"Drive download of {file_id} failed: {e}") from e
        return buffer.getvalue()
