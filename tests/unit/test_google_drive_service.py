"""
Unit tests for sourcestack/services/google_drive_service.py

The Drive v3 resource is a MagicMock injected through service_factory, so no
network access or credentials are needed.
"""

from unittest.mock import MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

from sourcestack.common.error_handling import RemoteApiError, is_retryable
from sourcestack.services.base import DOCX_MIME_TYPE, PDF_MIME_TYPE
from sourcestack.services.google_drive_service import GoogleDriveService, build_folder_query


def _http_error(status: int, content: bytes = b'{"error": {"message": "backend error"}}') -> HttpError:
    return HttpError(httplib2.Response({"status": status}), content)


def _drive_with_pages(*pages):
    drive = MagicMock()
    drive.files.return_value.list.return_value.execute.side_effect = list(pages)
    return drive


class FakeDownloader:
    """MediaIoBaseDownload stand-in writing fixed chunks into the buffer."""

    chunks = [b"%PDF-", b"1.7 body"]

    def __init__(self, fd, request):
        self.fd = fd
        self.request = request
        self._remaining = list(self.chunks)

    def next_chunk(self):
        self.fd.write(self._remaining.pop(0))
        return None, not self._remaining


class TestBuildFolderQuery:
    """Tests for build_folder_query()."""

    def test_restricts_to_folder_and_types(self):
        """The query names the folder, excludes trash and lists both MIME types."""
        query = build_folder_query("abc123")
        assert query.startswith("'abc123' in parents and trashed=false")
        assert f"mimeType='{PDF_MIME_TYPE}'" in query
        assert f"mimeType='{DOCX_MIME_TYPE}'" in query

    def test_escapes_quotes(self):
        """Quotes in the folder id cannot break out of the literal."""
        assert build_folder_query("a'b").startswith("'a\\'b' in parents")


class TestListFiles:
    """Tests for GoogleDriveService.list_files()."""

    @pytest.mark.asyncio
    async def test_follows_page_tokens(self):
        """All pages are collected in order."""
        drive = _drive_with_pages(
            {"files": [{"id": "1", "name": "a.pdf", "mimeType": PDF_MIME_TYPE}], "nextPageToken": "p2"},
            {"files": [{"id": "2", "name": "b.docx", "mimeType": DOCX_MIME_TYPE}]},
        )
        service = GoogleDriveService(service_factory=lambda: drive)

        files = await service.list_files("folder")

        assert [(f.id, f.name) for f in files] == [("1", "a.pdf"), ("2", "b.docx")]
        calls = drive.files.return_value.list.call_args_list
        assert calls[0].kwargs["pageToken"] is None
        assert calls[1].kwargs["pageToken"] == "p2"
        assert calls[0].kwargs["pageSize"] == 1000
        assert calls[0].kwargs["fields"] == "files(id,name,mimeType),nextPageToken"
        assert calls[0].kwargs["supportsAllDrives"] is True

    @pytest.mark.asyncio
    async def test_skips_incomplete_entries(self):
        """Entries missing id, name or MIME type are dropped."""
        drive = _drive_with_pages({"files": [
            {"id": "1", "name": "a.pdf", "mimeType": PDF_MIME_TYPE},
            {"name": "no-id.pdf", "mimeType": PDF_MIME_TYPE},
            {"id": "3", "mimeType": PDF_MIME_TYPE},
        ]})
        files = await GoogleDriveService(service_factory=lambda: drive).list_files("folder")
        assert [f.id for f in files] == ["1"]

    @pytest.mark.asyncio
    async def test_empty_folder(self):
        """A folder without matches lists nothing."""
        drive = _drive_with_pages({})
        assert await GoogleDriveService(service_factory=lambda: drive).list_files("folder") == []

    @pytest.mark.asyncio
    async def test_http_error_mapped(self):
        """HttpError becomes RemoteApiError carrying the status and body."""
        drive = MagicMock()
        drive.files.return_value.list.return_value.execute.side_effect = _http_error(403)

        with pytest.raises(RemoteApiError) as exc_info:
            await GoogleDriveService(service_factory=lambda: drive).list_files("folder")

        assert exc_info.value.status_code == 403
        assert "backend error" in exc_info.value.body
        assert not is_retryable(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_mapped(self):
        """Connection failures become status-less, retryable RemoteApiErrors."""
        drive = MagicMock()
        drive.files.return_value.list.return_value.execute.side_effect = httplib2.ServerNotFoundError("dns")

        with pytest.raises(RemoteApiError) as exc_info:
            await GoogleDriveService(service_factory=lambda: drive).list_files("folder")

        assert exc_info.value.status_code is None
        assert is_retryable(exc_info.value)


class TestDownloadFile:
    """Tests for GoogleDriveService.download_file()."""

    @pytest.mark.asyncio
    async def test_downloads_all_chunks(self):
        """Chunks are concatenated into the returned bytes."""
        drive = MagicMock()
        with patch("sourcestack.services.google_drive_service.MediaIoBaseDownload", FakeDownloader):
            data = await GoogleDriveService(service_factory=lambda: drive).download_file("file-1")

        assert data == b"%PDF-1.7 body"
        drive.files.return_value.get_media.assert_called_once_with(fileId="file-1", supportsAllDrives=True)

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self):
        """A 503 during download maps to a retryable RemoteApiError."""
        drive = MagicMock()
        drive.files.return_value.get_media.side_effect = _http_error(503)

        with pytest.raises(RemoteApiError) as exc_info:
            await GoogleDriveService(service_factory=lambda: drive).download_file("file-1")

        assert exc_info.value.status_code == 503
        assert is_retryable(exc_info.value)


class TestConstruction:
    """Tests for client construction."""

    def test_requires_a_source_of_clients(self):
        """Either credentials or a factory must be given."""
        with pytest.raises(ValueError):
            GoogleDriveService()

    @pytest.mark.asyncio
    async def test_builds_with_provider_credentials(self):
        """The default factory builds a Drive v3 client from provider credentials."""
        provider = MagicMock()
        with patch("sourcestack.services.google_drive_service.build") as build:
            build.return_value = _drive_with_pages({})
            await GoogleDriveService(provider).list_files("folder")

        build.assert_called_once_with(
            "drive", "v3", credentials=provider.get_credentials.return_value, cache_discovery=False
        )
