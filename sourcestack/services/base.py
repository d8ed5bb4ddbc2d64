"""
Collaborator Interface Definitions

The batch orchestrator and the text pipeline only talk to remote services and
the OCR engine through these interfaces, so implementations (Google APIs,
Tesseract, in-memory fakes) can be swapped without touching the core.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from sourcestack.common.types import RemoteFileRef

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
SUPPORTED_MIME_TYPES = (PDF_MIME_TYPE, DOCX_MIME_TYPE)


class RemoteFileSource(ABC):
    """Lists and downloads resumes from a remote folder."""

    @abstractmethod
    async def list_files(self, folder_id: str) -> List[RemoteFileRef]:
        """
        List supported, non-trashed files in a folder.

        Args:
            folder_id: Remote folder identifier

        Returns:
            Every matching file across all result pages, in listing order

        Raises:
            RemoteApiError: If the listing request fails
        """
        pass

    @abstractmethod
    async def download_file(self, file_id: str) -> bytes:
        """
        Download a file's content.

        Raises:
            RemoteApiError: With status_code set when the server rejected the
                request, None for transport failures
        """
        pass


class SpreadsheetSink(ABC):
    """Receives result rows for a batch job."""

    @abstractmethod
    async def create_spreadsheet(self, title: str) -> str:
        """
        Create a new spreadsheet.

        Returns:
            The new spreadsheet's identifier
        """
        pass

    @abstractmethod
    async def append_rows(
        self,
        spreadsheet_id: str,
        rows: Sequence[Sequence[str]],
        skip_headers: bool = True,
    ) -> None:
        """
        Write rows to the first worksheet.

        When the sheet has no data yet, rows are written from A1 as given.
        Otherwise they are appended below existing data; with
        skip_headers=False the first row is treated as a header and dropped.
        Rows whose cells are all blank are never sent.
        """
        pass


class OcrService(ABC):
    """Recovers text from scanned PDFs."""

    @abstractmethod
    async def extract_text(self, pdf_bytes: bytes) -> str:
        """
        Run OCR over every page.

        Returns:
            Recognized text, or "" on timeout or engine failure (never raises)
        """
        pass


class TokenProvider(ABC):
    """Supplies OAuth bearer tokens for the Google collaborators."""

    @abstractmethod
    async def get_access_token(self) -> str:
        """Return a valid access token, refreshing cached credentials if needed."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Forget cached credentials, including any token file on disk."""
        pass
