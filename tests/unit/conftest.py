"""
Global fixtures for all unit tests.

This conftest provides:
- Environment variable isolation (no real credentials or job directories)
- In-memory fakes for the remote collaborators (Drive, Sheets, OCR, parser)
- Helpers that build real PDF and DOCX documents in memory

These fixtures apply to ALL tests in tests/unit/.
"""

import asyncio
import io
import os
from typing import Dict, List, Optional, Sequence

import fitz  # PyMuPDF
import pytest
from docx import Document

# Set test environment BEFORE any imports so settings never pick up real values
for _key in list(os.environ):
    if _key.startswith("SOURCESTACK_"):
        del os.environ[_key]

from sourcestack.common.config import SourceStackSettings, get_settings  # noqa: E402
from sourcestack.common.error_handling import RemoteApiError  # noqa: E402
from sourcestack.common.types import ExtractionResult, RemoteFileRef  # noqa: E402
from sourcestack.services.base import (  # noqa: E402
    DOCX_MIME_TYPE,
    PDF_MIME_TYPE,
    OcrService,
    RemoteFileSource,
    SpreadsheetSink,
)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """
    Isolate tests from real credentials and the user's job directory.

    Points the jobs root at a temp dir and clears the cached settings.
    """
    monkeypatch.setenv("SOURCESTACK_JOBS_ROOT_PATH", str(tmp_path / "jobs"))
    monkeypatch.delenv("SOURCESTACK_GOOGLE_SERVICE_ACCOUNT_PATH", raising=False)
    monkeypatch.delenv("SOURCESTACK_GOOGLE_TOKEN_PATH", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# === Documents ===

def make_pdf(text: str, link: Optional[str] = None) -> bytes:
    """Build a one-page PDF with the given text (and an optional URI link)."""
    document = fitz.open()
    page = document.new_page()
    y = 72
    for line in text.splitlines() or [""]:
        page.insert_text((72, y), line, fontsize=11)
        y += 14
    if link:
        page.insert_link({
            "kind": fitz.LINK_URI,
            "from": fitz.Rect(72, y, 300, y + 14),
            "uri": link,
        })
    data = document.tobytes()
    document.close()
    return data


def make_docx(paragraphs: Sequence[str], table_cells: Sequence[str] = ()) -> bytes:
    """Build a DOCX with body paragraphs and an optional one-row table."""
    document = Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    if table_cells:
        table = document.add_table(rows=1, cols=len(table_cells))
        for cell, value in zip(table.rows[0].cells, table_cells):
            cell.text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


SAMPLE_RESUME_TEXT = "\n".join([
    "John Michael Doe",
    "Senior Software Engineer",
    "Email: John.Doe@Example.com | Phone: 98765 43210",
    "LinkedIn: https://www.linkedin.com/in/johndoe",
    "GitHub: https://github.com/johndoe",
    "Experience",
    "Built distributed systems in Python for eight years.",
])


@pytest.fixture
def sample_pdf() -> bytes:
    return make_pdf(SAMPLE_RESUME_TEXT)


@pytest.fixture
def sample_docx() -> bytes:
    return make_docx(SAMPLE_RESUME_TEXT.splitlines())


# === Settings ===

@pytest.fixture
def settings(tmp_path) -> SourceStackSettings:
    """Small, fast settings for orchestrator tests."""
    return SourceStackSettings(
        max_concurrent_requests=2,
        spreadsheet_batch_size=2,
        max_retries=3,
        retry_delay_seconds=0.5,
        job_retention_hours=24,
        jobs_root_path=tmp_path / "jobs",
    )


# === Collaborator fakes ===

class FakeOcr(OcrService):
    """OCR fake returning canned text and counting calls."""

    def __init__(self, text: str = ""):
        self.text = text
        self.calls = 0

    async def extract_text(self, pdf_bytes: bytes) -> str:
        self.calls += 1
        return self.text


class FakeDrive(RemoteFileSource):
    """In-memory Drive folder."""

    def __init__(self):
        self.folders: Dict[str, List[RemoteFileRef]] = {}
        self.contents: Dict[str, bytes] = {}
        self.failures: Dict[str, List[Exception]] = {}
        self.download_calls: List[str] = []
        self.list_errors: Dict[str, Exception] = {}
        self.download_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    def add_file(self, folder_id: str, file_id: Optional[str], name: str, data: bytes = b"",
                 mime_type: str = PDF_MIME_TYPE) -> RemoteFileRef:
        ref = RemoteFileRef(id=file_id, name=name, mime_type=mime_type)
        self.folders.setdefault(folder_id, []).append(ref)
        if file_id:
            self.contents[file_id] = data
        return ref

    def fail_download(self, file_id: str, *errors: Exception) -> None:
        """Queue errors raised by the next downloads of file_id."""
        self.failures.setdefault(file_id, []).extend(errors)

    async def list_files(self, folder_id: str) -> List[RemoteFileRef]:
        if folder_id in self.list_errors:
            raise self.list_errors[folder_id]
        return list(self.folders.get(folder_id, []))

    async def download_file(self, file_id: str) -> bytes:
        self.download_calls.append(file_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.download_delay:
                await asyncio.sleep(self.download_delay)
            pending = self.failures.get(file_id)
            if pending:
                raise pending.pop(0)
            if file_id not in self.contents:
                raise RemoteApiError(f"File {file_id} not found", status_code=404)
            return self.contents[file_id]
        finally:
            self.in_flight -= 1


class FakeSheets(SpreadsheetSink):
    """In-memory spreadsheet store mirroring the append rules of the real sink."""

    def __init__(self):
        self.sheets: Dict[str, List[List[str]]] = {}
        self.created_titles: List[str] = []
        self.append_calls: List[tuple] = []
        self.create_error: Optional[Exception] = None

    async def create_spreadsheet(self, title: str) -> str:
        if self.create_error:
            raise self.create_error
        spreadsheet_id = f"sheet-{len(self.created_titles) + 1}"
        self.created_titles.append(title)
        self.sheets[spreadsheet_id] = []
        return spreadsheet_id

    async def append_rows(self, spreadsheet_id: str, rows: Sequence[Sequence[str]],
                          skip_headers: bool = True) -> None:
        self.append_calls.append((spreadsheet_id, [list(r) for r in rows], skip_headers))
        sheet = self.sheets.setdefault(spreadsheet_id, [])
        if not sheet:
            sheet.extend(list(r) for r in rows)
            return
        to_append = rows if skip_headers else rows[1:]
        sheet.extend(list(r) for r in to_append if any(str(c).strip() for c in r))


class FakeParser:
    """DocumentParser stand-in that derives fields from the file name."""

    def __init__(self):
        self.calls: List[str] = []

    async def parse(self, file_name: str, data: bytes) -> ExtractionResult:
        self.calls.append(file_name)
        stem = file_name.rsplit(".", 1)[0]
        return ExtractionResult(
            name=stem.replace("_", " ").title(),
            email=f"{stem}@example.com",
            confidence=0.6,
        )


@pytest.fixture
def fake_drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture
def fake_sheets() -> FakeSheets:
    return FakeSheets()


@pytest.fixture
def fake_parser() -> FakeParser:
    return FakeParser()


@pytest.fixture
def fake_ocr() -> FakeOcr:
    return FakeOcr()

