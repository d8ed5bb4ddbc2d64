"""
Unit tests for the document-to-text pipeline.

Covers:
- PDF text and hyperlink extraction (PyMuPDF documents built in memory)
- DOCX paragraph and table extraction (python-docx documents built in memory)
- OCR fallback policy for sparse or unreadable PDFs
- Unsupported extensions
"""

import pytest

from conftest import FakeOcr, make_docx, make_pdf
from sourcestack.common.error_handling import UnsupportedFileTypeError
from sourcestack.parsing.docx_extractor import extract_docx_text
from sourcestack.parsing.pdf_extractor import extract_pdf_text, scan_raw_urls
from sourcestack.parsing.text_pipeline import TextPipeline, file_extension, is_supported

LONG_TEXT = "Jane Doe\nData Engineer with a decade of pipeline experience in Python and SQL."


class TestPdfExtractor:
    """Tests for extract_pdf_text()."""

    def test_page_text(self):
        """Text drawn on the page is returned."""
        text = extract_pdf_text(make_pdf(LONG_TEXT))
        assert "Jane Doe" in text
        assert "Data Engineer" in text

    def test_link_annotations_appended(self):
        """URI link annotations are appended after the page text."""
        data = make_pdf(LONG_TEXT, link="https://github.com/janedoe")
        text = extract_pdf_text(data)
        lines = text.splitlines()
        assert "https://github.com/janedoe" in lines
        assert lines.index("https://github.com/janedoe") > lines.index("Jane Doe")

    def test_links_deduplicated(self):
        """A URL found both as annotation and in raw bytes appears once."""
        data = make_pdf(LONG_TEXT, link="https://www.linkedin.com/in/janedoe")
        text = extract_pdf_text(data)
        assert text.lower().count("https://www.linkedin.com/in/janedoe") == 1

    def test_scan_raw_urls(self):
        """Raw byte scan stops at delimiters."""
        data = b"/URI (https://example.com/a)>> junk http://x.io/b' more"
        assert scan_raw_urls(data) == ["https://example.com/a", "http://x.io/b"]

    def test_invalid_pdf_raises(self):
        """Garbage bytes raise from the extractor."""
        with pytest.raises(Exception):
            extract_pdf_text(b"definitely not a pdf")


class TestDocxExtractor:
    """Tests for extract_docx_text()."""

    def test_paragraphs_in_order(self):
        """Paragraph text is joined with newlines in document order."""
        data = make_docx(["Jane Doe", "", "jane@doe.com"])
        assert extract_docx_text(data) == "Jane Doe\njane@doe.com"

    def test_table_cells_included(self):
        """Paragraphs inside table cells are extracted too."""
        data = make_docx(["Jane Doe"], table_cells=["Phone", "98765 43210"])
        text = extract_docx_text(data)
        assert text.splitlines() == ["Jane Doe", "Phone", "98765 43210"]


class TestExtensions:
    """Tests for extension helpers."""

    def test_case_insensitive(self):
        """Extensions match regardless of case."""
        assert file_extension("CV.PDF") == ".pdf"
        assert is_supported("Resume.DocX")

    def test_unsupported(self):
        """Other extensions are not supported."""
        assert not is_supported("resume.doc")
        assert not is_supported("resume")


class TestTextPipeline:
    """Tests for TextPipeline.to_text()."""

    @pytest.mark.asyncio
    async def test_pdf_with_enough_text_skips_ocr(self):
        """Dense PDFs are not sent to OCR."""
        ocr = FakeOcr("ocr text")
        result = await TextPipeline(ocr).to_text("cv.pdf", make_pdf(LONG_TEXT))
        assert result.ocr_used is False
        assert "Data Engineer" in result.text
        assert ocr.calls == 0

    @pytest.mark.asyncio
    async def test_sparse_pdf_uses_ocr(self):
        """Under 50 characters of text triggers OCR."""
        ocr = FakeOcr("Recovered Name\nrecovered@example.com")
        result = await TextPipeline(ocr).to_text("scan.pdf", make_pdf("Hi"))
        assert result.ocr_used is True
        assert result.text == "Recovered Name\nrecovered@example.com"
        assert ocr.calls == 1

    @pytest.mark.asyncio
    async def test_broken_pdf_uses_ocr(self):
        """Extraction failures fall back to OCR instead of raising."""
        ocr = FakeOcr("")
        result = await TextPipeline(ocr).to_text("broken.pdf", b"not a pdf")
        assert result.ocr_used is True
        assert result.text == ""

    @pytest.mark.asyncio
    async def test_docx_never_uses_ocr(self):
        """DOCX text is used as-is even when short."""
        ocr = FakeOcr("ocr text")
        result = await TextPipeline(ocr).to_text("cv.DOCX", make_docx(["Hi"]))
        assert result.text == "Hi"
        assert result.ocr_used is False
        assert ocr.calls == 0

    @pytest.mark.asyncio
    async def test_unsupported_extension(self):
        """Unknown extensions raise UnsupportedFileTypeError."""
        with pytest.raises(UnsupportedFileTypeError, match="Unsupported file type: notes.txt"):
            await TextPipeline(FakeOcr()).to_text("notes.txt", b"hello")
