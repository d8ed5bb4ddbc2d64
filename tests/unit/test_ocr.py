"""
Unit tests for sourcestack/parsing/ocr.py

These tests mock subprocess execution so no tesseract binary is needed.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import make_pdf
from sourcestack.common.config import SourceStackSettings
from sourcestack.parsing.ocr import TesseractOcrService, render_pages


def _process(returncode=0, stdout=b"", stderr=b""):
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.wait = AsyncMock(return_value=returncode)
    process.kill = MagicMock()
    return process


class TestRenderPages:
    """Tests for render_pages()."""

    def test_one_png_per_page(self, tmp_path):
        """Each page becomes a PNG file."""
        paths = render_pages(make_pdf("Page one"), tmp_path, dpi=72)
        assert len(paths) == 1
        assert paths[0].read_bytes().startswith(b"\x89PNG")


class TestTesseractOcrService:
    """Tests for TesseractOcrService.extract_text()."""

    @pytest.mark.asyncio
    async def test_successful_run(self):
        """Recognized text from stdout is returned."""
        process = _process(stdout=b"Jane Doe\njane@doe.com\n")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as create:
            text = await TesseractOcrService(dpi=72).extract_text(make_pdf("scan"))

        assert text == "Jane Doe\njane@doe.com"
        args = create.call_args.args
        assert args[0] == "tesseract"
        assert args[2:] == ("stdout", "-l", "eng")

    @pytest.mark.asyncio
    async def test_non_zero_exit_returns_empty(self):
        """A failing tesseract run yields empty text."""
        process = _process(returncode=1, stderr=b"Error opening data file")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            text = await TesseractOcrService(dpi=72).extract_text(make_pdf("scan"))
        assert text == ""

    @pytest.mark.asyncio
    async def test_missing_executable_returns_empty(self):
        """A missing binary yields empty text instead of raising."""
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("nope"))):
            text = await TesseractOcrService(tesseract_path="/no/tesseract", dpi=72).extract_text(make_pdf("x"))
        assert text == ""

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        """On timeout the child process is killed and empty text returned."""
        process = _process()
        process.returncode = None

        async def hang():
            await asyncio.sleep(10)

        process.communicate = AsyncMock(side_effect=hang)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            service = TesseractOcrService(timeout_seconds=0.2, dpi=72)
            text = await service.extract_text(make_pdf("scan"))

        assert text == ""
        process.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_unreadable_pdf_returns_empty(self):
        """Rendering failures yield empty text."""
        assert await TesseractOcrService().extract_text(b"garbage") == ""

    def test_from_settings(self):
        """Settings values are applied."""
        settings = SourceStackSettings(tesseract_path="/opt/tess", ocr_timeout_seconds=5, ocr_dpi=300, ocr_language="deu")
        service = TesseractOcrService.from_settings(settings)
        assert service.tesseract_path == "/opt/tess"
        assert service.timeout_seconds == 5
        assert service.dpi == 300
        assert service.language == "deu"
