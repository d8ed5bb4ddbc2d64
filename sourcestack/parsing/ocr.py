"""
Tesseract OCR fallback.

Each PDF page is rendered to a PNG with PyMuPDF and fed to the tesseract
executable through an asyncio subprocess. The whole document shares one
timeout; on timeout the running process is killed.

Every failure mode (timeout, non-zero exit, missing executable, unreadable
PDF) is logged and produces an empty string so the caller can carry on with
whatever text it already has.
"""

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF

from sourcestack.common.config import SourceStackSettings
from sourcestack.services.base import OcrService

logger = logging.getLogger(__name__)


def render_pages(pdf_bytes: bytes, output_dir: Path, dpi: int = 200) -> List[Path]:
    """
    Render every page of a PDF to PNG files.

    Returns:
        Paths of the written images, in page order
    """
    zoom = dpi / 72.0
    matrix = fitz.Matrix(zoom, zoom)
    paths = []
    with fitz.open(stream=pdf_bytes, filetype="pdf") as document:
        for page_num, page in enumerate(document):
            pixmap = page.get_pixmap(matrix=matrix)
            path = output_dir / f"page-{page_num + 1:04d}.png"
            pixmap.save(str(path))
            paths.append(path)
    return paths


class TesseractOcrService(OcrService):
    """OCR collaborator backed by the tesseract command line tool."""

    def __init__(
        self,
        tesseract_path: str = "tesseract",
        timeout_seconds: float = 120.0,
        dpi: int = 200,
        language: str = "eng",
    ):
        self.tesseract_path = tesseract_path
        self.timeout_seconds = timeout_seconds
        self.dpi = dpi
        self.language = language

    @classmethod
    def from_settings(cls, settings: SourceStackSettings) -> "TesseractOcrService":
        return cls(
            tesseract_path=settings.tesseract_path,
            timeout_seconds=settings.ocr_timeout_seconds,
            dpi=settings.ocr_dpi,
            language=settings.ocr_language,
        )

    async def extract_text(self, pdf_bytes: bytes) -> str:
        work_dir = Path(tempfile.mkdtemp(prefix="sourcestack-ocr-"))
        try:
            return await asyncio.wait_for(
                self._ocr_document(pdf_bytes, work_dir),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"OCR timed out after {self.timeout_seconds}s")
            return ""
        except FileNotFoundError:
            logger.warning(f"Tesseract executable not found: {self.tesseract_path}")
            return ""
        except Exception as e:
            logger.warning(f"OCR failed: {type(e).__name__}: {e}")
            return ""
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    async def _ocr_document(self, pdf_bytes: bytes, work_dir: Path) -> str:
        pages = await asyncio.to_thread(render_pages, pdf_bytes, work_dir, self.dpi)
        texts = []
        for page_path in pages:
            text = await self._run_tesseract(page_path)
            if text is None:
                return ""
            if text.strip():
                texts.append(text.strip())
        return "\n".join(texts)

    async def _run_tesseract(self, image_path: Path) -> Optional[str]:
        """Run tesseract on one image; None on non-zero exit."""
        process = await asyncio.create_subprocess_exec(
            self.tesseract_path,
            str(image_path),
            "stdout",
            "-l",
            self.language,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Outer wait_for timed out; make sure the child does not linger
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        if process.returncode != 0:
            logger.warning(
                f"Tesseract exited with code {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()[:200]}"
            )
            return None
        return stdout.decode("utf-8", errors="replace")
