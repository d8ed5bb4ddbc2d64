"""
Document-to-text pipeline.

Turns raw PDF or DOCX bytes into plain text. PDFs whose extracted text is
too sparse (or that fail to extract at all) are sent through OCR instead;
DOCX files never are.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import PurePath

from sourcestack.common.error_handling import UnsupportedFileTypeError
from sourcestack.parsing.docx_extractor import extract_docx_text
from sourcestack.parsing.pdf_extractor import extract_pdf_text
from sourcestack.services.base import OcrService

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 50
PDF_EXTENSION = ".pdf"
DOCX_EXTENSION = ".docx"
SUPPORTED_EXTENSIONS = (PDF_EXTENSION, DOCX_EXTENSION)


@dataclass(frozen=True)
class DocumentText:
    """Plain text of one document and whether OCR produced it."""

    text: str
    ocr_used: bool = False


def file_extension(file_name: str) -> str:
    """Lower-cased extension including the dot, '' when absent."""
    return PurePath(file_name).suffix.lower()


def is_supported(file_name: str) -> bool:
    return file_extension(file_name) in SUPPORTED_EXTENSIONS


class TextPipeline:
    """Converts document bytes into text, with an OCR fallback for PDFs."""

    def __init__(self, ocr: OcrService, min_text_length: int = MIN_TEXT_LENGTH):
        self.ocr = ocr
        self.min_text_length = min_text_length

    async def to_text(self, file_name: str, data: bytes) -> DocumentText:
        """
        Extract text from a document.

        Args:
            file_name: Name used to pick the extractor (.pdf or .docx, any case)
            data: Raw file bytes

        Returns:
            DocumentText with ocr_used set when OCR supplied the text

        Raises:
            UnsupportedFileTypeError: For any other extension
            Exception: DOCX extraction failures propagate to the caller
        """
        extension = file_extension(file_name)
        if extension == PDF_EXTENSION:
            return await self._pdf_to_text(file_name, data)
        if extension == DOCX_EXTENSION:
            text = await asyncio.to_thread(extract_docx_text, data)
            return DocumentText(text=text)
        raise UnsupportedFileTypeError(file_name)

    async def _pdf_to_text(self, file_name: str, data: bytes) -> DocumentText:
        try:
            text = await asyncio.to_thread(extract_pdf_text, data)
        except Exception as e:
            logger.warning(f"PDF text extraction failed for {file_name}, falling back to OCR: {e}")
            return DocumentText(text=await self.ocr.extract_text(data), ocr_used=True)

        if len(text.strip()) < self.min_text_length:
            logger.info(f"Sparse text in {file_name} ({len(text.strip())} chars), running OCR")
            return DocumentText(text=await self.ocr.extract_text(data), ocr_used=True)

        return DocumentText(text=text)
