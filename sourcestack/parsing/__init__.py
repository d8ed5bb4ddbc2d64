"""
Resume parsing: document bytes to text, text to candidate fields.

Public API:
- DocumentParser: per-file parser with isolated error capture
- TextPipeline: PDF/DOCX to text with OCR fallback
- TesseractOcrService: OCR collaborator backed by the tesseract CLI
"""

from .document_parser import DocumentParser
from .ocr import TesseractOcrService
from .text_pipeline import DocumentText, TextPipeline

__all__ = [
    "DocumentParser",
    "DocumentText",
    "TesseractOcrService",
    "TextPipeline",
]
