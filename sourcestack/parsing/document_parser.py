"""
Resume parser.

Runs one document through the text pipeline and the field extractor. This is
the per-file error boundary: any failure becomes an error message on a
zero-confidence ExtractionResult instead of an exception.
"""

import logging

from sourcestack.common.error_handling import UnsupportedFileTypeError
from sourcestack.common.types import ExtractionResult
from sourcestack.parsing import field_extractor
from sourcestack.parsing.text_pipeline import TextPipeline, is_supported

logger = logging.getLogger(__name__)


class DocumentParser:
    """Extracts candidate fields from PDF and DOCX resumes."""

    def __init__(self, pipeline: TextPipeline, default_country_code: str = field_extractor.DEFAULT_COUNTRY_CODE):
        self.pipeline = pipeline
        self.default_country_code = default_country_code

    async def parse(self, file_name: str, data: bytes) -> ExtractionResult:
        """
        Parse one resume.

        Never raises; unsupported types and extraction failures are reported
        in ExtractionResult.errors with confidence 0.
        """
        if not is_supported(file_name):
            return ExtractionResult.failed(f"Unsupported file type: {file_name}")

        try:
            document = await self.pipeline.to_text(file_name, data)
            return self.extract_fields(document.text, document.ocr_used)
        except UnsupportedFileTypeError as e:
            return ExtractionResult.failed(str(e))
        except Exception as e:
            logger.warning(f"Failed to parse {file_name}: {e}")
            return ExtractionResult.failed(f"Parse error: {e}")

    def extract_fields(self, text: str, ocr_used: bool = False) -> ExtractionResult:
        """Run every field extractor over already-extracted text."""
        name = field_extractor.guess_name(text)
        email = field_extractor.extract_email(text)
        phone = field_extractor.normalize_phone(text, self.default_country_code)
        linkedin = field_extractor.extract_linkedin(text)
        github = field_extractor.extract_github(text)
        confidence = field_extractor.score_confidence(name, email, phone, linkedin, github, ocr_used)
        return ExtractionResult(
            name=name,
            email=email,
            phone=phone,
            linkedin=linkedin,
            github=github,
            confidence=confidence,
            ocr_used=ocr_used,
        )
