"""
Service wiring.

Builds the orchestrator and its collaborators from a settings object. Entry
points (the CLI) call these; library code receives the built objects.
"""

from typing import Optional

from sourcestack.common.config import SourceStackSettings
from sourcestack.common.repositories import JsonJobStore
from sourcestack.parsing import DocumentParser, TesseractOcrService, TextPipeline
from sourcestack.services.google_auth import GoogleCredentialsProvider
from sourcestack.services.google_drive_service import GoogleDriveService
from sourcestack.services.google_sheets_service import GoogleSheetsService
from sourcestack.services.resume_parser_service import ResumeParserService


def build_document_parser(settings: SourceStackSettings) -> DocumentParser:
    """Parser using the PDF/DOCX extractors and Tesseract OCR."""
    pipeline = TextPipeline(TesseractOcrService.from_settings(settings))
    return DocumentParser(pipeline, default_country_code=settings.default_country_code)


def build_job_store(settings: SourceStackSettings) -> JsonJobStore:
    return JsonJobStore(settings.resolved_jobs_root, settings.job_retention_hours)


def build_resume_parser_service(
    settings: SourceStackSettings,
    credentials_provider: Optional[GoogleCredentialsProvider] = None,
) -> ResumeParserService:
    """
    Wire the full orchestrator against Google Drive and Sheets.

    Credentials are loaded lazily, on the first Drive or Sheets call.
    """
    credentials_provider = credentials_provider or GoogleCredentialsProvider.from_settings(settings)
    return ResumeParserService(
        parser=build_document_parser(settings),
        store=build_job_store(settings),
        file_source=GoogleDriveService(credentials_provider),
        sheets=GoogleSheetsService(credentials_provider),
        settings=settings,
    )
