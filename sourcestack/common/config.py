"""
SourceStack Configuration Module

Centralized configuration management with Pydantic validation.
All values can be overridden via SOURCESTACK_* environment variables
(or a .env file). Validation happens at construction to fail fast on
misconfiguration.

The settings object is passed explicitly to every component that needs it;
only entry points (CLI, factory helpers) should call get_settings().
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()

DEFAULT_JOBS_ROOT = Path.home() / ".sourcestack" / "jobs"


class SourceStackSettings(BaseSettings):
    """
    Resume harvesting configuration with validation.

    Groups the knobs consumed by the batch orchestrator, the job store,
    the OCR fallback and the Google collaborators.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOURCESTACK_",
        case_sensitive=False,
        extra="ignore",
    )

    # === Concurrency & Batching ===
    max_concurrent_requests: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum files processed concurrently within one job (1-100)"
    )
    spreadsheet_batch_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Files per batch; each batch ends with one spreadsheet append"
    )

    # === Retry Policy ===
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum download/parse attempts per file (1-10)"
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay for exponential backoff between attempts"
    )

    # === Job Store ===
    job_retention_hours: int = Field(
        default=24,
        ge=0,
        description="Hours to keep job state on disk (store enforces a 1 hour minimum)"
    )
    jobs_root_path: Optional[Path] = Field(
        default=None,
        description="Directory holding one folder per job (default ~/.sourcestack/jobs)"
    )

    # === OCR ===
    tesseract_path: str = Field(
        default="tesseract",
        description="Tesseract executable name or absolute path"
    )
    ocr_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound for one OCR run over a whole document"
    )
    ocr_dpi: int = Field(
        default=200,
        ge=72,
        le=600,
        description="Render resolution for OCR page images"
    )
    ocr_language: str = Field(default="eng", description="Tesseract language code")

    # === Field Extraction ===
    default_country_code: str = Field(
        default="91",
        description="Country calling code prefixed to bare 10-digit phone numbers"
    )

    # === Google APIs ===
    google_service_account_path: Optional[Path] = Field(
        default=None,
        description="Service account JSON used for Drive/Sheets access"
    )
    google_token_path: Optional[Path] = Field(
        default=None,
        description="Cached authorized-user token JSON (refreshed in place)"
    )

    # === Logging ===
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")
    log_format: str = Field(default="simple", description="simple or json")

    @field_validator("default_country_code")
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        """Accept '91' or '+91', store digits only."""
        digits = v.strip().lstrip("+")
        if not digits.isdigit() or not 1 <= len(digits) <= 3:
            raise ValueError(f"default_country_code must be 1-3 digits, got: {v!r}")
        return digits

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is a known value."""
        v_lower = v.lower()
        if v_lower not in {"simple", "json"}:
            raise ValueError("log_format must be one of: simple, json")
        return v_lower

    @field_validator("tesseract_path", "ocr_language")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject blank executable paths and language codes."""
        if not v.strip():
            raise ValueError("value must not be blank")
        return v.strip()

    @property
    def resolved_jobs_root(self) -> Path:
        """Jobs directory with the default applied."""
        return self.jobs_root_path or DEFAULT_JOBS_ROOT


@lru_cache()
def get_settings() -> SourceStackSettings:
    """
    Get cached settings instance.

    Settings are loaded once from the environment. Components receive the
    returned object through their constructors instead of calling this.
    """
    return SourceStackSettings()
