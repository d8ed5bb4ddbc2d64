"""
Shared data models for the resume harvester.

Persisted records (JobStatus, Candidate) are pydantic models so the job store
can serialize them as JSON; in-memory values (ExtractionResult, RemoteFileRef,
WorkItem) are plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


class JobState(str, Enum):
    """Status values for batch jobs."""

    PENDING = "pending"          # Waiting in queue
    PROCESSING = "processing"    # Worker is running it
    COMPLETED = "completed"      # All files processed, results persisted
    FAILED = "failed"            # Aborted by a job-fatal error
    REVOKED = "revoked"          # Cancelled or never started

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.REVOKED)


@dataclass(frozen=True)
class ExtractionResult:
    """
    Fields extracted from one document.

    Produced once per parse; errors are non-fatal messages in the order
    they occurred.
    """

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    confidence: float = 0.0
    ocr_used: bool = False
    errors: Tuple[str, ...] = ()

    @classmethod
    def failed(cls, *errors: str) -> "ExtractionResult":
        """Zero-confidence result carrying only error messages."""
        return cls(errors=tuple(errors))


class Candidate(BaseModel):
    """One processed file in a batch job's result set."""

    drive_file_id: Optional[str] = Field(None, description="Remote file identifier")
    source_file: str = Field(..., description="File name the fields were extracted from")
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def from_extraction(
        cls,
        result: ExtractionResult,
        source_file: str,
        drive_file_id: Optional[str] = None,
    ) -> "Candidate":
        return cls(
            drive_file_id=drive_file_id,
            source_file=source_file,
            name=result.name,
            email=result.email,
            phone=result.phone,
            linkedin=result.linkedin,
            github=result.github,
            confidence=result.confidence,
            errors=list(result.errors),
        )

    @classmethod
    def empty(
        cls,
        source_file: str,
        drive_file_id: Optional[str] = None,
        *errors: str,
    ) -> "Candidate":
        """Zero-confidence candidate for a file that could not be processed."""
        return cls(
            drive_file_id=drive_file_id,
            source_file=source_file,
            errors=list(errors),
        )


class BatchRequest(BaseModel):
    """Request to harvest every resume in a remote folder."""

    folder_id: str = Field(..., description="Remote folder to list resumes from")
    spreadsheet_id: Optional[str] = Field(
        None, description="Existing spreadsheet to append to; a new one is created when omitted"
    )


@dataclass(frozen=True)
class RemoteFileRef:
    """A file listed from the remote folder."""

    id: Optional[str]
    name: str
    mime_type: str


@dataclass
class WorkItem:
    """Unit handed to the background worker."""

    job_id: str
    request: BatchRequest
    enqueued_at: datetime = field(default_factory=utc_now)


class JobStatus(BaseModel):
    """Status record for a batch job, last write wins."""

    job_id: str
    status: JobState = JobState.PENDING
    progress: int = Field(0, ge=0, le=100)
    total_files: int = Field(0, ge=0)
    processed_files: int = Field(0, ge=0)
    spreadsheet_id: Optional[str] = None
    results_count: Optional[int] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
