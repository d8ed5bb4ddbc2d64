"""
Centralized error handling for the resume harvester.

Defines the exception taxonomy shared by the orchestrator, the job store and
the Google collaborators, plus the retry classification used for per-file
download/parse attempts.
"""

import asyncio
from typing import Optional


class SourceStackError(Exception):
    """Base class for all harvester errors."""


class InvalidRequestError(SourceStackError, ValueError):
    """A batch request failed validation and was never enqueued."""


class JobNotFoundError(SourceStackError, LookupError):
    """The job id is unknown to the job store."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class InvalidJobStateError(SourceStackError, RuntimeError):
    """The job is not in a state that allows the requested operation."""

    def __init__(self, job_id: str, state: str, message: Optional[str] = None):
        super().__init__(message or f"Job {job_id} is in state '{state}'")
        self.job_id = job_id
        self.state = state


class JobCancelledError(SourceStackError):
    """Raised at cooperative checkpoints once a running job is cancelled."""

    def __init__(self, job_id: str):
        super().__init__("Job cancelled")
        self.job_id = job_id


class ServiceClosedError(SourceStackError, RuntimeError):
    """The orchestrator was disposed and no longer accepts jobs."""


class UnsupportedFileTypeError(SourceStackError, ValueError):
    """The file extension is neither .pdf nor .docx."""

    def __init__(self, file_name: str):
        super().__init__(f"Unsupported file type: {file_name}")
        self.file_name = file_name


class RemoteApiError(SourceStackError):
    """
    Failure reported by a remote collaborator (Drive, Sheets, token endpoint).

    status_code is the HTTP status when the server answered, None for
    transport-level failures where no response was received.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return base
        return f"{base} (HTTP {self.status_code})"


RETRYABLE_STATUS_CODES = frozenset({429})


def is_retryable(exc: BaseException) -> bool:
    """
    Classify an exception raised while downloading or parsing one file.

    Retryable: HTTP 429, any 5xx, remote failures without a status code,
    timeouts and connection errors. Everything else (including cancellation)
    is recorded immediately.
    """
    if isinstance(exc, JobCancelledError):
        return False
    if isinstance(exc, RemoteApiError):
        code = exc.status_code
        if code is None:
            return True
        return code in RETRYABLE_STATUS_CODES or code >= 500
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return True
    return isinstance(exc, ConnectionError)

