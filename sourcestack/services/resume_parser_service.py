"""
Resume Parser Service

Batch orchestrator for harvesting resumes from a remote folder:
- Single-file parsing without persistence
- FIFO job queue with exactly one background worker
- Bounded per-file concurrency within a job
- Per-file retry with exponential backoff
- Incremental spreadsheet writes and progress updates after every batch
- Cooperative cancellation and graceful shutdown

Job state is persisted through a JobStoreInterface. Failures of a single
file never abort a job; anything escaping the per-job algorithm marks that
job Failed and the worker moves on to the next one.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Set

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from sourcestack.common.config import SourceStackSettings
from sourcestack.common.error_handling import (
    InvalidJobStateError,
    InvalidRequestError,
    JobCancelledError,
    JobNotFoundError,
    ServiceClosedError,
    is_retryable,
)
from sourcestack.common.logger import JobLogger, get_logger
from sourcestack.common.repositories.base import JobStoreInterface
from sourcestack.common.types import (
    BatchRequest,
    Candidate,
    JobState,
    JobStatus,
    RemoteFileRef,
    WorkItem,
    utc_now,
)
from sourcestack.parsing.document_parser import DocumentParser
from sourcestack.services.base import DOCX_MIME_TYPE, PDF_MIME_TYPE, RemoteFileSource, SpreadsheetSink

logger = logging.getLogger(__name__)

HEADER_ROW = ["Name", "Resume Link", "Phone Number", "Email ID", "LinkedIn", "GitHub"]
SPREADSHEET_TITLE_PREFIX = "Resume Parse Results"
DRIVE_FILE_URL = "https://drive.google.com/file/d/{file_id}/view"

MISSING_FILE_ID_ERROR = "Missing file ID"
CANCELLED_ERROR = "Job cancelled"
SHUTDOWN_ERROR = "Service shut down before job started"

_MIME_EXTENSIONS = {
    PDF_MIME_TYPE: ".pdf",
    DOCX_MIME_TYPE: ".docx",
}


def normalize_file_name(name: str, mime_type: str) -> str:
    """Append the extension implied by the MIME type when the name lacks it."""
    extension = _MIME_EXTENSIONS.get(mime_type)
    if extension and not name.lower().endswith(extension):
        return name + extension
    return name


def candidate_to_row(candidate: Candidate) -> List[str]:
    """Spreadsheet row in HEADER_ROW column order."""
    resume_link = DRIVE_FILE_URL.format(file_id=candidate.drive_file_id) if candidate.drive_file_id else ""
    return [
        candidate.name or "",
        resume_link,
        candidate.phone or "",
        candidate.email or "",
        candidate.linkedin or "",
        candidate.github or "",
    ]


def compute_progress(processed_files: int, total_files: int) -> int:
    """Percent of files processed, held at 99 until the job completes."""
    if total_files <= 0:
        return 0
    return min(99, processed_files * 100 // total_files)


def spreadsheet_title(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{SPREADSHEET_TITLE_PREFIX} - {now.strftime('%Y-%m-%d %H:%M:%S')}"


class ResumeParserService:
    """
    Accepts batch requests and runs them one at a time in the background.

    Usage:
        async with ResumeParserService(parser, store, drive, sheets, settings) as service:
            job_id = await service.start_batch_job(BatchRequest(folder_id="..."))
            status = await service.get_job_status(job_id)
    """

    def __init__(
        self,
        parser: DocumentParser,
        store: JobStoreInterface,
        file_source: RemoteFileSource,
        sheets: SpreadsheetSink,
        settings: SourceStackSettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the orchestrator.

        Args:
            parser: Per-file resume parser
            store: Job status/results persistence
            file_source: Remote folder listing and download
            sheets: Spreadsheet that receives result rows
            settings: Concurrency, batching and retry configuration
            sleep: Coroutine used for retry backoff waits
        """
        self.parser = parser
        self.store = store
        self.file_source = file_source
        self.sheets = sheets
        self.max_concurrent_requests = settings.max_concurrent_requests
        self.batch_size = settings.spreadsheet_batch_size
        self.max_retries = settings.max_retries
        self.retry_delay_seconds = settings.retry_delay_seconds
        self._sleep = sleep

        self._queue: "asyncio.Queue[Optional[WorkItem]]" = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None
        self._shutdown = asyncio.Event()
        self._closed = False
        self._cancel_requested: Set[str] = set()
        # Guards status read-check-write sequences and _current_job_id
        self._status_lock = asyncio.Lock()
        self._current_job_id: Optional[str] = None

    async def __aenter__(self) -> "ResumeParserService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.dispose()

    # === Public operations ===

    async def parse_single(self, file_name: str, data: bytes) -> Candidate:
        """Parse one file directly; nothing is queued or persisted."""
        result = await self.parser.parse(file_name, data)
        return Candidate.from_extraction(result, source_file=file_name)

    async def start_batch_job(self, request: BatchRequest) -> str:
        """
        Validate and enqueue a batch job.

        Returns:
            The new job id; the job starts Pending

        Raises:
            ServiceClosedError: dispose() was already called
            InvalidRequestError: folder_id is empty
        """
        if self._closed:
            raise ServiceClosedError("Service is shut down and no longer accepts jobs")
        if not request.folder_id or not request.folder_id.strip():
            raise InvalidRequestError("folder_id is required")

        await self.store.cleanup_expired_jobs()

        job_id = uuid.uuid4().hex
        await self.store.save_status(
            JobStatus(
                job_id=job_id,
                status=JobState.PENDING,
                spreadsheet_id=request.spreadsheet_id,
                created_at=utc_now(),
            )
        )

        if self._closed:
            # dispose() ran while this request was being persisted
            await self._revoke_unstarted(WorkItem(job_id=job_id, request=request))
            raise ServiceClosedError("Service is shut down and no longer accepts jobs")

        self._ensure_worker()
        self._queue.put_nowait(WorkItem(job_id=job_id, request=request))
        get_logger(__name__, job_id=job_id).info(
            f"Queued batch job for folder {request.folder_id} (queue size {self._queue.qsize()})"
        )
        return job_id

    async def get_job_status(self, job_id: str) -> JobStatus:
        status = await self.store.load_status(job_id)
        if status is None:
            raise JobNotFoundError(job_id)
        return status

    async def get_job_results(self, job_id: str) -> List[Candidate]:
        """
        Return a completed job's candidates.

        Raises:
            JobNotFoundError: Unknown job id
            InvalidJobStateError: The job has not completed
        """
        results = await self.store.load_results(job_id)
        if results is not None:
            return results

        status = await self.store.load_status(job_id)
        if status is None:
            raise JobNotFoundError(job_id)
        if status.status != JobState.COMPLETED:
            raise InvalidJobStateError(
                job_id,
                status.status.value,
                f"Job {job_id} has not completed (status: {status.status.value})",
            )
        return []

    async def cancel_job(self, job_id: str) -> JobStatus:
        """
        Request cancellation of a pending or running job.

        The job this service's worker is running stops at its next checkpoint
        (before each batch and each retry attempt) and is then saved as
        Revoked. Any other non-terminal job, whether still queued or a
        Processing record that no live worker owns, is revoked immediately.

        Raises:
            JobNotFoundError: Unknown job id
            InvalidJobStateError: The job already finished
        """
        job_log = get_logger(__name__, job_id=job_id)
        async with self._status_lock:
            status = await self.store.load_status(job_id)
            if status is None:
                raise JobNotFoundError(job_id)
            if status.status.is_terminal:
                raise InvalidJobStateError(
                    job_id,
                    status.status.value,
                    f"Job {job_id} already finished (status: {status.status.value})",
                )

            if job_id == self._current_job_id:
                self._cancel_requested.add(job_id)
                job_log.info("Cancellation requested; job stops at its next checkpoint")
                return status

            previous = status.status.value
            status = status.model_copy(
                update={
                    "status": JobState.REVOKED,
                    "error": CANCELLED_ERROR,
                    "completed_at": utc_now(),
                }
            )
            await self.store.save_status(status)
        job_log.info(f"Revoked job (was {previous})")
        return status

    async def list_jobs(self) -> List[str]:
        return await self.store.list_jobs()

    async def dispose(self) -> None:
        """
        Stop accepting jobs and let the worker finish the job in progress.

        Jobs still waiting in the queue are marked Revoked. Safe to call more
        than once.
        """
        if self._closed and self._worker_task is None:
            return
        self._closed = True
        self._shutdown.set()

        worker, self._worker_task = self._worker_task, None
        if worker is not None:
            self._queue.put_nowait(None)
            try:
                await worker
            except asyncio.CancelledError:
                pass

        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not None:
                await self._revoke_unstarted(item)

    # === Worker ===

    def _ensure_worker(self) -> None:
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.create_task(self._worker_loop())

    async def _worker_loop(self) -> None:
        logger.info("Worker loop started")
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    break
                if self._shutdown.is_set():
                    await self._revoke_unstarted(item)
                    break
                await self._process_item(item)
            except Exception:
                logger.exception("Unexpected error in worker loop")
            finally:
                self._queue.task_done()
        logger.info("Worker loop stopped")

    async def _save_status(self, status: JobStatus) -> None:
        async with self._status_lock:
            await self.store.save_status(status)

    async def _revoke_unstarted(self, item: WorkItem) -> None:
        async with self._status_lock:
            status = await self.store.load_status(item.job_id)
            if status is None or status.status.is_terminal:
                return
            await self.store.save_status(
                status.model_copy(
                    update={
                        "status": JobState.REVOKED,
                        "error": SHUTDOWN_ERROR,
                        "completed_at": utc_now(),
                    }
                )
            )
        get_logger(__name__, job_id=item.job_id).info("Revoked queued job on shutdown")

    async def _process_item(self, item: WorkItem) -> None:
        job_log = get_logger(__name__, job_id=item.job_id)
        async with self._status_lock:
            status = await self.store.load_status(item.job_id)
            if status is None:
                job_log.warning("Status record missing, skipping job")
                return
            if status.status.is_terminal:
                job_log.info(f"Job already {status.status.value} before it started, skipping")
                return

            status = status.model_copy(
                update={
                    "status": JobState.PROCESSING,
                    "progress": 0,
                    "total_files": 0,
                    "processed_files": 0,
                    "started_at": utc_now(),
                }
            )
            await self.store.save_status(status)
            self._current_job_id = item.job_id

        try:
            await self._run_job(item, status, job_log)
        finally:
            async with self._status_lock:
                self._current_job_id = None
                self._cancel_requested.discard(item.job_id)

    def _check_cancelled(self, job_id: str) -> None:
        if job_id in self._cancel_requested:
            raise JobCancelledError(job_id)

    async def _run_job(self, item: WorkItem, status: JobStatus, job_log: JobLogger) -> None:
        job_id = item.job_id
        request = item.request
        start_time = time.monotonic()
        total_files = 0
        processed_files = 0
        spreadsheet_id = request.spreadsheet_id

        job_log.info(f"Started processing folder {request.folder_id}")

        try:
            self._check_cancelled(job_id)
            files = await self.file_source.list_files(request.folder_id)
            total_files = len(files)

            if total_files == 0:
                await self.store.save_results(job_id, [])
                await self._save_status(
                    status.model_copy(
                        update={
                            "status": JobState.COMPLETED,
                            "progress": 100,
                            "results_count": 0,
                            "completed_at": utc_now(),
                            "duration_seconds": time.monotonic() - start_time,
                        }
                    )
                )
                job_log.info("Completed: folder has no resumes")
                return

            if not spreadsheet_id:
                spreadsheet_id = await self.sheets.create_spreadsheet(spreadsheet_title())
                await self.sheets.append_rows(spreadsheet_id, [HEADER_ROW], skip_headers=False)
                job_log.info(f"Created spreadsheet {spreadsheet_id}")

            status = status.model_copy(update={"total_files": total_files, "spreadsheet_id": spreadsheet_id})
            await self._save_status(status)

            gate = asyncio.Semaphore(self.max_concurrent_requests)
            results: List[Candidate] = []

            for batch_start in range(0, total_files, self.batch_size):
                self._check_cancelled(job_id)
                batch = files[batch_start:batch_start + self.batch_size]
                candidates = await self._process_batch(job_id, batch, gate, job_log)

                rows = [row for row in (candidate_to_row(c) for c in candidates) if any(row)]
                if rows:
                    await self.sheets.append_rows(spreadsheet_id, rows, skip_headers=True)
                    processed_files += len(rows)

                results.extend(candidates)
                status = status.model_copy(
                    update={
                        "progress": compute_progress(processed_files, total_files),
                        "processed_files": processed_files,
                    }
                )
                await self._save_status(status)
                job_log.debug(f"Batch done: {processed_files}/{total_files} files written")

            await self.store.save_results(job_id, results)
            await self._save_status(
                status.model_copy(
                    update={
                        "status": JobState.COMPLETED,
                        "progress": 100,
                        "results_count": len(results),
                        "completed_at": utc_now(),
                        "duration_seconds": time.monotonic() - start_time,
                    }
                )
            )
            job_log.info(f"Completed with {len(results)} results ({processed_files}/{total_files} rows written)")

        except JobCancelledError:
            await self._save_terminal(
                status, JobState.REVOKED, CANCELLED_ERROR,
                total_files, processed_files, spreadsheet_id, start_time,
            )
            job_log.info(f"Cancelled after {processed_files}/{total_files} files")

        except Exception as e:
            job_log.exception(f"Job failed: {e}")
            await self._save_terminal(
                status, JobState.FAILED, str(e) or type(e).__name__,
                total_files, processed_files, spreadsheet_id, start_time,
            )

    async def _save_terminal(
        self,
        status: JobStatus,
        state: JobState,
        error: str,
        total_files: int,
        processed_files: int,
        spreadsheet_id: Optional[str],
        start_time: float,
    ) -> None:
        await self._save_status(
            status.model_copy(
                update={
                    "status": state,
                    "error": error,
                    "total_files": total_files,
                    "processed_files": processed_files,
                    "progress": compute_progress(processed_files, total_files),
                    "spreadsheet_id": spreadsheet_id,
                    "completed_at": utc_now(),
                    "duration_seconds": time.monotonic() - start_time,
                }
            )
        )

    async def _process_batch(
        self,
        job_id: str,
        batch: Sequence[RemoteFileRef],
        gate: asyncio.Semaphore,
        job_log: JobLogger,
    ) -> List[Candidate]:
        outcomes = await asyncio.gather(
            *(self._process_file(job_id, file, gate, job_log) for file in batch),
            return_exceptions=True,
        )
        # Siblings run to completion before a cancellation is re-raised
        candidates = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
            candidates.append(outcome)
        return candidates

    async def _process_file(
        self,
        job_id: str,
        file: RemoteFileRef,
        gate: asyncio.Semaphore,
        job_log: JobLogger,
    ) -> Candidate:
        async with gate:
            if not file.id:
                return Candidate.empty(file.name, None, MISSING_FILE_ID_ERROR)

            file_name = normalize_file_name(file.name, file.mime_type)
            retrying = AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=self.retry_delay_seconds, min=0),
                retry=retry_if_exception(is_retryable),
                sleep=self._sleep,
                before_sleep=self._log_retry(job_log, file_name),
                reraise=True,
            )

            try:
                async for attempt in retrying:
                    with attempt:
                        self._check_cancelled(job_id)
                        data = await self.file_source.download_file(file.id)
                        result = await self.parser.parse(file_name, data)
            except JobCancelledError:
                raise
            except Exception as e:
                job_log.error(f"Failed to process {file_name}: {e}")
                return Candidate.empty(file.name, file.id, f"Error processing file: {e}")

            return Candidate.from_extraction(result, source_file=file.name, drive_file_id=file.id)

    def _log_retry(self, job_log: JobLogger, file_name: str):
        max_retries = self.max_retries

        def before_sleep(retry_state) -> None:
            exc = retry_state.outcome.exception()
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            job_log.warning(
                f"Attempt {retry_state.attempt_number}/{max_retries} failed for {file_name}: "
                f"{exc}; retrying in {delay:.2f}s"
            )

        return before_sleep
