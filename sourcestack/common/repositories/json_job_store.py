"""
JSON File Job Store

Persists each batch job as a directory under the jobs root:

    <root>/<job_id>/status.json
    <root>/<job_id>/results.json

Every operation runs under one asyncio.Lock owned by the store instance, so
concurrent coroutines in the same process never interleave file writes. The
filesystem work itself runs in a worker thread while the lock is held, keeping
the event loop free for downloads. No cross-process writer is expected.
"""

import asyncio
import logging
import os
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import TypeAdapter, ValidationError

from sourcestack.common.repositories.base import JobStoreInterface
from sourcestack.common.types import Candidate, JobStatus, utc_now

logger = logging.getLogger(__name__)

STATUS_FILE = "status.json"
RESULTS_FILE = "results.json"
MIN_RETENTION_HOURS = 1

_candidate_list = TypeAdapter(List[Candidate])


class JsonJobStore(JobStoreInterface):
    """File-backed job store with retention-based cleanup."""

    def __init__(
        self,
        root_path: Path,
        retention_hours: int = 24,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the store.

        Args:
            root_path: Directory holding one folder per job (created if missing)
            retention_hours: Age after which a job is deleted; values below 1 are raised to 1
            clock: Returns the current UTC time; overridable in tests
        """
        self.root_path = Path(root_path).expanduser()
        self.retention = timedelta(hours=max(MIN_RETENTION_HOURS, retention_hours))
        self._clock = clock or utc_now
        self._lock = asyncio.Lock()
        self.root_path.mkdir(parents=True, exist_ok=True)

    def _job_dir(self, job_id: str) -> Path:
        if not job_id or any(sep in job_id for sep in ("/", "\\")) or job_id in (".", ".."):
            raise ValueError(f"Invalid job id: {job_id!r}")
        return self.root_path / job_id

    @staticmethod
    def _write_atomic(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, path)

    def _read_status(self, job_id: str) -> Optional[JobStatus]:
        path = self._job_dir(job_id) / STATUS_FILE
        if not path.exists():
            return None
        try:
            return JobStatus.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Failed to load status for job {job_id}: {e}")
            return None

    async def save_status(self, status: JobStatus) -> None:
        payload = status.model_dump_json(indent=2)
        path = self._job_dir(status.job_id) / STATUS_FILE
        async with self._lock:
            await asyncio.to_thread(self._write_atomic, path, payload)

    async def load_status(self, job_id: str) -> Optional[JobStatus]:
        async with self._lock:
            return await asyncio.to_thread(self._read_status, job_id)

    async def save_results(self, job_id: str, candidates: List[Candidate]) -> None:
        payload = _candidate_list.dump_json(list(candidates), indent=2).decode("utf-8")
        path = self._job_dir(job_id) / RESULTS_FILE
        async with self._lock:
            await asyncio.to_thread(self._write_atomic, path, payload)

    async def load_results(self, job_id: str) -> Optional[List[Candidate]]:
        path = self._job_dir(job_id) / RESULTS_FILE
        async with self._lock:
            return await asyncio.to_thread(self._read_results, job_id, path)

    async def list_jobs(self) -> List[str]:
        await self.cleanup_expired_jobs()
        async with self._lock:
            return await asyncio.to_thread(self._list_job_dirs)

    async def cleanup_expired_jobs(self) -> List[str]:
        async with self._lock:
            return await asyncio.to_thread(self._cleanup_sync, self._clock())

    async def delete_job(self, job_id: str) -> bool:
        job_dir = self._job_dir(job_id)
        async with self._lock:
            return await asyncio.to_thread(self._delete_dir, job_dir)

    # === Blocking helpers, run in a worker thread while the lock is held ===

    @staticmethod
    def _read_results(job_id: str, path: Path) -> Optional[List[Candidate]]:
        if not path.exists():
            return None
        try:
            return _candidate_list.validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Failed to load results for job {job_id}: {e}")
            return None

    def _list_job_dirs(self) -> List[str]:
        return sorted(entry.name for entry in self.root_path.iterdir() if entry.is_dir())

    def _cleanup_sync(self, now: datetime) -> List[str]:
        deleted = []
        for entry in sorted(self.root_path.iterdir()):
            if not entry.is_dir():
                continue
            reference = self._reference_time(entry)
            if now - reference > self.retention:
                shutil.rmtree(entry, ignore_errors=True)
                deleted.append(entry.name)
                logger.info(f"Deleted expired job {entry.name} (reference time {reference.isoformat()})")
        return deleted

    @staticmethod
    def _delete_dir(job_dir: Path) -> bool:
        if not job_dir.exists():
            return False
        shutil.rmtree(job_dir, ignore_errors=True)
        return True

    def _reference_time(self, job_dir: Path) -> datetime:
        """Completion time, else creation time, else directory ctime."""
        status = self._read_status(job_dir.name)
        if status is not None:
            reference = status.completed_at or status.created_at
            if reference is not None:
                if reference.tzinfo is None:
                    reference = reference.replace(tzinfo=timezone.utc)
                return reference
        return datetime.fromtimestamp(job_dir.stat().st_ctime, tz=timezone.utc)
