"""
Repository Interface Definitions

Defines the abstract interface for batch job persistence.
This enables swapping implementations (local JSON files today) without
changing the orchestrator.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from sourcestack.common.types import Candidate, JobStatus


class JobStoreInterface(ABC):
    """
    Abstract interface for job status and result persistence.

    Implementations:
    - JsonJobStore: one directory per job holding status.json and results.json

    Every job has at most one status record and one results record;
    saves replace whatever was stored before.
    """

    @abstractmethod
    async def save_status(self, status: JobStatus) -> None:
        """
        Upsert the status record for status.job_id.

        Args:
            status: Full status record, replaces any prior one
        """
        pass

    @abstractmethod
    async def load_status(self, job_id: str) -> Optional[JobStatus]:
        """
        Load a job's status record.

        Args:
            job_id: Job identifier

        Returns:
            JobStatus if stored and readable, None otherwise
        """
        pass

    @abstractmethod
    async def save_results(self, job_id: str, candidates: List[Candidate]) -> None:
        """
        Upsert the full result list for a job.

        Args:
            job_id: Job identifier
            candidates: Every candidate produced by the job
        """
        pass

    @abstractmethod
    async def load_results(self, job_id: str) -> Optional[List[Candidate]]:
        """
        Load a job's result list.

        Returns:
            List of candidates, or None if no results were stored
        """
        pass

    @abstractmethod
    async def list_jobs(self) -> List[str]:
        """
        List known job identifiers after running retention cleanup.

        Returns:
            Job ids still within the retention window
        """
        pass

    @abstractmethod
    async def cleanup_expired_jobs(self) -> List[str]:
        """
        Delete every job older than the retention window.

        Returns:
            Job ids that were deleted by this pass
        """
        pass

    @abstractmethod
    async def delete_job(self, job_id: str) -> bool:
        """
        Remove all records of one job.

        Returns:
            True if something was deleted
        """
        pass
