"""
Repository Pattern for batch job persistence.

Public API:
- JobStoreInterface: Abstract interface for job status/results storage
- JsonJobStore: Local JSON file implementation

Usage:
    from sourcestack.common.repositories import JsonJobStore

    store = JsonJobStore(settings.resolved_jobs_root, settings.job_retention_hours)
    await store.save_status(status)
"""

from .base import JobStoreInterface
from .json_job_store import JsonJobStore

__all__ = [
    "JobStoreInterface",
    "JsonJobStore",
]
