"""
In-memory job registry.
"""

import threading

from ..errors import JobNotFoundError
from .job import Job


class JobRegistry:
    """
    Mapping from job id to Job.

    Lookups read the dict directly; inserts and deletes are serialized.
    Nothing is persisted, so a restart starts with an empty registry.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def add(self, job: Job) -> None:
        with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Duplicate job id: {job.job_id}")
            self._jobs[job.job_id] = job

    def find(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def get(self, job_id: str) -> Job:
        """
        Get job by ID.

        Raises:
            JobNotFoundError: If the id is unknown or was reaped
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def remove(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def jobs(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs
