"""In-memory job store for burn-in jobs with TTL cleanup.

WHY: Each upload turns into one FFmpeg run that may take minutes. The API
tracks every run as a job (pending → running → succeeded | failed) so
clients can look up its state and the service can clean up after it. An
in-memory store is enough: there is no persistence requirement and no
queue, so every job starts as soon as it is accepted.

HOW: Three components work together:
  JobStatus  - enum of job states with an explicit transition table
  Job        - dataclass holding job metadata, status, and work directory
  JobStore   - thread-safe dict-based store with create/update/get/list/
               delete, workspace release, and TTL cleanup

RULES:
- All store mutations are protected by threading.Lock
- Each job gets a private work directory for the upload and captions.ass
- The work directory is released once the transcode finishes
- Illegal status transitions raise InvalidTransitionError
- TTL-based expiry removes terminal jobs and any remaining work dir
- Job IDs are UUID4 hex strings generated at creation time
"""

from __future__ import annotations

import enum
import logging
import shutil
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

logger = logging.getLogger(__name__)

# Default time-to-live for succeeded/failed jobs (seconds)
DEFAULT_TTL_SECONDS = 3600


class InvalidTransitionError(ValueError):
    """Raised when a job status update breaks the state machine."""


class JobStatus(str, enum.Enum):
    """Valid states for a burn-in job.

    RULES:
    - pending: job created, upload saved, transcode not started
    - running: captions.ass written, FFmpeg process running
    - succeeded: output video written to the outputs directory
    - failed: unrecoverable error at any stage
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED}),
    JobStatus.SUCCEEDED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass
class Job:
    """Metadata and state for a single burn-in job.

    RULES:
    - id: UUID4 hex string, unique and immutable after creation
    - work_dir: private directory for the upload and captions.ass,
      None once released
    - completed_at: set when the job reaches a terminal state
    - output_file: output video filename (inside the outputs dir)
    """

    id: str
    status: JobStatus
    filename: str
    work_dir: Optional[Path]
    created_at: float
    updated_at: float
    completed_at: Optional[float] = None
    error: Optional[str] = None
    config: Dict[str, Any] = field(default_factory=dict)
    output_file: Optional[str] = None


class JobStore:
    """Thread-safe in-memory store for burn-in jobs.

    WHY: Request handlers, the periodic cleanup task, and the CLI all
    touch job state. A single store with one lock keeps that consistent.

    HOW: Jobs live in a plain dict keyed by job ID. Mutations acquire
    self._lock; directory removal happens outside the lock.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_jobs: int = 100,
        workspace_root: Optional[Path] = None,
    ) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs
        self.workspace_root = workspace_root

    def create_job(
        self,
        filename: str,
        config: Optional[Dict[str, Any]] = None,
    ) -> Job:
        """Create a new job in PENDING state with a private work directory.

        Raises:
            ValueError: If max_jobs jobs are already tracked.
        """
        with self._lock:
            if len(self._jobs) >= self.max_jobs:
                raise ValueError(
                    "Maximum number of tracked jobs ({}) reached".format(self.max_jobs)
                )

            job_id = uuid.uuid4().hex
            now = time.time()
            if self.workspace_root is not None:
                self.workspace_root.mkdir(parents=True, exist_ok=True)
            work_dir = Path(tempfile.mkdtemp(
                prefix="burn_job_",
                dir=str(self.workspace_root) if self.workspace_root is not None else None,
            ))

            job = Job(
                id=job_id,
                status=JobStatus.PENDING,
                filename=filename,
                work_dir=work_dir,
                created_at=now,
                updated_at=now,
                config=config or {},
            )
            self._jobs[job_id] = job

        logger.info("Created job %s for file %s", job_id, filename)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """Retrieve a job by ID, or None if not found (the live instance)."""
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[Job]:
        """Return all jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        error: Optional[str] = None,
        output_file: Optional[str] = None,
    ) -> Optional[Job]:
        """Update a job's mutable fields.

        RULES:
        - Returns the updated Job, or None if job_id not found
        - Only non-None arguments are applied
        - A status change must be allowed by ALLOWED_TRANSITIONS
        - completed_at is set when status becomes SUCCEEDED or FAILED

        Raises:
            InvalidTransitionError: If the status change is not allowed.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None

            if status is not None and status != job.status:
                if status not in ALLOWED_TRANSITIONS[job.status]:
                    raise InvalidTransitionError(
                        "Job {}: cannot move from {} to {}".format(
                            job_id, job.status.value, status.value
                        )
                    )
                job.status = status

            now = time.time()
            if error is not None:
                job.error = error
            if output_file is not None:
                job.output_file = output_file
            job.updated_at = now

            if job.status.is_terminal and job.completed_at is None:
                job.completed_at = now

            return job

    def release_workspace(self, job_id: str) -> None:
        """Delete a job's work directory (upload and captions.ass), keeping the record."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            work_dir, job.work_dir = job.work_dir, None

        if work_dir is not None:
            self._cleanup_work_dir(work_dir)

    def delete_job(self, job_id: str) -> bool:
        """Remove a job and its work directory. Returns False if unknown."""
        with self._lock:
            job = self._jobs.pop(job_id, None)

        if job is None:
            return False

        if job.work_dir is not None:
            self._cleanup_work_dir(job.work_dir)
        logger.info("Deleted job %s", job_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove terminal jobs whose completed_at is older than the TTL.

        Returns the count of removed jobs. Output videos are not touched;
        they stay downloadable from the outputs directory.
        """
        now = time.time()
        expired_jobs: List[Job] = []

        with self._lock:
            for job_id, job in list(self._jobs.items()):
                if not job.status.is_terminal or job.completed_at is None:
                    continue
                if now - job.completed_at > self._ttl_seconds:
                    expired_jobs.append(self._jobs.pop(job_id))

        for job in expired_jobs:
            if job.work_dir is not None:
                self._cleanup_work_dir(job.work_dir)
            logger.info("Expired job %s (completed %.0fs ago)", job.id, now - job.completed_at)

        return len(expired_jobs)

    @staticmethod
    def _cleanup_work_dir(work_dir: Path) -> None:
        """Remove a work directory tree; logs instead of raising."""
        if work_dir.exists():
            try:
                shutil.rmtree(work_dir)
            except OSError:
                logger.warning("Failed to clean up work dir: %s", work_dir)
