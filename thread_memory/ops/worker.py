"""
In-process consumer for "new assistant message" triggers.

Triggers are delivered at least once; duplicates are harmless because the
orchestrator's idempotency guard turns them into reconcile no-ops. Jobs run
on a thread pool and finish even if nobody waits for them.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Literal, Optional

from thread_memory.summary.orchestrator import SummarizationOrchestrator
from thread_memory.summary.schemas import SummarizationResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairTrigger:
    """A committed assistant message and the user message it answers."""

    thread_id: str
    user_msg_id: str
    assistant_msg_id: str


@dataclass
class TriggerJob:
    """Status of a queued summarization."""

    id: str
    trigger: PairTrigger
    state: Literal["queued", "running", "succeeded", "failed"] = "queued"
    submitted_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    result: Optional[SummarizationResult] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        data = asdict(self)
        data["result"] = self.result.model_dump() if self.result else None
        return data


class SummarizationWorker:
    """
    Thread-pool runner for process_pair.

    A job is ``succeeded`` when the orchestrator returned a successful
    result (created, updated, duplicate or disabled) and ``failed`` when it
    reported a failure or raised. Finished jobs are kept for status polling
    and pruned by ``cleanup_old_jobs``, which also runs on every submit.
    """

    def __init__(
        self,
        orchestrator: SummarizationOrchestrator,
        max_workers: int = 4,
        retention_hours: float = 24,
        max_finished_jobs: int = 1000,
    ):
        """
        Args:
            orchestrator: Orchestrator that processes each trigger
            max_workers: Max concurrent summarizations
            retention_hours: Finished jobs older than this are dropped
            max_finished_jobs: Keep at most this many finished jobs
        """
        self.orchestrator = orchestrator
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="summarize")
        self.retention_hours = retention_hours
        self.max_finished_jobs = max_finished_jobs

        # In-memory job registry; futures only for unfinished jobs
        self.jobs: Dict[str, TriggerJob] = {}
        self._futures: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def submit(self, trigger: PairTrigger) -> str:
        """
        Queue a trigger for processing.

        Returns:
            Job ID
        """
        self.cleanup_old_jobs(self.retention_hours, self.max_finished_jobs)

        job = TriggerJob(id=str(uuid.uuid4()), trigger=trigger)

        with self._lock:
            self.jobs[job.id] = job
            self._futures[job.id] = self.executor.submit(self._run_job, job)

        return job.id

    def _run_job(self, job: TriggerJob) -> None:
        """Execute job with state tracking."""
        job.state = "running"
        job.started_at = datetime.now(timezone.utc).isoformat()

        try:
            result = self.orchestrator.process_pair(
                job.trigger.thread_id,
                job.trigger.user_msg_id,
                job.trigger.assistant_msg_id,
            )
        except Exception as e:
            logger.exception(f"Summarization job {job.id} crashed")
            job.state = "failed"
            job.error = str(e)
        else:
            job.result = result
            job.state = "succeeded" if result.success else "failed"
            job.error = result.error
        finally:
            job.finished_at = datetime.now(timezone.utc).isoformat()
            with self._lock:
                self._futures.pop(job.id, None)

    def get(self, job_id: str) -> Optional[TriggerJob]:
        """
        Get job status by ID.

        Returns:
            TriggerJob if found, None otherwise
        """
        return self.jobs.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[TriggerJob]:
        """
        Block until a job finishes and return it.

        Returns:
            The finished TriggerJob, or None for an unknown (or pruned) job

        Raises:
            concurrent.futures.TimeoutError: If the job is still running after
                ``timeout`` seconds
        """
        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            future.exception(timeout=timeout)
        return self.jobs.get(job_id)

    def list(self, state: Optional[str] = None) -> List[TriggerJob]:
        """
        List jobs, optionally filtered by state, most recently submitted first.
        """
        jobs = list(self.jobs.values())
        if state:
            jobs = [j for j in jobs if j.state == state]
        jobs.sort(key=lambda j: j.submitted_at, reverse=True)
        return jobs

    def cleanup_old_jobs(self, max_age_hours: float = 24, max_finished: Optional[int] = None) -> int:
        """
        Remove finished (succeeded/failed) jobs.

        Args:
            max_age_hours: Drop jobs that finished longer ago than this
            max_finished: Then keep only this many most recently finished jobs

        Returns:
            Number of jobs removed
        """
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)

        with self._lock:
            finished = [
                job for job in self.jobs.values()
                if job.state in ("succeeded", "failed") and job.finished_at and job.id not in self._futures
            ]
            finished.sort(key=lambda j: j.finished_at, reverse=True)

            expired = {j.id for j in finished if datetime.fromisoformat(j.finished_at) < cutoff}
            if max_finished is not None:
                kept = [j for j in finished if j.id not in expired]
                expired.update(j.id for j in kept[max_finished:])

            for job_id in expired:
                del self.jobs[job_id]

        return len(expired)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; optionally wait for running jobs."""
        self.executor.shutdown(wait=wait)
