"""
Background parse jobs.

JobStore is the registry shared between the worker threads that parse demos
and whatever answers status queries; every read and write goes through its
lock and readers get copies. ParseWorker runs one parse per thread, each with
its own collector, and writes the match JSON when done.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from cs2replay.core.config import Cs2ReplayConfig, get_config
from cs2replay.export import write_match
from cs2replay.models import Match
from cs2replay.pipeline import ProgressFunc, generate_match_id, parse_demo

logger = logging.getLogger(__name__)

JOB_TTL_SECONDS = 3600
MAX_JOBS = 100


class JobStatus(Enum):
    PARSING = "parsing"
    READY = "ready"
    ERROR = "error"


@dataclass
class Job:
    id: str
    status: str = JobStatus.PARSING.value
    progress: float = 0.0
    error: str | None = None
    created_at: float = field(default_factory=time.time)

    def is_expired(self, ttl_seconds: int = JOB_TTL_SECONDS) -> bool:
        """Check if job has expired based on TTL."""
        return time.time() - self.created_at > ttl_seconds

    def to_dict(self) -> dict:
        result = {"id": self.id, "status": self.status, "progress": self.progress}
        if self.error:
            result["error"] = self.error
        return result


class JobStore:
    """In-memory job store for tracking parse jobs."""

    def __init__(self, ttl_seconds: int = JOB_TTL_SECONDS, max_jobs: int = MAX_JOBS) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self._max_jobs = max_jobs

    def _cleanup_expired_jobs(self) -> None:
        expired_ids = [jid for jid, job in self._jobs.items() if job.is_expired(self._ttl_seconds)]
        for jid in expired_ids:
            del self._jobs[jid]
        if expired_ids:
            logger.info(f"Cleaned up {len(expired_ids)} expired jobs")

    def _enforce_max_jobs(self) -> None:
        """Remove oldest jobs if max limit exceeded."""
        if len(self._jobs) >= self._max_jobs:
            sorted_jobs = sorted(self._jobs.items(), key=lambda x: x[1].created_at)
            jobs_to_remove = len(self._jobs) - self._max_jobs + 1
            for jid, _ in sorted_jobs[:jobs_to_remove]:
                del self._jobs[jid]
            logger.info(f"Removed {jobs_to_remove} oldest jobs (max limit reached)")

    def create(self, job_id: str) -> Job:
        """Register a new job in the parsing state and return a copy of it."""
        with self._lock:
            self._cleanup_expired_jobs()
            self._enforce_max_jobs()
            job = Job(id=job_id)
            self._jobs[job_id] = job
            return replace(job)

    def get(self, job_id: str) -> Job | None:
        """Get a copy of a job by id."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if job.is_expired(self._ttl_seconds):
                del self._jobs[job_id]
                return None
            return replace(job)

    def set_progress(self, job_id: str, progress: float) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job:
                job.progress = progress

    def complete(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job:
                job.status = JobStatus.READY.value
                job.progress = 1.0

    def fail(self, job_id: str, error: Exception | str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job:
                job.status = JobStatus.ERROR.value
                job.error = str(error)

    def list_jobs(self) -> list[Job]:
        """List copies of all non-expired jobs."""
        with self._lock:
            return [replace(job) for job in self._jobs.values() if not job.is_expired(self._ttl_seconds)]


ParseFunc = Callable[[Path, str, ProgressFunc, Cs2ReplayConfig], Match]


def _default_parse(demo_path: Path, match_id: str, on_progress: ProgressFunc, config: Cs2ReplayConfig) -> Match:
    return parse_demo(demo_path, match_id, on_progress=on_progress, config=config)


class ParseWorker:
    """Runs demo parses on background threads and records their outcome in a JobStore."""

    def __init__(
        self,
        store: JobStore,
        config: Cs2ReplayConfig | None = None,
        parse: ParseFunc = _default_parse,
    ):
        self.store = store
        self.config = config or get_config()
        self._parse = parse

    def submit(self, demo_path: str | Path, job_id: str | None = None) -> Job:
        """Create a job for a demo and start parsing it on a daemon thread."""
        job_id = job_id or generate_match_id(self.config.jobs.id_bytes)
        job = self.store.create(job_id)
        thread = threading.Thread(
            target=self.run, args=(job_id, Path(demo_path)), name=f"parse-{job_id}", daemon=True
        )
        thread.start()
        return job

    def run(self, job_id: str, demo_path: Path) -> Path | None:
        """
        Parse one demo synchronously, updating the job as it goes.

        Returns:
            Path of the written match JSON, or None if the job failed
        """
        logger.info(f"Starting parse {job_id}: {demo_path}")
        jobs_config = self.config.jobs

        try:
            match = self._parse(
                demo_path,
                job_id,
                lambda progress: self.store.set_progress(job_id, progress),
                self.config,
            )
        except Exception as e:
            logger.exception(f"Parse {job_id} failed")
            self.store.fail(job_id, e)
            return None
        finally:
            if jobs_config.delete_demo_after_parse:
                try:
                    demo_path.unlink(missing_ok=True)
                except OSError:
                    logger.warning(f"Failed to clean up demo file: {demo_path}")

        try:
            path = write_match(
                match, jobs_config.match_dir, pretty=self.config.export.pretty, compress=self.config.export.compress
            )
        except OSError as e:
            logger.exception(f"Failed to write match JSON for {job_id}")
            self.store.fail(job_id, f"writing match data: {e}")
            return None

        self.store.complete(job_id)
        logger.info(f"Parse complete {job_id}: map={match.map}, rounds={len(match.rounds)}")
        return path
