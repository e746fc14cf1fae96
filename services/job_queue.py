"""Durable queue of asynchronous conquest jobs.

The `JobStore` is the only copy of a job; nothing is cached in process
memory, so a job stays discoverable after the process that enqueued it
is gone. Jobs older than the retention window are reported as missing
even while their rows still exist.
"""
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
import logging
import uuid

import config
from models.domain_models import Job, JobStatus, ValidatedBatch
from stores.exceptions import JobNotFound
from stores.job_store import JobStore
from utils.time import now_utc, parse_iso

logger = logging.getLogger(__name__)


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex}"


class JobQueue:

    def __init__(
        self,
        store: JobStore,
        *,
        retention_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.retention = timedelta(
            seconds=config.JOB_RETENTION_SECONDS if retention_seconds is None else retention_seconds
        )
        self._clock = clock

    def _cutoff(self) -> datetime:
        return self._clock() - self.retention

    def is_expired(self, job: Job) -> bool:
        created = parse_iso(job.get("created_at", ""))
        return created is None or created <= self._cutoff()

    async def enqueue(self, actor_id: str, batch: ValidatedBatch, credential: str) -> str:
        """Persist a `pending` job for `batch` and return its id."""
        job_id = new_job_id()
        await self.store.create_job(
            job_id,
            actor_id=actor_id,
            cells=batch.to_cells(),
            total_price=batch.total_price,
            credential=credential,
            created_at=self._clock(),
        )
        logger.info(f"[JOBS] Enqueued {job_id} for {actor_id}: {batch.total_cells} cells, {batch.total_price}")
        return job_id

    async def get(self, job_id: str) -> Job:
        """Return a job by id (never its credential).

        Raises:
            JobNotFound: If the job does not exist or has expired.
        """
        job = await self.store.get_job(job_id)
        if self.is_expired(job):
            raise JobNotFound(job_id)
        return job

    async def transition(self, job_id: str, new_status: str, result: Optional[dict[str, Any]] = None) -> Job:
        """Move a job forward along pending -> processing -> completed | failed.

        Raises:
            JobNotFound: If the job does not exist.
            InvalidJobTransition: If `new_status` is not a legal next state.
        """
        job = await self.store.update_status(job_id, new_status, result=result, now=self._clock())
        logger.info(f"[JOBS] {job_id} -> {job['status']}")
        return job

    async def claim(self, job_id: str) -> Optional[Job]:
        """Atomically take a pending job. Returns None if someone else has it."""
        if not await self.store.claim_job(job_id, now=self._clock()):
            logger.info(f"[JOBS] {job_id} already claimed, skipping")
            return None
        logger.info(f"[JOBS] {job_id} -> {JobStatus.PROCESSING}")
        return await self.store.get_job(job_id)

    async def load_for_processing(self, job_id: str) -> tuple[Job, Optional[str]]:
        """Return the job together with its funding credential."""
        job = await self.store.get_job(job_id)
        credential = await self.store.get_credential(job_id)
        return job, credential

    async def list_pending(self, limit: int) -> list[Job]:
        """Oldest unexpired pending jobs first."""
        return await self.store.list_pending(created_after=self._cutoff(), limit=limit)

    async def purge_expired(self) -> int:
        deleted = await self.store.delete_jobs_before(self._cutoff())
        if deleted:
            logger.info(f"[JOBS] Purged {deleted} expired jobs")
        return deleted
