from typing import Any, Optional
from datetime import datetime
from abc import ABC, abstractmethod

from models.domain_models import Job


# =========================
# JobStore Interface
# =========================

class JobStore(ABC):
    """
    Durable record of asynchronous conquest jobs.

    Invariants:
    - Status only moves forward: pending -> processing -> completed | failed
    - Claiming (pending -> processing) is atomic; at most one caller wins
    - The funding credential is never part of a returned `Job`
    """

    @abstractmethod
    async def create_job(
        self,
        job_id: str,
        *,
        actor_id: str,
        cells: list[dict[str, Any]],
        total_price: float,
        credential: str,
        created_at: datetime,
    ) -> None:
        """Persist a new `pending` job together with its credential."""

    @abstractmethod
    async def get_job(self, job_id: str) -> Job:
        """Return a job without its credential.

        Raises:
            JobNotFound: If no such job exists.
        """

    @abstractmethod
    async def get_credential(self, job_id: str) -> Optional[str]:
        """Return the stored funding credential, or None once it was purged."""

    @abstractmethod
    async def claim_job(self, job_id: str, *, now: datetime) -> bool:
        """Atomically move a job from `pending` to `processing`.

        Returns False when the job is no longer pending (claimed elsewhere).

        Raises:
            JobNotFound: If no such job exists.
        """

    @abstractmethod
    async def update_status(
        self,
        job_id: str,
        status: str,
        *,
        result: Optional[dict[str, Any]] = None,
        now: datetime,
    ) -> Job:
        """Apply a forward status change and store `result`.

        Terminal statuses also purge the stored credential.

        Raises:
            JobNotFound: If no such job exists.
            InvalidJobTransition: If the move is not a legal forward step.
        """

    @abstractmethod
    async def list_pending(self, *, created_after: datetime, limit: int) -> list[Job]:
        """Return up to `limit` pending jobs created after `created_after`,
        oldest first."""

    @abstractmethod
    async def delete_jobs_before(self, cutoff: datetime) -> int:
        """Delete pending and terminal jobs created before `cutoff`. Jobs in
        `processing` are kept. Returns the number of jobs deleted."""

    @abstractmethod
    async def count_by_status(self) -> dict[str, int]:
        """Return the number of jobs per status."""
