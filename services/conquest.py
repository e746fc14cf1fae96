"""The pay-then-commit conquest pipeline.

`submit_conquest` is the request entry point: it validates the batch and
either executes it inline or enqueues it as a job. `process_job` drives a
queued job to a terminal status and is shared by the Celery task, the
sweeper and the cron endpoint.

Every outcome is a plain result payload (see `build_result`), so payment and
commit failures travel to the caller or the job record instead of being
raised past this module.
"""
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional
import logging

import config
from models.domain_models import JobStatus, ValidatedBatch
from stores.grid_store import GridStore
from .batch_validator import validate
from .committer import CommitResult, CommitStatus, ConquestCommitter
from .job_queue import JobQueue
from .payment import PaymentGateway

logger = logging.getLogger(__name__)

PAID_NOT_COMMITTED = "paid_not_committed"


def explorer_url(settlement_ref: Optional[str]) -> Optional[str]:
    if not settlement_ref or not config.EXPLORER_URL:
        return None
    return config.EXPLORER_URL.format(ref=settlement_ref)


def build_result(
    *,
    success: bool,
    total_cells: int,
    settlement_ref: Optional[str] = None,
    commit: Optional[CommitResult] = None,
    total_paid: float = 0.0,
    error: Optional[str] = None,
    error_code: Optional[str] = None,
) -> dict[str, Any]:
    return {
        "success": success,
        "settlementRef": settlement_ref,
        "totalCells": total_cells,
        "successCount": commit.success_count if commit else 0,
        "skippedCount": commit.skipped_count if commit else 0,
        "errorCount": commit.error_count if commit else 0,
        "totalPaid": total_paid,
        "results": list(commit.results) if commit else [],
        "error": error,
        "errorCode": error_code,
        "explorerUrl": explorer_url(settlement_ref),
    }


async def execute_batch(
    actor_id: str,
    batch: ValidatedBatch,
    credential: Optional[str],
    gateway: PaymentGateway,
    committer: ConquestCommitter,
) -> dict[str, Any]:
    """Pay for `batch` and record it. Payment always precedes commit."""
    if batch.is_free:
        commit = await committer.commit(actor_id, [], batch.to_recolor, None)
        return build_result(success=commit.error_count == 0, total_cells=batch.total_cells, commit=commit)

    payment = await gateway.pay(credential, batch.total_price)
    if not payment.success:
        return build_result(
            success=False,
            total_cells=batch.total_cells,
            settlement_ref=payment.settlement_ref,
            error=payment.message,
            error_code=str(payment.reason),
        )

    try:
        commit = await committer.commit(actor_id, batch.to_conquer, batch.to_recolor, payment.settlement_ref)
    except Exception as exc:
        logger.error(
            f"[CONQUEST] commit raised for {actor_id} after settlement {payment.settlement_ref}: {exc}",
            exc_info=True,
        )
        commit = CommitResult(
            status=CommitStatus.PAID_NOT_COMMITTED,
            settlement_ref=payment.settlement_ref,
            error=f"Payment {payment.settlement_ref} succeeded but ownership was not recorded: {exc}",
        )
    if not commit.committed:
        return build_result(
            success=False,
            total_cells=batch.total_cells,
            settlement_ref=payment.settlement_ref,
            total_paid=batch.total_price,
            error=commit.error,
            error_code=PAID_NOT_COMMITTED,
        )

    return build_result(
        success=True,
        total_cells=batch.total_cells,
        settlement_ref=payment.settlement_ref,
        commit=commit,
        total_paid=batch.total_price,
    )


async def process_job(
    job_id: str,
    queue: JobQueue,
    gateway: PaymentGateway,
    committer: ConquestCommitter,
) -> Optional[dict[str, Any]]:
    """Claim and run one job to completion.

    Returns the stored result, or None when the job was already claimed.
    Once claimed, the job always ends `completed` or `failed`.
    """
    if await queue.claim(job_id) is None:
        return None

    job, credential = await queue.load_for_processing(job_id)
    batch = ValidatedBatch.from_cells(job["cells"])

    if credential is None and not batch.is_free:
        result = build_result(
            success=False,
            total_cells=batch.total_cells,
            error="Funding credential is no longer available",
            error_code="account_not_found",
        )
    else:
        try:
            result = await execute_batch(job["actor_id"], batch, credential, gateway, committer)
        except Exception as exc:
            logger.error(f"[JOBS] {job_id} failed while processing: {exc}", exc_info=True)
            result = build_result(
                success=False,
                total_cells=batch.total_cells,
                error=f"Processing failed: {exc}",
                error_code="internal_error",
            )

    status = JobStatus.COMPLETED if result["success"] else JobStatus.FAILED
    await queue.transition(job_id, status, result)
    if result["errorCode"] == PAID_NOT_COMMITTED:
        logger.error(f"[JOBS] {job_id} paid but not committed, settlement {result['settlementRef']}")
    return result


@dataclass
class Submission:
    """Outcome of `submit_conquest`: either an inline result or a job id."""
    batch: ValidatedBatch
    result: Optional[dict[str, Any]] = None
    job_id: Optional[str] = None
    dispatched: bool = False

    @property
    def is_async(self) -> bool:
        return self.job_id is not None


def should_queue(batch: ValidatedBatch, force_async: bool, threshold: Optional[int] = None) -> bool:
    if batch.is_free:
        return False
    threshold = config.ASYNC_THRESHOLD if threshold is None else threshold
    return force_async or len(batch.to_conquer) > threshold


async def submit_conquest(
    actor_id: str,
    credential: str,
    cells: Iterable[Any],
    *,
    store: GridStore,
    queue: JobQueue,
    gateway: PaymentGateway,
    committer: ConquestCommitter,
    dispatch: Callable[[str], bool],
    force_async: bool = False,
    threshold: Optional[int] = None,
) -> Submission:
    """Validate a request and either execute it now or hand it to a job.

    Raises the validator's errors; nothing is enqueued for an invalid batch.
    """
    batch = await validate(actor_id, cells, store)

    if not should_queue(batch, force_async, threshold):
        result = await execute_batch(actor_id, batch, credential, gateway, committer)
        return Submission(batch=batch, result=result)

    job_id = await queue.enqueue(actor_id, batch, credential)
    dispatched = dispatch(job_id)
    return Submission(batch=batch, job_id=job_id, dispatched=dispatched)


def dispatch_job(job_id: str) -> bool:
    """Hand a job to a Celery worker. On failure the sweeper picks it up."""
    if not config.DISPATCH_JOBS:
        return False
    try:
        from workers.tasks import process_conquest_job
        process_conquest_job.apply_async(args=[job_id], ignore_result=True)
        logger.info(f"[JOBS] Dispatched {job_id}")
        return True
    except Exception as exc:
        logger.error(f"Failed to dispatch {job_id}, leaving it for the sweeper: {exc}")
        return False


def get_job_dispatcher() -> Callable[[str], bool]:
    """FastAPI dependency returning the job dispatcher."""
    return dispatch_job
