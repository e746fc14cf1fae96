"""Re-drive conquest jobs left in `pending`.

A job stays pending when its worker never ran (dispatch failed, process
crashed). Each sweep takes the oldest few and runs them one at a time;
jobs are never processed in parallel here, since they draw on the same
treasury.
"""
from typing import Any, Optional
import logging

import config
from stores.exceptions import JobNotFound
from .committer import ConquestCommitter
from .conquest import process_job
from .job_queue import JobQueue
from .payment import PaymentGateway

logger = logging.getLogger(__name__)


async def sweep_pending_jobs(
    queue: JobQueue,
    gateway: PaymentGateway,
    committer: ConquestCommitter,
    limit: Optional[int] = None,
) -> dict[str, Any]:
    limit = config.SWEEPER_BATCH_SIZE if limit is None else limit
    pending = await queue.list_pending(limit)
    if not pending:
        return {"processed": 0, "skipped": 0, "completed": 0, "failed": 0, "jobIds": []}

    logger.info(f"[JOBS] Sweeper found {len(pending)} pending jobs")
    processed = skipped = completed = failed = 0
    job_ids: list[str] = []

    for job in pending:
        job_id = job["job_id"]
        try:
            result = await process_job(job_id, queue, gateway, committer)
        except JobNotFound:
            logger.warning(f"[JOBS] {job_id} disappeared before it could be swept")
            result = None
        if result is None:
            skipped += 1
            continue
        processed += 1
        job_ids.append(job_id)
        if result["success"]:
            completed += 1
        else:
            failed += 1

    summary = {
        "processed": processed,
        "skipped": skipped,
        "completed": completed,
        "failed": failed,
        "jobIds": job_ids,
    }
    logger.info(f"[JOBS] Sweep finished: {summary}")
    return summary
