from fastapi import APIRouter, HTTPException, Depends, Header
from typing import Optional
import logging

import config
from services.committer import ConquestCommitter
from services.job_queue import JobQueue
from services.payment import get_payment_gateway
from services.sweeper import sweep_pending_jobs
from utils.time import now_utc, to_iso
from .deps import get_committer, get_job_queue

logger = logging.getLogger(__name__)

router = APIRouter()


def check_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
	if config.CRON_SECRET and authorization != f"Bearer {config.CRON_SECRET}":
		raise HTTPException(status_code=401, detail="Unauthorized")


@router.api_route("/api/cron/process-jobs", methods=["GET", "POST"], dependencies=[Depends(check_cron_secret)])
async def process_jobs(
	queue: JobQueue = Depends(get_job_queue),
	gateway = Depends(get_payment_gateway),
	committer: ConquestCommitter = Depends(get_committer),
):
	"""Run one sweep over pending jobs."""
	summary = await sweep_pending_jobs(queue, gateway, committer)
	logger.info(f"[CRON] process-jobs: {summary['processed']} processed, {summary['skipped']} skipped")
	if not summary["processed"] and not summary["skipped"]:
		message = "No pending jobs"
	else:
		message = f"Processed {summary['processed']} jobs"
	return {"success": True, "message": message, "timestamp": to_iso(now_utc()), **summary}
