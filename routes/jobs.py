from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
import logging

from stores import JobNotFound
from models import JobStatus, JobStatusResponse
from services.job_queue import JobQueue
from .deps import get_job_queue

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_HINTS = {
	JobStatus.PENDING: ("Job is queued and waiting to be processed. Please poll again in a few seconds.", 2),
	JobStatus.PROCESSING: ("Job is currently being processed. This may take up to 60 seconds.", 5),
	JobStatus.COMPLETED: ("Job completed successfully!", None),
	JobStatus.FAILED: ("Job failed. See result.error for details.", None),
}


async def _job_status(job_id: str, queue: JobQueue) -> JobStatusResponse:
	try:
		job = await queue.get(job_id)
	except JobNotFound:
		raise HTTPException(status_code=404, detail="Job not found. It may have expired (jobs are kept for 1 hour).")

	status = JobStatus(job["status"])
	message, retry_after = _STATUS_HINTS[status]
	return JobStatusResponse(
		job_id=job["job_id"],
		status=status.value,
		actor_id=job["actor_id"],
		total_cells=len(job["cells"]),
		estimated_price=job["total_price"],
		created_at=job["created_at"],
		updated_at=job["updated_at"],
		message=message,
		retry_after=retry_after,
		result=job["result"] if status.is_terminal else None,
	)


@router.get("/api/pixels/job", response_model=JobStatusResponse, response_model_exclude_none=True)
async def poll_job(id: Optional[str] = None, queue: JobQueue = Depends(get_job_queue)):
	"""Poll an async conquest job by `?id=`."""
	if not id:
		raise HTTPException(status_code=400, detail="Missing job id. Usage: /api/pixels/job?id=JOB_ID")
	return await _job_status(id, queue)


@router.get("/api/jobs/{job_id}", response_model=JobStatusResponse, response_model_exclude_none=True)
async def get_job(job_id: str, queue: JobQueue = Depends(get_job_queue)):
	return await _job_status(job_id, queue)
