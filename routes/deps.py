"""Shared FastAPI dependencies and helpers for the route modules."""
from fastapi import Depends, HTTPException
import math

import config
from stores import GridStore, JobStore, get_grid_store, get_job_store
from services.committer import ConquestCommitter
from services.job_queue import JobQueue
from services.rate_limiter import RateLimiter
from utils.time import ms_to_iso, now_ms


def get_job_queue(store: JobStore = Depends(get_job_store)) -> JobQueue:
	return JobQueue(store)


def get_committer(store: GridStore = Depends(get_grid_store)) -> ConquestCommitter:
	return ConquestCommitter(store)


async def enforce_rate_limit(limiter: RateLimiter, key: str, max_requests: int) -> None:
	"""Raise 429 with `resetAt` and a Retry-After header when over the limit."""
	decision = await limiter.admit(key, max_requests, config.RATE_LIMIT_WINDOW_MS)
	if decision.allowed:
		return
	retry_after = max(1, math.ceil((decision.reset_at - now_ms()) / 1000))
	raise HTTPException(
		status_code=429,
		detail={
			"error": "Rate limit exceeded. Please try again later.",
			"resetAt": ms_to_iso(decision.reset_at),
			"retryAfter": retry_after,
		},
		headers={"Retry-After": str(retry_after)},
	)
