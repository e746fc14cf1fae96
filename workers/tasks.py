"""Celery task definitions for the conquest pipeline."""
from celery import Task
from celery.exceptions import SoftTimeLimitExceeded
import logging
from datetime import datetime, UTC
from typing import Any, Dict
import asyncio
from functools import wraps

import config
import stores
from infrastructure.redis import create_redis_client
from services.committer import ConquestCommitter
from services.conquest import process_job
from services.job_queue import JobQueue
from services.payment import create_payment_gateway
from services.sweeper import sweep_pending_jobs as sweep
from workers.celery_app import app

logger = logging.getLogger(__name__)

soft_time_limit = 60  # seconds
hard_time_limit = 180  # seconds

heavy_task_soft_time_limit = 240  # seconds
heavy_task_hard_time_limit = 300  # seconds

SWEEPER_LOCK_KEY = "pixelwar:sweeper:lock"


def celery_task(**task_kwargs):
	"""Combined decorator that registers a Celery task and adds error handling.

	- Registers the function as a Celery task via @app.task()
	- For retryable exceptions: logs and re-raises to allow Celery's autoretry mechanism
	- For non-retryable exceptions: logs and returns graceful failure dict
	"""
	def decorator(func):
		@wraps(func)
		def wrapper(self, *args, **kwargs):
			try:
				return func(self, *args, **kwargs)
			except SoftTimeLimitExceeded:
				logger.warning(f"{func.__name__} exceeded soft time limit, graceful shutdown")
				raise
			except Exception as exc:
				# Unknown exceptions are treated as retryable
				is_retryable = getattr(exc, 'retryable', True)

				if not is_retryable:
					logger.error(f"{func.__name__} failed with non-retryable error: {exc.__class__.__name__}: {exc}", exc_info=True)
					return {
						"status": "failure",
						"error": exc.__class__.__name__,
						"message": str(exc),
						"timestamp": datetime.now(UTC).isoformat(),
					}
				else:
					logger.error(f"{func.__name__} failed with retryable error: {exc.__class__.__name__}: {exc}", exc_info=True)
					raise
		return app.task(base=PixelWarTask, **task_kwargs)(wrapper)
	return decorator


class PixelWarTask(Task):
	"""Base task class with custom error handling and logging."""

	autoretry_for = (Exception,)
	retry_kwargs = {"max_retries": 5}
	retry_backoff = True
	retry_backoff_max = 3600
	retry_jitter = True

	def on_retry(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
		logger.warning(
			f"Task {self.name} (id={task_id}) retrying after {exc}",
			extra={"task_id": task_id, "task_args": args, "task_kwargs": kwargs},
		)

	def on_failure(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
		logger.error(
			f"Task {self.name} (id={task_id}) failed with {exc}",
			extra={"task_id": task_id, "task_args": args, "task_kwargs": kwargs},
			exc_info=einfo,
		)

	def on_success(self, result: Any, task_id: str, args: tuple, kwargs: dict) -> None:
		logger.info(
			f"Task {self.name} (id={task_id}) succeeded",
			extra={"task_id": task_id, "task_result": result},
		)


# Tasks that may move money never retry automatically: a retried payment
# could settle twice. A job left pending is picked up by the sweeper.
_no_autoretry = {"autoretry_for": (), "max_retries": 0}


@celery_task(
	bind=True,
	name="workers.tasks.process_conquest_job",
	queue="conquests",
	priority=1,
	soft_time_limit=heavy_task_soft_time_limit,
	time_limit=heavy_task_hard_time_limit,
	**_no_autoretry,
)
def process_conquest_job(self, job_id: str) -> Dict[str, Any]:
	"""
	Drive one queued conquest job through payment and commit.

	Returns:
		dict: {"status": "success" | "skipped", "job_id": str, "result": dict | None}
	"""
	logger.info(f"process_conquest_job called for job_id={job_id}")

	async def run():
		# Each task gets its own event loop, so it opens its own stores
		async with stores.open_stores(config.DB_PATH) as (grid_store, job_store):
			return await process_job(
				job_id,
				JobQueue(job_store),
				create_payment_gateway(),
				ConquestCommitter(grid_store),
			)

	result = asyncio.run(run())
	output = {
		"status": "skipped" if result is None else "success",
		"job_id": job_id,
		"result": result,
		"timestamp": datetime.now(UTC).isoformat(),
	}
	logger.info(f"process_conquest_job completed for job_id={job_id}: {output['status']}")
	return output


@celery_task(
	bind=True,
	name="workers.tasks.sweep_pending_jobs",
	queue="maintenance",
	priority=2,
	soft_time_limit=heavy_task_soft_time_limit,
	time_limit=heavy_task_hard_time_limit,
	**_no_autoretry,
)
def sweep_pending_jobs(self, limit: int | None = None) -> Dict[str, Any]:
	"""
	Periodic task re-driving the oldest pending jobs, one at a time.

	A Redis lock keeps overlapping beat ticks from sweeping concurrently.

	Returns:
		dict: {"status": "success" | "skipped", "processed": int, "skipped": int, ...}
	"""
	logger.info("Starting sweep_pending_jobs task")

	async def run():
		redis_client = create_redis_client(config.REDIS_URL)
		await redis_client.init()
		try:
			async with redis_client.hold_lock(SWEEPER_LOCK_KEY, timeout_ms=config.SWEEPER_LOCK_TIMEOUT_MS) as acquired:
				if not acquired:
					logger.info("Another sweep holds the lock, skipping")
					return None
				async with stores.open_stores(config.DB_PATH) as (grid_store, job_store):
					return await sweep(
						JobQueue(job_store),
						create_payment_gateway(),
						ConquestCommitter(grid_store),
						limit,
					)
		finally:
			await redis_client.close()

	summary = asyncio.run(run())
	if summary is None:
		return {"status": "skipped", "timestamp": datetime.now(UTC).isoformat()}

	result = {"status": "success", **summary, "timestamp": datetime.now(UTC).isoformat()}
	logger.info(f"sweep_pending_jobs task completed: {result}")
	return result


@celery_task(
	bind=True,
	name="workers.tasks.delete_expired_jobs",
	queue="maintenance",
	priority=2,
	soft_time_limit=soft_time_limit,
	time_limit=hard_time_limit,
)
def delete_expired_jobs(self) -> Dict[str, Any]:
	"""
	Periodic task deleting jobs past the retention window.

	Jobs still `processing` are kept.

	Returns:
		dict: {"status": "success", "deleted_count": int, "timestamp": str}
	"""
	logger.info("Starting delete_expired_jobs task")

	async def run():
		async with stores.open_stores(config.DB_PATH) as (_, job_store):
			return await JobQueue(job_store).purge_expired()

	deleted_count = asyncio.run(run())
	logger.info(f"Deleted {deleted_count} expired jobs")

	result = {
		"status": "success",
		"deleted_count": deleted_count,
		"timestamp": datetime.now(UTC).isoformat(),
	}
	logger.info(f"delete_expired_jobs task completed: {result}")
	return result
