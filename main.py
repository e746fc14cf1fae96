from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.asyncio import AsyncIOScheduler

import config
import stores
from infrastructure.redis import init_default_redis, close_default_redis
from routes import pixels_router, jobs_router, cron_router
from services.committer import ConquestCommitter
from services.job_queue import JobQueue
from services.payment import get_payment_gateway
from services.rate_limiter import RedisRateLimiter, set_rate_limiter
from services.sweeper import sweep_pending_jobs

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def run_sweeper():
    """In-process sweep, used when no Celery beat is deployed."""
    summary = await sweep_pending_jobs(
        JobQueue(stores.get_job_store()),
        get_payment_gateway(),
        ConquestCommitter(stores.get_grid_store()),
    )
    if summary["processed"]:
        logger.info(f"In-process sweep: {summary}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await stores.init_stores(config.DB_PATH)

    if config.RATE_LIMIT_BACKEND == "redis":
        client = await init_default_redis(config.REDIS_URL)
        set_rate_limiter(RedisRateLimiter(client))

    scheduler = None
    if config.SWEEPER_IN_PROCESS:
        # --- Scheduler setup ---
        scheduler = AsyncIOScheduler(timezone="UTC")
        scheduler.add_job(
            run_sweeper,
            trigger="interval",
            seconds=config.SWEEPER_INTERVAL_SECONDS,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info(f"In-process sweeper every {config.SWEEPER_INTERVAL_SECONDS}s")

    yield

    if scheduler is not None:
        scheduler.shutdown()
    await close_default_redis()
    await stores.close_stores()


# --- FastAPI setup ---
app = FastAPI(title="Pixel War", lifespan=lifespan)

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "GET"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}


# --- Register routes ---
app.include_router(pixels_router)
app.include_router(jobs_router)
app.include_router(cron_router)
