# Abstractions
from .grid_store import GridStore
from .job_store import JobStore

# Exceptions
from .exceptions import (
    StoreError,
    UnexpectedResult,
    GridStoreError,
    JobStoreError,
    JobNotFound,
    InvalidJobTransition,
)

# Concrete implementations are private; only abstract interfaces are exported.
from .sqlite_grid_store import SqliteGridStore as _SqliteGridStore
from .sqlite_job_store import SqliteJobStore as _SqliteJobStore

__all__ = [
    # Abstractions
    "GridStore",
    "JobStore",
    # Exceptions
    "StoreError",
    "UnexpectedResult",
    "GridStoreError",
    "JobStoreError",
    "JobNotFound",
    "InvalidJobTransition",
    # Runtime helpers
    "init_stores",
    "close_stores",
    "open_stores",
    "get_grid_store",
    "get_job_store",
]


# Runtime singletons and initialization helpers
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

import config
from db import ensure_db

logger = logging.getLogger(__name__)

grid_store: Optional[GridStore] = None
job_store: Optional[JobStore] = None


async def _open(db_path: str) -> tuple[GridStore, JobStore]:
    await ensure_db(db_path, config.SCHEMA_PATH)
    gs = _SqliteGridStore(db_path)
    js = _SqliteJobStore(db_path)
    await gs.init()
    await js.init()
    return gs, js


async def init_stores(db_path: str, *, seed_grid: bool = True) -> None:
    """Initialize module-level store singletons for the web process.

    Idempotent. Must be awaited inside the event loop that will use the
    stores (aiosqlite connections are bound to their loop's executor).
    """
    global grid_store, job_store

    if grid_store is not None and job_store is not None:
        return

    grid_store, job_store = await _open(db_path)
    if seed_grid:
        await grid_store.init_grid(
            config.GRID_WIDTH,
            config.GRID_HEIGHT,
            floor_price=config.INITIAL_PRICE,
            color=config.DEFAULT_COLOR,
        )


async def close_stores() -> None:
    global grid_store, job_store
    if grid_store is not None:
        await grid_store.close()
        grid_store = None
    if job_store is not None:
        await job_store.close()
        job_store = None


@asynccontextmanager
async def open_stores(db_path: str) -> AsyncIterator[tuple[GridStore, JobStore]]:
    """Open a private pair of stores for one unit of work.

    Celery tasks run each invocation in a fresh event loop via
    `asyncio.run`, so they cannot share the web process singletons.
    """
    gs, js = await _open(db_path)
    try:
        yield gs, js
    finally:
        await gs.close()
        await js.close()


def get_grid_store() -> GridStore:
    """FastAPI dependency returning the grid store singleton."""
    if grid_store is None:
        raise RuntimeError("Stores not initialized; call init_stores() first")
    return grid_store


def get_job_store() -> JobStore:
    """FastAPI dependency returning the job store singleton."""
    if job_store is None:
        raise RuntimeError("Stores not initialized; call init_stores() first")
    return job_store
