from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import config
from db import ensure_db
from models.domain_models import ConquestItem, JobStatus, RecolorItem, ValidatedBatch
from services.job_queue import JobQueue
from stores.exceptions import InvalidJobTransition, JobNotFound
from stores.sqlite_job_store import SqliteJobStore


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def _batch() -> ValidatedBatch:
    return ValidatedBatch(
        to_conquer=[ConquestItem(x=0, y=0, color="#FF0000", price=0.01)],
        to_recolor=[RecolorItem(x=1, y=1, color="#00FF00")],
        total_price=0.01,
    )


async def _open(db_path: str) -> SqliteJobStore:
    await ensure_db(db_path, config.SCHEMA_PATH)
    store = SqliteJobStore(db_path)
    await store.init()
    return store


def test_enqueue_get_and_forward_transitions(tmp_path: Path) -> None:
    clock = Clock()

    async def run():
        store = await _open(str(tmp_path / "jobs.sqlite3"))
        try:
            queue = JobQueue(store, retention_seconds=3600, clock=clock)
            job_id = await queue.enqueue("alice", _batch(), "secret-credential")
            pending = await queue.get(job_id)
            claimed = await queue.claim(job_id)
            second_claim = await queue.claim(job_id)
            _, credential = await queue.load_for_processing(job_id)
            done = await queue.transition(job_id, JobStatus.COMPLETED, {"success": True})
            credential_after = await store.get_credential(job_id)
            with pytest.raises(InvalidJobTransition):
                await queue.transition(job_id, JobStatus.PROCESSING)
            return job_id, pending, claimed, second_claim, credential, done, credential_after
        finally:
            await store.close()

    job_id, pending, claimed, second_claim, credential, done, credential_after = asyncio.run(run())

    assert job_id.startswith("job_")
    assert pending["status"] == "pending"
    assert "credential" not in pending
    assert pending["cells"][1] == {"x": 1, "y": 1, "color": "#00FF00", "price": None}
    assert claimed["status"] == "processing"
    assert second_claim is None
    assert credential == "secret-credential"
    assert done["status"] == "completed"
    assert done["result"] == {"success": True}
    assert credential_after is None


def test_pending_cannot_skip_to_terminal(tmp_path: Path) -> None:
    async def run():
        store = await _open(str(tmp_path / "jobs.sqlite3"))
        try:
            queue = JobQueue(store, clock=Clock())
            job_id = await queue.enqueue("alice", _batch(), "cred")
            await queue.transition(job_id, JobStatus.FAILED)
        finally:
            await store.close()

    with pytest.raises(InvalidJobTransition):
        asyncio.run(run())


def test_job_survives_a_new_store_instance(tmp_path: Path) -> None:
    db_path = str(tmp_path / "jobs.sqlite3")
    clock = Clock()

    async def enqueue():
        store = await _open(db_path)
        try:
            return await JobQueue(store, clock=clock).enqueue("alice", _batch(), "cred")
        finally:
            await store.close()

    async def lookup(job_id: str):
        store = await _open(db_path)
        try:
            return await JobQueue(store, clock=clock).get(job_id)
        finally:
            await store.close()

    job_id = asyncio.run(enqueue())
    job = asyncio.run(lookup(job_id))
    assert job["status"] == "pending"
    assert ValidatedBatch.from_cells(job["cells"]).total_price == pytest.approx(0.01)


def test_expired_jobs_are_not_found_and_purged(tmp_path: Path) -> None:
    clock = Clock()

    async def run():
        store = await _open(str(tmp_path / "jobs.sqlite3"))
        try:
            queue = JobQueue(store, retention_seconds=3600, clock=clock)
            old = await queue.enqueue("alice", _batch(), "cred")
            busy = await queue.enqueue("alice", _batch(), "cred")
            await queue.claim(busy)
            clock.now += timedelta(minutes=30)
            fresh = await queue.enqueue("bob", _batch(), "cred")

            clock.now += timedelta(minutes=31)
            with pytest.raises(JobNotFound):
                await queue.get(old)
            listed = [j["job_id"] for j in await queue.list_pending(10)]
            purged = await queue.purge_expired()
            counts = await store.count_by_status()
            return old, fresh, listed, purged, counts
        finally:
            await store.close()

    old, fresh, listed, purged, counts = asyncio.run(run())
    assert listed == [fresh]
    assert purged == 1
    assert counts["processing"] == 1
    assert counts["pending"] == 1


def test_unknown_job_not_found(tmp_path: Path) -> None:
    async def run():
        store = await _open(str(tmp_path / "jobs.sqlite3"))
        try:
            queue = JobQueue(store, clock=Clock())
            with pytest.raises(JobNotFound):
                await queue.get("job_missing")
            with pytest.raises(JobNotFound):
                await queue.claim("job_missing")
        finally:
            await store.close()

    asyncio.run(run())
