import asyncio
import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Optional

import aiosqlite

from db import connect
from models.domain_models import Job, JobStatus, can_transition
from utils.time import to_iso
from .exceptions import InvalidJobTransition, JobNotFound, JobStoreError
from .job_store import JobStore

logger = logging.getLogger(__name__)

_JOB_COLUMNS = "job_id, status, actor_id, cells, total_price, result, created_at, updated_at"


def _row_to_job(row) -> Job:
    return {
        "job_id": row["job_id"],
        "status": row["status"],
        "actor_id": row["actor_id"],
        "cells": json.loads(row["cells"] or "[]"),
        "total_price": row["total_price"],
        "result": json.loads(row["result"]) if row["result"] else None,
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


class SqliteJobStore(JobStore):

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.db: aiosqlite.Connection = None
        self._lock = asyncio.Lock()
        logger.info(f"[JOBS] SqliteJobStore initialized with db_path: {db_path}")

    async def init(self):
        """Open the database connection. Call this after construction."""
        self.db = await connect(self.db_path)

    async def close(self):
        if self.db:
            await self.db.close()
            self.db = None

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
        ts = to_iso(created_at)
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                await self.db.execute(
                    """
                    INSERT INTO conquest_jobs (job_id, status, actor_id, cells, total_price, result, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, NULL, ?, ?)
                    """,
                    (job_id, JobStatus.PENDING.value, actor_id, json.dumps(cells), total_price, ts, ts),
                )
                await self.db.execute(
                    "INSERT INTO job_credentials (job_id, credential) VALUES (?, ?)",
                    (job_id, credential),
                )
                await self.db.commit()
            except sqlite3.Error as exc:
                await self.db.rollback()
                raise JobStoreError(f"Failed to create job {job_id}: {exc}") from exc
        logger.info(f"[JOBS] Created job {job_id} for {actor_id} ({len(cells)} cells, {total_price})")

    async def get_job(self, job_id: str) -> Job:
        async with self._lock:
            cur = await self.db.execute(
                f"SELECT {_JOB_COLUMNS} FROM conquest_jobs WHERE job_id = ?",
                (job_id,),
            )
            row = await cur.fetchone()
        if row is None:
            raise JobNotFound(job_id)
        return _row_to_job(row)

    async def get_credential(self, job_id: str) -> Optional[str]:
        async with self._lock:
            cur = await self.db.execute(
                "SELECT credential FROM job_credentials WHERE job_id = ?",
                (job_id,),
            )
            row = await cur.fetchone()
        return row[0] if row else None

    async def claim_job(self, job_id: str, *, now: datetime) -> bool:
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                cur = await self.db.execute(
                    """
                    UPDATE conquest_jobs SET status = ?, updated_at = ?
                    WHERE job_id = ? AND status = ?
                    """,
                    (JobStatus.PROCESSING.value, to_iso(now), job_id, JobStatus.PENDING.value),
                )
                claimed = cur.rowcount == 1
                if not claimed:
                    cur = await self.db.execute(
                        "SELECT 1 FROM conquest_jobs WHERE job_id = ?",
                        (job_id,),
                    )
                    exists = await cur.fetchone() is not None
                await self.db.commit()
            except sqlite3.Error as exc:
                await self.db.rollback()
                raise JobStoreError(f"Failed to claim job {job_id}: {exc}") from exc

        if not claimed and not exists:
            raise JobNotFound(job_id)
        return claimed

    async def update_status(
        self,
        job_id: str,
        status: str,
        *,
        result: Optional[dict[str, Any]] = None,
        now: datetime,
    ) -> Job:
        target = JobStatus(status)
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                cur = await self.db.execute(
                    "SELECT status FROM conquest_jobs WHERE job_id = ?",
                    (job_id,),
                )
                row = await cur.fetchone()
                if row is None:
                    await self.db.rollback()
                    raise JobNotFound(job_id)
                if not can_transition(row[0], target):
                    await self.db.rollback()
                    raise InvalidJobTransition(job_id, row[0], target.value)

                await self.db.execute(
                    """
                    UPDATE conquest_jobs SET status = ?, result = ?, updated_at = ?
                    WHERE job_id = ?
                    """,
                    (target.value, json.dumps(result) if result is not None else None, to_iso(now), job_id),
                )
                if target.is_terminal:
                    await self.db.execute("DELETE FROM job_credentials WHERE job_id = ?", (job_id,))
                await self.db.commit()
            except sqlite3.Error as exc:
                await self.db.rollback()
                raise JobStoreError(f"Failed to update job {job_id}: {exc}") from exc

        return await self.get_job(job_id)

    async def list_pending(self, *, created_after: datetime, limit: int) -> list[Job]:
        async with self._lock:
            cur = await self.db.execute(
                f"""
                SELECT {_JOB_COLUMNS} FROM conquest_jobs
                WHERE status = ? AND created_at > ?
                ORDER BY created_at ASC
                LIMIT ?
                """,
                (JobStatus.PENDING.value, to_iso(created_after), limit),
            )
            rows = await cur.fetchall()
        return [_row_to_job(r) for r in rows]

    async def delete_jobs_before(self, cutoff: datetime) -> int:
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                cur = await self.db.execute(
                    "DELETE FROM conquest_jobs WHERE created_at < ? AND status != ?",
                    (to_iso(cutoff), JobStatus.PROCESSING.value),
                )
                deleted = cur.rowcount
                await self.db.commit()
            except sqlite3.Error as exc:
                await self.db.rollback()
                raise JobStoreError(f"Failed to delete expired jobs: {exc}") from exc
        return deleted

    async def count_by_status(self) -> dict[str, int]:
        async with self._lock:
            cur = await self.db.execute("SELECT status, COUNT(*) FROM conquest_jobs GROUP BY status")
            rows = await cur.fetchall()
        counts = {s.value: 0 for s in JobStatus}
        for status, count in rows:
            counts[status] = count
        return counts
