import asyncio
import logging
import sqlite3
from typing import Iterable, Optional

import aiosqlite

from db import connect
from models.domain_models import Cell, CellResult, ConquestItem, RecolorItem
from services.pricing import next_price
from utils.time import now_utc, to_iso
from .exceptions import GridStoreError, UnexpectedResult
from .grid_store import GridStore

logger = logging.getLogger(__name__)

_CELL_COLUMNS = (
    "x, y, color, current_price, owner_id, conquest_count, "
    "last_settlement_ref, last_conquered_at"
)


def _row_to_cell(row) -> Cell:
    return {
        "x": row["x"],
        "y": row["y"],
        "color": row["color"],
        "current_price": row["current_price"],
        "owner_id": row["owner_id"],
        "conquest_count": row["conquest_count"],
        "last_settlement_ref": row["last_settlement_ref"],
        "last_conquered_at": row["last_conquered_at"],
    }


class SqliteGridStore(GridStore):

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.db: aiosqlite.Connection = None
        # One connection, one transaction at a time
        self._lock = asyncio.Lock()
        logger.info(f"[STORE] SqliteGridStore initialized with db_path: {db_path}")

    async def init(self):
        """Open the database connection. Call this after construction."""
        self.db = await connect(self.db_path)
        logger.info(f"[STORE] Grid store connected to {self.db_path}")

    async def close(self):
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    async def init_grid(
        self,
        width: int,
        height: int,
        *,
        floor_price: float,
        color: str,
    ) -> int:
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                cur = await self.db.execute("SELECT COUNT(*) FROM cells")
                before = (await cur.fetchone())[0]
                await self.db.executemany(
                    """
                    INSERT OR IGNORE INTO cells (x, y, color, current_price, owner_id, conquest_count)
                    VALUES (?, ?, ?, ?, NULL, 0)
                    """,
                    [(x, y, color, floor_price) for y in range(height) for x in range(width)],
                )
                cur = await self.db.execute("SELECT COUNT(*) FROM cells")
                after = (await cur.fetchone())[0]
                await self.db.commit()
            except sqlite3.Error as exc:
                await self.db.rollback()
                raise GridStoreError("Failed to initialize grid") from exc

        created = after - before
        logger.info(f"[STORE] Grid {width}x{height} initialized, {created} cells created")
        return created

    # -------------------------------------------------
    # Read-side queries
    # -------------------------------------------------

    # Reads share the connection, so they wait for any open transaction.

    async def get_cells(self, coords: Iterable[tuple[int, int]]) -> dict[tuple[int, int], Cell]:
        coords = list(dict.fromkeys(coords))
        if not coords:
            return {}

        placeholders = ", ".join("(?, ?)" for _ in coords)
        params = [v for xy in coords for v in xy]
        async with self._lock:
            cur = await self.db.execute(
                f"SELECT {_CELL_COLUMNS} FROM cells WHERE (x, y) IN (VALUES {placeholders})",
                params,
            )
            rows = await cur.fetchall()
        return {(r["x"], r["y"]): _row_to_cell(r) for r in rows}

    async def list_cells(self, *, owner_id: Optional[str] = None) -> list[Cell]:
        async with self._lock:
            if owner_id is None:
                cur = await self.db.execute(f"SELECT {_CELL_COLUMNS} FROM cells ORDER BY y, x")
            else:
                cur = await self.db.execute(
                    f"SELECT {_CELL_COLUMNS} FROM cells WHERE owner_id = ? ORDER BY y, x",
                    (owner_id,),
                )
            rows = await cur.fetchall()
        return [_row_to_cell(r) for r in rows]

    async def grid_statistics(self) -> dict:
        async with self._lock:
            cur = await self.db.execute(
                """
                SELECT COUNT(*), COUNT(owner_id), COALESCE(SUM(current_price), 0)
                FROM cells
                """
            )
            total, owned, total_value = await cur.fetchone()
        return {
            "total_cells": total,
            "owned_cells": owned,
            "unowned_cells": total - owned,
            "total_value": total_value,
            "average_price": total_value / total if total else 0.0,
        }

    # -------------------------------------------------
    # Ownership transfer (atomic path)
    # -------------------------------------------------

    async def batch_conquer(
        self,
        items: Iterable[ConquestItem],
        actor_id: str,
        settlement_ref: str,
    ) -> list[CellResult]:
        items = list(items)
        results: list[CellResult] = []
        now = to_iso(now_utc())

        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                for item in items:
                    results.append(await self._conquer_one(item, actor_id, settlement_ref, now))
                await self.db.commit()
            except sqlite3.Error as exc:
                await self.db.rollback()
                logger.error(
                    f"[STORE] batch_conquer rolled back for {actor_id} (settlement {settlement_ref}): {exc}"
                )
                raise GridStoreError(f"Batch conquest failed: {exc}") from exc
            except UnexpectedResult:
                await self.db.rollback()
                raise

        logger.info(
            f"[STORE] batch_conquer {settlement_ref}: "
            f"{sum(r['status'] == 'success' for r in results)}/{len(results)} cells conquered by {actor_id}"
        )
        return results

    async def _conquer_one(self, item: ConquestItem, actor_id: str, settlement_ref: str, now: str) -> CellResult:
        # Replays of the same settlement never escalate twice
        cur = await self.db.execute(
            "SELECT new_price FROM conquests WHERE settlement_ref = ? AND x = ? AND y = ?",
            (settlement_ref, item.x, item.y),
        )
        applied = await cur.fetchone()
        if applied is not None:
            return {"x": item.x, "y": item.y, "status": "skipped", "reason": "already_applied",
                    "new_price": applied[0]}

        cur = await self.db.execute(
            "SELECT current_price, owner_id FROM cells WHERE x = ? AND y = ?",
            (item.x, item.y),
        )
        row = await cur.fetchone()
        if row is None:
            return {"x": item.x, "y": item.y, "status": "error", "reason": "cell_not_found"}

        current_price, previous_owner = row[0], row[1]
        if previous_owner == actor_id:
            await self.db.execute(
                "UPDATE cells SET color = ? WHERE x = ? AND y = ?",
                (item.color, item.x, item.y),
            )
            return {"x": item.x, "y": item.y, "status": "skipped", "reason": "already_owner"}

        new_price = next_price(current_price)
        cur = await self.db.execute(
            """
            UPDATE cells
            SET owner_id = ?, current_price = ?, conquest_count = conquest_count + 1,
                color = ?, last_settlement_ref = ?, last_conquered_at = ?
            WHERE x = ? AND y = ? AND current_price = ?
            """,
            (actor_id, new_price, item.color, settlement_ref, now, item.x, item.y, current_price),
        )
        if cur.rowcount != 1:
            raise UnexpectedResult(f"Cell ({item.x}, {item.y}) changed inside transaction")

        await self.db.execute(
            """
            INSERT INTO conquests (x, y, settlement_ref, actor_id, previous_owner, price_paid, new_price, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (item.x, item.y, settlement_ref, actor_id, previous_owner, current_price, new_price, now),
        )
        return {
            "x": item.x,
            "y": item.y,
            "status": "success",
            "price_paid": current_price,
            "new_price": new_price,
        }

    async def batch_recolor(
        self,
        items: Iterable[RecolorItem],
        actor_id: str,
    ) -> list[CellResult]:
        items = list(items)
        results: list[CellResult] = []

        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                for item in items:
                    cur = await self.db.execute(
                        "UPDATE cells SET color = ? WHERE x = ? AND y = ? AND owner_id = ?",
                        (item.color, item.x, item.y, actor_id),
                    )
                    if cur.rowcount == 1:
                        results.append({"x": item.x, "y": item.y, "status": "success"})
                        continue
                    cur = await self.db.execute(
                        "SELECT 1 FROM cells WHERE x = ? AND y = ?",
                        (item.x, item.y),
                    )
                    if await cur.fetchone() is None:
                        results.append({"x": item.x, "y": item.y, "status": "error", "reason": "cell_not_found"})
                    else:
                        results.append({"x": item.x, "y": item.y, "status": "skipped", "reason": "not_owner"})
                await self.db.commit()
            except sqlite3.Error as exc:
                await self.db.rollback()
                raise GridStoreError(f"Batch recolor failed: {exc}") from exc

        return results
