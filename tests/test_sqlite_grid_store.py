from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

import config
from db import ensure_db
from models.domain_models import ConquestItem, RecolorItem
from services.committer import CommitStatus, ConquestCommitter
from stores.sqlite_grid_store import SqliteGridStore


def _with_store(tmp_path: Path, body, *, width: int = 4, height: int = 4):
    async def run():
        db_path = str(tmp_path / "grid.sqlite3")
        await ensure_db(db_path, config.SCHEMA_PATH)
        store = SqliteGridStore(db_path)
        await store.init()
        try:
            await store.init_grid(width, height, floor_price=0.01, color="#FFFFFF")
            return await body(store)
        finally:
            await store.close()

    return asyncio.run(run())


def test_init_grid_is_idempotent(tmp_path: Path) -> None:
    async def body(store: SqliteGridStore):
        again = await store.init_grid(4, 4, floor_price=0.5, color="#000000")
        stats = await store.grid_statistics()
        cell = await store.get_cell(3, 3)
        return again, stats, cell

    again, stats, cell = _with_store(tmp_path, body)
    assert again == 0
    assert stats["total_cells"] == 16
    assert stats["owned_cells"] == 0
    assert cell["current_price"] == pytest.approx(0.01)


def test_conquest_escalates_price_and_transfers_ownership(tmp_path: Path) -> None:
    async def body(store: SqliteGridStore):
        results = await store.batch_conquer(
            [
                ConquestItem(x=0, y=0, color="#FF0000", price=0.01),
                ConquestItem(x=1, y=0, color="#FF0000", price=0.01),
            ],
            "alice",
            "tx-1",
        )
        return results, await store.get_cells([(0, 0), (1, 0)])

    results, cells = _with_store(tmp_path, body)
    assert [r["status"] for r in results] == ["success", "success"]
    assert cells[(0, 0)]["current_price"] == pytest.approx(0.012)
    assert cells[(0, 0)]["owner_id"] == "alice"
    assert cells[(0, 0)]["conquest_count"] == 1
    assert cells[(0, 0)]["last_settlement_ref"] == "tx-1"
    assert cells[(0, 0)]["color"] == "#FF0000"


def test_replayed_settlement_does_not_escalate_twice(tmp_path: Path) -> None:
    async def body(store: SqliteGridStore):
        item = ConquestItem(x=2, y=1, color="#FF0000", price=0.01)
        await store.batch_conquer([item], "alice", "tx-same")
        replay = await store.batch_conquer([item], "alice", "tx-same")
        return replay, await store.get_cell(2, 1)

    replay, cell = _with_store(tmp_path, body)
    assert replay[0]["status"] == "skipped"
    assert replay[0]["reason"] == "already_applied"
    assert cell["current_price"] == pytest.approx(0.012)
    assert cell["conquest_count"] == 1


def test_conquer_by_new_owner_and_owner_skip(tmp_path: Path) -> None:
    async def body(store: SqliteGridStore):
        await store.batch_conquer([ConquestItem(x=0, y=0, color="#FF0000", price=0.01)], "alice", "tx-1")
        taken = await store.batch_conquer([ConquestItem(x=0, y=0, color="#0000FF", price=0.012)], "bob", "tx-2")
        own = await store.batch_conquer([ConquestItem(x=0, y=0, color="#00FF00", price=0.0144)], "bob", "tx-3")
        return taken, own, await store.get_cell(0, 0)

    taken, own, cell = _with_store(tmp_path, body)
    assert taken[0]["price_paid"] == pytest.approx(0.012)
    assert own[0]["reason"] == "already_owner"
    assert cell["owner_id"] == "bob"
    assert cell["current_price"] == pytest.approx(0.0144)
    assert cell["conquest_count"] == 2
    assert cell["color"] == "#00FF00"


def test_missing_cell_reported_as_error(tmp_path: Path) -> None:
    async def body(store: SqliteGridStore):
        return await store.batch_conquer([ConquestItem(x=50, y=50, color="#FF0000", price=0.01)], "alice", "tx-1")

    results = _with_store(tmp_path, body)
    assert results == [{"x": 50, "y": 50, "status": "error", "reason": "cell_not_found"}]


def test_recolor_changes_color_only(tmp_path: Path) -> None:
    async def body(store: SqliteGridStore):
        await store.batch_conquer([ConquestItem(x=2, y=2, color="#FF0000", price=0.01)], "alice", "tx-1")
        results = await store.batch_recolor(
            [RecolorItem(x=2, y=2, color="#ABCDEF"), RecolorItem(x=3, y=3, color="#ABCDEF")],
            "alice",
        )
        return results, await store.get_cell(2, 2), await store.list_cells(owner_id="alice")

    results, cell, owned = _with_store(tmp_path, body)
    assert [r["status"] for r in results] == ["success", "skipped"]
    assert cell["color"] == "#ABCDEF"
    assert cell["conquest_count"] == 1
    assert cell["current_price"] == pytest.approx(0.012)
    assert [(c["x"], c["y"]) for c in owned] == [(2, 2)]


def test_reads_wait_for_an_open_transaction(tmp_path: Path) -> None:
    async def body(store: SqliteGridStore):
        await store._lock.acquire()
        try:
            await store.db.execute("BEGIN IMMEDIATE")
            await store.db.execute("UPDATE cells SET owner_id = 'ghost' WHERE x = 0 AND y = 0")
            reader = asyncio.create_task(store.get_cell(0, 0))
            owners = asyncio.create_task(store.list_cells(owner_id="ghost"))
            for _ in range(5):
                await asyncio.sleep(0)
            waiting = not reader.done() and not owners.done()
            await store.db.rollback()
        finally:
            store._lock.release()
        return waiting, await reader, await owners

    waiting, cell, owned = _with_store(tmp_path, body)
    assert waiting
    assert cell["owner_id"] is None
    assert owned == []


def test_commit_on_a_closed_store_keeps_settlement_ref(tmp_path: Path) -> None:
    async def body(store: SqliteGridStore):
        await store.close()
        return await ConquestCommitter(store).commit(
            "alice", [ConquestItem(x=0, y=0, color="#FF0000", price=0.01)], [], "tx-paid"
        )

    outcome = _with_store(tmp_path, body)
    assert outcome.status == CommitStatus.PAID_NOT_COMMITTED
    assert outcome.settlement_ref == "tx-paid"
