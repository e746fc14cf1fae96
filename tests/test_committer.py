from __future__ import annotations

import asyncio

import pytest

from models.domain_models import ConquestItem, RecolorItem
from services.committer import CommitStatus, ConquestCommitter
from tests.fakes import FakeGridStore, make_cell


def _items(*coords: tuple[int, int]) -> list[ConquestItem]:
    return [ConquestItem(x=x, y=y, color="#FF0000", price=0.01) for x, y in coords]


def test_partial_outcome_counts() -> None:
    store = FakeGridStore()
    store.scripted_results = [
        {"x": 0, "y": 0, "status": "success", "price_paid": 0.01, "new_price": 0.012},
        {"x": 1, "y": 0, "status": "success", "price_paid": 0.01, "new_price": 0.012},
        {"x": 2, "y": 0, "status": "success", "price_paid": 0.01, "new_price": 0.012},
        {"x": 3, "y": 0, "status": "skipped", "reason": "already_owner"},
        {"x": 4, "y": 0, "status": "error", "reason": "cell_not_found"},
    ]
    committer = ConquestCommitter(store)

    outcome = asyncio.run(committer.commit("alice", _items(*[(i, 0) for i in range(5)]), [], "tx-1"))

    assert outcome.status == CommitStatus.COMMITTED
    assert (outcome.success_count, outcome.skipped_count, outcome.error_count) == (3, 1, 1)
    assert len(outcome.results) == 5
    assert outcome.total_paid == pytest.approx(0.03)
    assert outcome.to_dict()["successCount"] == 3


def test_store_failure_after_payment_keeps_settlement_ref() -> None:
    store = FakeGridStore([make_cell(0, 0)])
    store.fail_conquer = True

    outcome = asyncio.run(ConquestCommitter(store).commit("alice", _items((0, 0)), [], "tx-paid"))

    assert outcome.status == CommitStatus.PAID_NOT_COMMITTED
    assert not outcome.committed
    assert outcome.settlement_ref == "tx-paid"
    assert "tx-paid" in outcome.error
    assert store.recolor_calls == []


def test_conquest_requires_settlement_ref() -> None:
    with pytest.raises(ValueError):
        asyncio.run(ConquestCommitter(FakeGridStore()).commit("alice", _items((0, 0)), [], None))


def test_recolor_only_needs_no_settlement() -> None:
    store = FakeGridStore([make_cell(2, 2, owner="alice")])
    outcome = asyncio.run(
        ConquestCommitter(store).commit("alice", [], [RecolorItem(x=2, y=2, color="#00FF00")], None)
    )

    assert outcome.committed
    assert outcome.success_count == 1
    assert store.conquer_calls == []
    assert store.cells[(2, 2)]["color"] == "#00FF00"


def test_any_store_exception_after_payment_keeps_settlement_ref() -> None:
    store = FakeGridStore([make_cell(0, 0)])
    store.conquer_error = ValueError("no active connection")

    outcome = asyncio.run(ConquestCommitter(store).commit("alice", _items((0, 0)), [], "tx-paid"))

    assert outcome.status == CommitStatus.PAID_NOT_COMMITTED
    assert outcome.settlement_ref == "tx-paid"
    assert "no active connection" in outcome.error
