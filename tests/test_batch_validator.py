from __future__ import annotations

import asyncio

import pytest

from services.batch_validator import validate
from services.exceptions import CellNotFound, EmptyBatch, InvalidCell, TooManyCells
from tests.fakes import FakeGridStore, make_cell


def _store() -> FakeGridStore:
    return FakeGridStore(
        [
            make_cell(0, 0, price=0.01),
            make_cell(1, 0, price=0.01),
            make_cell(2, 2, price=0.05, owner="alice"),
            make_cell(3, 3, price=0.02, owner="bob"),
        ]
    )


def test_partitions_by_owner_and_totals_quotes() -> None:
    store = _store()
    batch = asyncio.run(
        validate(
            "alice",
            [
                {"x": 0, "y": 0, "color": "#FF0000"},
                {"x": 2, "y": 2, "color": "#00FF00"},
                {"x": 3, "y": 3, "color": "#0000FF"},
            ],
            store,
        )
    )

    assert [(i.x, i.y, i.price) for i in batch.to_conquer] == [(0, 0, 0.01), (3, 3, 0.02)]
    assert [(i.x, i.y, i.color) for i in batch.to_recolor] == [(2, 2, "#00FF00")]
    assert batch.total_price == pytest.approx(0.03)
    assert store.get_cells_calls == 1


def test_fully_owned_batch_is_free() -> None:
    batch = asyncio.run(validate("alice", [{"x": 2, "y": 2, "color": "#123456"}], _store()))
    assert batch.is_free
    assert batch.to_conquer == []
    assert batch.total_price == 0


def test_missing_cell_fails_whole_batch() -> None:
    store = _store()
    store.cells.pop((1, 0))
    with pytest.raises(CellNotFound):
        asyncio.run(
            validate(
                "alice",
                [{"x": 0, "y": 0, "color": "#FF0000"}, {"x": 1, "y": 0, "color": "#FF0000"}],
                store,
            )
        )


def test_input_errors_rejected_before_store_read() -> None:
    store = _store()
    cases = [
        ([], EmptyBatch),
        ([{"x": 100, "y": 0, "color": "#FF0000"}], InvalidCell),
        ([{"x": 0, "y": -1, "color": "#FF0000"}], InvalidCell),
        ([{"x": 0, "y": 0, "color": "red"}], InvalidCell),
        ([{"x": 0, "y": 0, "color": "#FF0000"}, {"x": 0, "y": 0, "color": "#00FF00"}], InvalidCell),
    ]
    for cells, error in cases:
        with pytest.raises(error):
            asyncio.run(validate("alice", cells, store))
    assert store.get_cells_calls == 0


def test_too_many_cells() -> None:
    cells = [{"x": i % 10, "y": i // 10, "color": "#FF0000"} for i in range(11)]
    with pytest.raises(TooManyCells) as exc_info:
        asyncio.run(validate("alice", cells, _store(), max_cells=10))
    assert exc_info.value.count == 11
    assert exc_info.value.limit == 10


def test_invalid_actor_rejected() -> None:
    with pytest.raises(InvalidCell):
        asyncio.run(validate("", [{"x": 0, "y": 0, "color": "#FF0000"}], _store()))
