"""Validate a conquest/recolor request against authoritative cell state.

All input checks run before the store is touched; the store is then read
once for every requested coordinate. Any failure rejects the whole batch.
"""
from typing import Any, Iterable, Optional
import logging

import config
from models.domain_models import CellRequest, ConquestItem, RecolorItem, ValidatedBatch
from stores.grid_store import GridStore
from utils.validation import is_in_grid, is_valid_actor_id, is_valid_color
from .exceptions import CellNotFound, EmptyBatch, InvalidCell, TooManyCells

logger = logging.getLogger(__name__)


def _as_request(cell: Any) -> CellRequest:
    if isinstance(cell, CellRequest):
        return cell
    if isinstance(cell, dict):
        return CellRequest(x=cell.get("x"), y=cell.get("y"), color=cell.get("color"))
    # pydantic models and similar objects
    return CellRequest(x=getattr(cell, "x", None), y=getattr(cell, "y", None), color=getattr(cell, "color", None))


def check_request(
    actor_id: str,
    requested_cells: Iterable[Any],
    *,
    width: Optional[int] = None,
    height: Optional[int] = None,
    max_cells: Optional[int] = None,
) -> list[CellRequest]:
    """Run the store-independent checks and return normalized requests."""
    width = config.GRID_WIDTH if width is None else width
    height = config.GRID_HEIGHT if height is None else height
    max_cells = config.MAX_BATCH_SIZE if max_cells is None else max_cells

    if not is_valid_actor_id(actor_id):
        raise InvalidCell("A valid actor id is required")

    cells = [_as_request(c) for c in (requested_cells or [])]
    if not cells:
        raise EmptyBatch()
    if len(cells) > max_cells:
        raise TooManyCells(len(cells), max_cells)

    seen: set[tuple[int, int]] = set()
    for cell in cells:
        if not is_in_grid(cell.x, cell.y, width, height):
            raise InvalidCell(
                f"Invalid coordinates ({cell.x}, {cell.y}); must be integers in "
                f"[0, {width - 1}] x [0, {height - 1}]",
                cell.x,
                cell.y,
            )
        if not is_valid_color(cell.color):
            raise InvalidCell(f"Invalid color {cell.color!r} at ({cell.x}, {cell.y}); expected #RRGGBB", cell.x, cell.y)
        if (cell.x, cell.y) in seen:
            raise InvalidCell(f"Duplicate cell ({cell.x}, {cell.y})", cell.x, cell.y)
        seen.add((cell.x, cell.y))

    return cells


async def validate(
    actor_id: str,
    requested_cells: Iterable[Any],
    store: GridStore,
    *,
    width: Optional[int] = None,
    height: Optional[int] = None,
    max_cells: Optional[int] = None,
) -> ValidatedBatch:
    """Join the request against current cell state and partition by owner.

    Cells owned by `actor_id` become free recolors; every other cell is
    quoted at its current price. A batch the actor already fully owns is
    valid and costs nothing.

    Raises:
        EmptyBatch, TooManyCells, InvalidCell: On malformed input.
        CellNotFound: If any requested coordinate has no cell.
    """
    cells = check_request(actor_id, requested_cells, width=width, height=height, max_cells=max_cells)

    current = await store.get_cells([(c.x, c.y) for c in cells])

    batch = ValidatedBatch()
    for cell in cells:
        state = current.get((cell.x, cell.y))
        if state is None:
            raise CellNotFound(cell.x, cell.y)
        if state["owner_id"] == actor_id:
            batch.to_recolor.append(RecolorItem(x=cell.x, y=cell.y, color=cell.color))
        else:
            batch.to_conquer.append(
                ConquestItem(x=cell.x, y=cell.y, color=cell.color, price=state["current_price"])
            )

    batch.total_price = sum(item.price for item in batch.to_conquer)
    logger.debug(
        f"Validated batch for {actor_id}: {len(batch.to_conquer)} to conquer, "
        f"{len(batch.to_recolor)} to recolor, total {batch.total_price}"
    )
    return batch
