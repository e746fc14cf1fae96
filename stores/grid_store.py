from typing import Iterable, Optional
from abc import ABC, abstractmethod

from models.domain_models import Cell, CellResult, ConquestItem, RecolorItem


# =========================
# GridStore Interface
# =========================

class GridStore(ABC):
    """
    The GridStore is the sole authority over cell price and ownership.

    Invariants:
    - A cell's price only increases, and only through `batch_conquer`
    - `batch_conquer` is atomic and idempotent per settlement reference
    - Cells are created once by `init_grid` and never deleted
    """

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    @abstractmethod
    async def init_grid(
        self,
        width: int,
        height: int,
        *,
        floor_price: float,
        color: str,
    ) -> int:
        """Create any missing cells of a `width` x `height` grid with no owner
        and `floor_price`. Existing cells are left untouched.

        Returns the number of cells created.
        """

    # -------------------------------------------------
    # Read-side queries (NO state changes)
    # -------------------------------------------------

    @abstractmethod
    async def get_cells(self, coords: Iterable[tuple[int, int]]) -> dict[tuple[int, int], Cell]:
        """Return the authoritative state of the requested cells in one read,
        keyed by `(x, y)`. Coordinates with no cell are absent from the result.
        """

    async def get_cell(self, x: int, y: int) -> Optional[Cell]:
        """Return one cell, or None if it does not exist."""
        cells = await self.get_cells([(x, y)])
        return cells.get((x, y))

    @abstractmethod
    async def list_cells(self, *, owner_id: Optional[str] = None) -> list[Cell]:
        """Return every cell ordered by (y, x), optionally only those owned by
        `owner_id`."""

    @abstractmethod
    async def grid_statistics(self) -> dict:
        """
        Aggregate view of the grid:
        - total_cells, owned_cells, unowned_cells
        - total_value, average_price
        """

    # -------------------------------------------------
    # Ownership transfer (atomic path)
    # -------------------------------------------------

    @abstractmethod
    async def batch_conquer(
        self,
        items: Iterable[ConquestItem],
        actor_id: str,
        settlement_ref: str,
    ) -> list[CellResult]:
        """Atomically transfer ownership of each cell to `actor_id`.

        For every conquered cell: owner := actor, price := next price,
        conquest_count += 1, color := requested color. The store's current
        price is authoritative; the quote on each item may be stale.

        Per-cell outcomes:
        - "success": conquered
        - "skipped": already recorded for this settlement (replay) or
          already owned by the actor at commit time
        - "error": the cell does not exist

        Raises:
            GridStoreError: if the transaction could not be applied at all.
        """

    @abstractmethod
    async def batch_recolor(
        self,
        items: Iterable[RecolorItem],
        actor_id: str,
    ) -> list[CellResult]:
        """Change the color of cells owned by `actor_id`. No price or
        ownership change. Concurrent recolors of one cell: last write wins.

        Per-cell outcomes: "success", "skipped" (actor no longer owns the
        cell), "error" (cell does not exist).
        """
