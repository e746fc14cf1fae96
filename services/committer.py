"""Record ownership after payment.

The committer hands validated cells to the grid store's atomic batch
operations. A failure after payment is never reported as a plain error:
the result keeps the settlement reference and the status
`paid_not_committed` so the payment can be reconciled by hand.
"""
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Iterable, Optional
import logging

from models.domain_models import CellResult, ConquestItem, RecolorItem
from stores.grid_store import GridStore

logger = logging.getLogger(__name__)


class CommitStatus(StrEnum):
    COMMITTED = "committed"
    PAID_NOT_COMMITTED = "paid_not_committed"


@dataclass
class CommitResult:
    status: CommitStatus
    settlement_ref: Optional[str] = None
    results: list[CellResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def committed(self) -> bool:
        return self.status == CommitStatus.COMMITTED

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.get("status") == "success")

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.get("status") == "skipped")

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if r.get("status") == "error")

    @property
    def total_paid(self) -> float:
        return sum(r.get("price_paid") or 0.0 for r in self.results if r.get("status") == "success")

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "settlementRef": self.settlement_ref,
            "successCount": self.success_count,
            "skippedCount": self.skipped_count,
            "errorCount": self.error_count,
            "results": list(self.results),
            "error": self.error,
        }


class ConquestCommitter:

    def __init__(self, store: GridStore):
        self.store = store

    async def commit(
        self,
        actor_id: str,
        to_conquer: Iterable[ConquestItem],
        to_recolor: Iterable[RecolorItem],
        settlement_ref: Optional[str],
    ) -> CommitResult:
        to_conquer = list(to_conquer)
        to_recolor = list(to_recolor)
        if to_conquer and not settlement_ref:
            raise ValueError("A settlement reference is required to commit conquered cells")

        results: list[CellResult] = []

        if to_conquer:
            try:
                results.extend(await self.store.batch_conquer(to_conquer, actor_id, settlement_ref))
            except Exception as exc:
                # Payment has settled, so every failure here is paid_not_committed.
                logger.error(
                    f"PAID BUT NOT COMMITTED: actor={actor_id} settlement={settlement_ref} "
                    f"cells={[(i.x, i.y) for i in to_conquer]}: {exc}",
                    exc_info=True,
                )
                return CommitResult(
                    status=CommitStatus.PAID_NOT_COMMITTED,
                    settlement_ref=settlement_ref,
                    error=f"Payment {settlement_ref} succeeded but ownership was not recorded: {exc}",
                )

        if to_recolor:
            try:
                results.extend(await self.store.batch_recolor(to_recolor, actor_id))
            except Exception as exc:
                # Ownership is already recorded; only the free recolors are lost.
                logger.warning(f"Recolor failed for {actor_id} after commit {settlement_ref}: {exc}")
                results.extend(
                    {"x": i.x, "y": i.y, "status": "error", "reason": "recolor_failed"} for i in to_recolor
                )

        outcome = CommitResult(status=CommitStatus.COMMITTED, settlement_ref=settlement_ref, results=results)
        logger.info(
            f"Committed for {actor_id} (settlement {settlement_ref}): "
            f"{outcome.success_count} success, {outcome.skipped_count} skipped, {outcome.error_count} error"
        )
        return outcome
