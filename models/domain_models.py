"""Domain-level typed models used by services and stores.

Row shapes returned by the stores are `TypedDict`s that map directly to
the JSON-like dicts stored in the database. Values produced by the
conquest pipeline itself are small dataclasses.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypedDict, Any


class Cell(TypedDict):
	x: int
	y: int
	color: str
	current_price: float
	owner_id: str | None
	conquest_count: int
	last_settlement_ref: str | None
	last_conquered_at: str | None


class CellResult(TypedDict, total=False):
	x: int
	y: int
	status: str  # "success" | "skipped" | "error"
	reason: str | None
	price_paid: float | None
	new_price: float | None


class Job(TypedDict, total=False):
	job_id: str
	status: str
	actor_id: str
	cells: list[dict[str, Any]]
	total_price: float
	result: dict[str, Any] | None
	created_at: str
	updated_at: str


class JobStatus(StrEnum):
	PENDING = "pending"        # Accepted, waiting for a worker
	PROCESSING = "processing"  # Claimed; payment/commit in flight
	COMPLETED = "completed"
	FAILED = "failed"

	@property
	def is_terminal(self) -> bool:
		return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Legal forward moves of the job state machine.
JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
	JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
	JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
	JobStatus.COMPLETED: frozenset(),
	JobStatus.FAILED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
	return JobStatus(target) in JOB_TRANSITIONS[JobStatus(current)]


@dataclass(frozen=True)
class CellRequest:
	"""One requested cell as supplied by the client, not yet validated."""
	x: Any
	y: Any
	color: Any


@dataclass(frozen=True)
class ConquestItem:
	x: int
	y: int
	color: str
	price: float

	def to_dict(self) -> dict[str, Any]:
		return {"x": self.x, "y": self.y, "color": self.color, "price": self.price}


@dataclass(frozen=True)
class RecolorItem:
	x: int
	y: int
	color: str

	def to_dict(self) -> dict[str, Any]:
		return {"x": self.x, "y": self.y, "color": self.color}


@dataclass
class ValidatedBatch:
	"""A request joined against authoritative cell state.

	Every cell in `to_conquer` is owned by someone other than the actor;
	every cell in `to_recolor` is already owned by the actor.
	"""
	to_conquer: list[ConquestItem] = field(default_factory=list)
	to_recolor: list[RecolorItem] = field(default_factory=list)
	total_price: float = 0.0

	@property
	def is_free(self) -> bool:
		return not self.to_conquer

	@property
	def total_cells(self) -> int:
		return len(self.to_conquer) + len(self.to_recolor)

	def to_cells(self) -> list[dict[str, Any]]:
		"""Serialize for job storage; recolor entries carry `price: None`."""
		cells = [item.to_dict() for item in self.to_conquer]
		cells.extend({**item.to_dict(), "price": None} for item in self.to_recolor)
		return cells

	@classmethod
	def from_cells(cls, cells: list[dict[str, Any]]) -> "ValidatedBatch":
		batch = cls()
		for c in cells:
			if c.get("price") is None:
				batch.to_recolor.append(RecolorItem(x=c["x"], y=c["y"], color=c["color"]))
			else:
				batch.to_conquer.append(ConquestItem(x=c["x"], y=c["y"], color=c["color"], price=float(c["price"])))
		batch.total_price = sum(item.price for item in batch.to_conquer)
		return batch


__all__ = [
	"Cell",
	"CellResult",
	"Job",
	"JobStatus",
	"JOB_TRANSITIONS",
	"can_transition",
	"CellRequest",
	"ConquestItem",
	"RecolorItem",
	"ValidatedBatch",
]
