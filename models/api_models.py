"""Pydantic request/response models for the FastAPI endpoints.

Keep transport concerns (validation, docs) here and keep business/domain
types in `models.domain_models`. Grid bounds and color format are checked
by the batch validator so that errors carry a specific reason.

JSON field names are camelCase on the wire; requests also accept the
snake_case attribute names.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any


class ApiModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CellInput(ApiModel):
	x: int
	y: int
	color: str


class ConquerRequest(ApiModel):
	actor_id: str
	credential: str = Field(min_length=1)
	cells: list[CellInput]
	force_async: bool = False


class RecolorRequest(ApiModel):
	actor_id: str
	cells: list[CellInput]


class JobAcceptedResponse(ApiModel):
	success: bool = True
	job_id: str
	status: str
	estimated_price: float
	total_cells: int
	poll_url: str
	message: str


class JobStatusResponse(ApiModel):
	success: bool = True
	job_id: str
	status: str
	actor_id: str
	total_cells: int
	estimated_price: float
	created_at: str
	updated_at: str
	message: str
	retry_after: int | None = None
	result: dict[str, Any] | None = None


__all__ = [
	"ApiModel",
	"CellInput",
	"ConquerRequest",
	"RecolorRequest",
	"JobAcceptedResponse",
	"JobStatusResponse",
]
