"""Data models used by the application.

Split into:
- `api_models`: Pydantic models used for request/response validation
- `domain_models`: internal domain objects used by services and stores
"""

from . import api_models, domain_models

from .api_models import (
	ApiModel,
	CellInput,
	ConquerRequest,
	RecolorRequest,
	JobAcceptedResponse,
	JobStatusResponse,
)

from .domain_models import (
	Cell,
	CellResult,
	Job,
	JobStatus,
	JOB_TRANSITIONS,
	can_transition,
	CellRequest,
	ConquestItem,
	RecolorItem,
	ValidatedBatch,
)

__all__ = [
	# submodules
	"api_models",
	"domain_models",
	# api models
	"CellInput",
	"ConquerRequest",
	"RecolorRequest",
	"ApiModel",
	"JobAcceptedResponse",
	"JobStatusResponse",
	# domain models
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
