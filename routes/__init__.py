"""HTTP route modules (FastAPI routers) for the application.

This file explicitly exports the router objects provided by each
submodule so callers can do:

	from routes import pixels_router
	app.include_router(pixels_router)

Submodules should expose an `APIRouter` named `router`.
"""

from .pixels import router as pixels_router
from .jobs import router as jobs_router
from .cron import router as cron_router

__all__ = [
	"pixels_router",
	"jobs_router",
	"cron_router",
]
