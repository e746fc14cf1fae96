"""Workers package: Celery app and background task definitions.

Public API:
- `celery_app`: Celery application instance and configuration
- `tasks`: task implementations (`process_conquest_job`, `sweep_pending_jobs`,
  `delete_expired_jobs`)
"""

# Lazy imports to avoid circular dependencies
def __getattr__(name):
	if name == "celery_app":
		from .celery_app import app
		return app
	elif name == "tasks":
		from . import tasks
		return tasks
	elif name in (
		"process_conquest_job",
		"sweep_pending_jobs",
		"delete_expired_jobs",
	):
		from . import tasks
		return getattr(tasks, name)
	raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
	"celery_app",
	"tasks",
	"process_conquest_job",
	"sweep_pending_jobs",
	"delete_expired_jobs",
]
