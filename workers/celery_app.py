"""Celery app configuration and task scheduling."""
import os

from celery import Celery
from kombu import Exchange, Queue
import logging

import config

# Initialize Celery app
app = Celery("pixelwar", include=["workers.tasks"])

# Load config from environment variables or defaults
broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

app.config_from_object({
    "broker_url": broker_url,
    "result_backend": result_backend,
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    # Conquest tasks may pay; ack on receipt so a lost worker does not
    # replay them. The sweeper recovers jobs left pending.
    "task_acks_late": False,
    "worker_prefetch_multiplier": 1,
})

# Define queues
default_exchange = Exchange("default", type="direct")
conquests_exchange = Exchange("conquests", type="direct")
maintenance_exchange = Exchange("maintenance", type="direct")

app.conf.task_queues = (
    Queue(
        "default",
        exchange=default_exchange,
        routing_key="default",
        queue_arguments={"x-max-priority": 10},
    ),
    Queue(
        "conquests",
        exchange=conquests_exchange,
        routing_key="conquests",
        queue_arguments={"x-max-priority": 10},
    ),
    Queue(
        "maintenance",
        exchange=maintenance_exchange,
        routing_key="maintenance",
        queue_arguments={"x-max-priority": 10},
    ),
)

# Default queue for tasks without explicit routing
app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

# Periodic task schedules (Celery Beat)
app.conf.beat_schedule = {
    "sweep-pending-jobs": {
        "task": "workers.tasks.sweep_pending_jobs",
        "schedule": float(config.SWEEPER_INTERVAL_SECONDS),
        "options": {
            "queue": "maintenance",
            "priority": 5,
            "expires": config.SWEEPER_INTERVAL_SECONDS,
        },
    },
    "delete-expired-jobs": {
        "task": "workers.tasks.delete_expired_jobs",
        "schedule": 60.0 * 60,  # Every hour
        "options": {
            "queue": "maintenance",
            "priority": 2,
        },
    },
}

# Task configuration defaults
app.conf.task_default_retry_delay = 60
app.conf.task_max_retries = 5

logger = logging.getLogger(__name__)

# Stores are NOT opened here. aiosqlite connections are bound to the event
# loop that created them, and every task runs in its own `asyncio.run`
# loop, so each task opens a private pair through `stores.open_stores()`.
