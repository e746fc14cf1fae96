import os
from pathlib import Path

# Path to the SQLite database file used by stores. Can be overridden
# using the PIXELWAR_DB_PATH environment variable.
DB_PATH = os.environ.get("PIXELWAR_DB_PATH", str(Path(__file__).parent / "db.sqlite3"))
SCHEMA_PATH = str(Path(__file__).parent / "db" / "schema.sql")

REDIS_URL = os.environ.get("PIXELWAR_REDIS_URL", "redis://localhost:6379/2")
LOG_LEVEL = os.environ.get("PIXELWAR_LOG_LEVEL", "INFO")

# --- Grid ---
GRID_WIDTH = int(os.environ.get("PIXELWAR_GRID_WIDTH", "100"))
GRID_HEIGHT = int(os.environ.get("PIXELWAR_GRID_HEIGHT", "100"))
INITIAL_PRICE = float(os.environ.get("PIXELWAR_INITIAL_PRICE", "0.01"))
DEFAULT_COLOR = os.environ.get("PIXELWAR_DEFAULT_COLOR", "#FFFFFF")
MAX_BATCH_SIZE = int(os.environ.get("PIXELWAR_MAX_BATCH_SIZE", "100"))
CURRENCY_UNIT = os.environ.get("PIXELWAR_CURRENCY_UNIT", "USDC")

# Batches with more paid cells than this are queued as jobs instead of
# being settled inside the request.
ASYNC_THRESHOLD = int(os.environ.get("PIXELWAR_ASYNC_THRESHOLD", "20"))

# --- Jobs ---
JOB_RETENTION_SECONDS = int(os.environ.get("PIXELWAR_JOB_RETENTION_SECONDS", str(60 * 60)))
SWEEPER_BATCH_SIZE = int(os.environ.get("PIXELWAR_SWEEPER_BATCH_SIZE", "3"))
SWEEPER_INTERVAL_SECONDS = int(os.environ.get("PIXELWAR_SWEEPER_INTERVAL_SECONDS", "60"))
SWEEPER_LOCK_TIMEOUT_MS = int(os.environ.get("PIXELWAR_SWEEPER_LOCK_TIMEOUT_MS", str(5 * 60 * 1000)))
SWEEPER_IN_PROCESS = os.environ.get("PIXELWAR_SWEEPER_IN_PROCESS", "false").lower() == "true"
DISPATCH_JOBS = os.environ.get("PIXELWAR_DISPATCH_JOBS", "true").lower() == "true"
CRON_SECRET = os.environ.get("PIXELWAR_CRON_SECRET") or None

# --- Rate limiting ---
RATE_LIMIT_BACKEND = os.environ.get("PIXELWAR_RATE_LIMIT_BACKEND", "memory")
RATE_LIMIT_WINDOW_MS = int(os.environ.get("PIXELWAR_RATE_LIMIT_WINDOW_MS", str(60 * 1000)))
CONQUER_MAX_REQUESTS = int(os.environ.get("PIXELWAR_CONQUER_MAX_REQUESTS", "10"))
RECOLOR_MAX_REQUESTS = int(os.environ.get("PIXELWAR_RECOLOR_MAX_REQUESTS", "30"))

# --- Settlement ---
# One of "direct", "verified" or "simulated".
PAYMENT_PROTOCOL = os.environ.get("PIXELWAR_PAYMENT_PROTOCOL", "simulated")
SETTLEMENT_URL = os.environ.get("PIXELWAR_SETTLEMENT_URL", "http://localhost:8899")
FACILITATOR_URL = os.environ.get("PIXELWAR_FACILITATOR_URL", "http://localhost:8898")
TREASURY_ACCOUNT = os.environ.get("PIXELWAR_TREASURY_ACCOUNT", "treasury")
SETTLEMENT_TIMEOUT_SECONDS = float(os.environ.get("PIXELWAR_SETTLEMENT_TIMEOUT_SECONDS", "30"))
SIMULATED_MIN_DELAY = float(os.environ.get("PIXELWAR_SIMULATED_MIN_DELAY", "0.5"))
SIMULATED_MAX_DELAY = float(os.environ.get("PIXELWAR_SIMULATED_MAX_DELAY", "1.5"))
SIMULATED_FAILURE_RATE = float(os.environ.get("PIXELWAR_SIMULATED_FAILURE_RATE", "0.05"))
EXPLORER_URL = os.environ.get("PIXELWAR_EXPLORER_URL", "https://explorer.solana.com/tx/{ref}?cluster=devnet")
