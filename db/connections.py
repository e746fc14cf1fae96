from pathlib import Path
from typing import Dict, Optional
import logging

import aiosqlite

logger = logging.getLogger(__name__)


async def connect(db_path: str, pragmas: Optional[Dict[str, str]] = None) -> aiosqlite.Connection:
    """Open an aiosqlite connection for the stores.

    - Sets `row_factory` to `aiosqlite.Row` for named access.
    - Disables implicit transactions; stores issue `BEGIN IMMEDIATE` themselves.
    - Enables foreign keys and applies any extra PRAGMA settings in `pragmas`.

    Returns an open connection; caller is responsible for closing it.
    """
    conn = await aiosqlite.connect(db_path, timeout=30.0, isolation_level=None)
    conn.row_factory = aiosqlite.Row

    await conn.execute("PRAGMA foreign_keys = ON")
    if pragmas:
        for k, v in pragmas.items():
            await conn.execute(f"PRAGMA {k} = {v}")
    return conn


async def init_db(db_path: str, schema_path: Optional[str] = None) -> None:
    """Apply the SQL schema to `db_path`.

    If `schema_path` is not provided this uses `schema.sql` next to this
    module. Every statement in the schema is `IF NOT EXISTS`, so running it
    against an existing database is safe.
    """
    schema_file = (
        Path(schema_path) if schema_path else Path(__file__).parent / "schema.sql"
    )

    if not schema_file.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_file}")

    conn = await connect(db_path)
    try:
        await conn.executescript(schema_file.read_text())
        await conn.commit()
        logger.info(f"[DB] Schema applied to {db_path}")
    finally:
        await conn.close()


async def ensure_db(db_path: str, schema_path: Optional[str] = None) -> None:
    """Create the database file and its parent directory when missing, then
    apply the schema."""
    db_file = Path(db_path)
    if db_file.parent and not db_file.parent.exists():
        db_file.parent.mkdir(parents=True, exist_ok=True)

    await init_db(db_path, schema_path)
