#!/usr/bin/env python3
"""Create the SQLite database from schema.sql and seed the grid.

Usage: init_sqlite.py [DB_PATH] [SCHEMA_PATH] [--reset]

With --reset every existing table is dropped first (all ownership is lost).
"""
import sqlite3
import sys
import os
from pathlib import Path

import config

REQUIRED_TABLES = ['cells', 'conquests', 'conquest_jobs', 'job_credentials']


def init_db(db_path: str, schema_path: str, *, reset: bool = False) -> None:
    db_path = Path(db_path).resolve()
    schema_path = Path(schema_path).resolve()

    if not schema_path.exists():
        print(f"[INIT] ✗ Error: Schema file not found at {schema_path}", file=sys.stderr)
        sys.exit(1)

    try:
        conn = sqlite3.connect(str(db_path))
        cursor = conn.cursor()

        if reset:
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'")
            for (table,) in cursor.fetchall():
                cursor.execute(f"DROP TABLE IF EXISTS {table}")
            conn.commit()

        conn.executescript(schema_path.read_text())

        cursor.executemany(
            """
            INSERT OR IGNORE INTO cells (x, y, color, current_price, owner_id, conquest_count)
            VALUES (?, ?, ?, ?, NULL, 0)
            """,
            [
                (x, y, config.DEFAULT_COLOR, config.INITIAL_PRICE)
                for y in range(config.GRID_HEIGHT)
                for x in range(config.GRID_WIDTH)
            ],
        )
        seeded = cursor.rowcount
        conn.commit()

        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        created_tables = {t[0] for t in cursor.fetchall()}
        for table in REQUIRED_TABLES:
            if table not in created_tables:
                print(f"[INIT] ✗ Error: Missing critical table '{table}'", file=sys.stderr)
                conn.close()
                sys.exit(1)

        conn.close()
        # Shared with the worker containers
        os.chmod(str(db_path), 0o666)
        print(f"[INIT] ✓ Database initialized ({config.GRID_WIDTH}x{config.GRID_HEIGHT} grid, {seeded} cells created)")

    except sqlite3.Error as e:
        print(f"[INIT] ✗ Error: Failed to initialize database: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a != "--reset"]
    db_path = args[0] if len(args) > 0 else config.DB_PATH
    schema_path = args[1] if len(args) > 1 else config.SCHEMA_PATH
    init_db(db_path, schema_path, reset="--reset" in sys.argv)
