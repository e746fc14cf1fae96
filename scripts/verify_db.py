#!/usr/bin/env python3
"""Verify the database was initialized correctly."""
import sqlite3
import sys

import config

db_path = sys.argv[1] if len(sys.argv) > 1 else config.DB_PATH

try:
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = cursor.fetchall()

    print(f"[VERIFY] Database at {db_path}")
    print(f"[VERIFY] Found {len(tables)} tables:")
    for table in tables:
        print(f"[VERIFY]   - {table[0]}")

    critical_tables = {'cells', 'conquests', 'conquest_jobs', 'job_credentials'}
    missing = critical_tables - {t[0] for t in tables}
    if missing:
        print(f"[VERIFY] ✗ CRITICAL: Missing tables: {missing}")
        sys.exit(1)

    expected = config.GRID_WIDTH * config.GRID_HEIGHT
    cursor.execute("SELECT COUNT(*), COUNT(owner_id) FROM cells")
    cell_count, owned = cursor.fetchone()
    if cell_count < expected:
        print(f"[VERIFY] ✗ Grid incomplete: {cell_count}/{expected} cells")
        sys.exit(1)

    cursor.execute("SELECT status, COUNT(*) FROM conquest_jobs GROUP BY status")
    jobs = dict(cursor.fetchall())

    print(f"[VERIFY] ✓ All critical tables present, {cell_count} cells ({owned} owned), jobs: {jobs or 'none'}")
    sys.exit(0)

except sqlite3.Error as e:
    print(f"[VERIFY] ✗ Error verifying database: {e}")
    sys.exit(1)
