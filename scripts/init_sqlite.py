#!/usr/bin/env python3
"""Reset or verify the phone tag SQLite database.

Usage:
    init_sqlite.py [DB_PATH] [SCHEMA_PATH]     drop everything and apply the schema
    init_sqlite.py --verify [DB_PATH]          check that every table exists
"""
import sqlite3
import sys
import os
from pathlib import Path

REQUIRED_TABLES = {"players", "games", "game_players", "safe_zones", "tripwires", "locations"}


def _tables(conn: sqlite3.Connection) -> set[str]:
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    return {t[0] for t in cursor.fetchall()}


def init_db(db_path: str, schema_path: str) -> None:
    """Drop all tables and apply the schema file."""
    db_path = Path(db_path).resolve()
    schema_path = Path(schema_path).resolve()

    if not schema_path.exists():
        print(f"[INIT] ✗ Error: Schema file not found at {schema_path}", file=sys.stderr)
        sys.exit(1)

    try:
        conn = sqlite3.connect(str(db_path))
        for table in _tables(conn):
            conn.execute(f"DROP TABLE IF EXISTS {table}")
        conn.commit()

        conn.executescript(schema_path.read_text())
        conn.commit()

        missing = REQUIRED_TABLES - _tables(conn)
        conn.close()
        if missing:
            print(f"[INIT] ✗ Error: Missing tables {sorted(missing)}", file=sys.stderr)
            sys.exit(1)

        # Docker volumes: workers and the web process may run as different users
        os.chmod(str(db_path), 0o666)
        print(f"[INIT] ✓ Database initialized at {db_path}")
    except sqlite3.Error as e:
        print(f"[INIT] ✗ Error: Failed to initialize database: {e}", file=sys.stderr)
        sys.exit(1)


def verify_db(db_path: str) -> int:
    try:
        conn = sqlite3.connect(db_path)
        found = _tables(conn)
        conn.close()
    except sqlite3.Error as e:
        print(f"[VERIFY] ✗ Error verifying database: {e}")
        return 1

    print(f"[VERIFY] Database at {db_path}: {sorted(found)}")
    missing = REQUIRED_TABLES - found
    if missing:
        print(f"[VERIFY] ✗ CRITICAL: Missing tables: {sorted(missing)}")
        return 1
    print("[VERIFY] ✓ All required tables present")
    return 0


if __name__ == "__main__":
    args = sys.argv[1:]
    if args and args[0] == "--verify":
        sys.exit(verify_db(args[1] if len(args) > 1 else "./db.sqlite3"))
    db_path = args[0] if args else "./db.sqlite3"
    schema_path = args[1] if len(args) > 1 else "./db/schema.sql"
    init_db(db_path, schema_path)
