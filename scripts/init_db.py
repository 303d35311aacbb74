#!/usr/bin/env python3
"""Initialize the blogtraffic database with all migrations."""

import argparse
import sqlite3
from pathlib import Path

from datasette_blogtraffic.migrations import get_current_version, run_migrations


def init_db(db_path: Path) -> None:
    """Create or migrate the database and report its state."""
    print(f"Initializing database: {db_path}")

    applied = run_migrations(db_path, verbose=False)
    if applied:
        print(f"Applied {len(applied)} migration(s): {', '.join(map(str, applied))}")
    else:
        print("No new migrations to apply.")

    print(f"\nSchema version: {get_current_version(db_path)}")

    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        tables = [row[0] for row in cursor if not row[0].startswith("sqlite_")]
        print(f"Tables: {', '.join(tables)}")

        count = conn.execute("SELECT COUNT(*) FROM blogs").fetchone()[0]
        print(f"Blogs: {count}")
    finally:
        conn.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize blogtraffic database")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path("blogtraffic.db"),
        help="Path to the SQLite database file (default: blogtraffic.db)",
    )
    args = parser.parse_args()

    init_db(args.db)


if __name__ == "__main__":
    main()
