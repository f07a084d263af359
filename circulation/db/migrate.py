"""Simple SQLite migration runner."""

from __future__ import annotations

import argparse
import logging
import re
import sqlite3
from pathlib import Path
from typing import Iterable, Sequence

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

logger = logging.getLogger(__name__)


def applied_versions(cursor: sqlite3.Cursor) -> set[str]:
    cursor.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version TEXT PRIMARY KEY)")
    rows = cursor.execute("SELECT version FROM schema_migrations").fetchall()
    return {row[0] for row in rows}


def available_migrations(directory: Path = MIGRATIONS_DIR) -> Iterable[tuple[str, Path]]:
    pattern = re.compile(r"V(\d+)__.+\.sql$")
    found = []
    for path in directory.glob("V*__*.sql"):
        match = pattern.match(path.name)
        if match:
            found.append((match.group(1), path))
    # Numeric order so V10 runs after V9
    return sorted(found, key=lambda item: int(item[0]))


def run_migrations(db_path: Path, directory: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply pending migrations and return the versions that ran."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    ran: list[str] = []
    with sqlite3.connect(db_path) as conn:
        cursor = conn.cursor()
        done = applied_versions(cursor)
        for version, path in available_migrations(directory):
            if version in done:
                continue
            sql = path.read_text(encoding="utf-8")
            cursor.executescript(sql)
            cursor.execute("INSERT INTO schema_migrations (version) VALUES (?)", (version,))
            conn.commit()
            logger.info("Migration applied", extra={"version": version, "file": path.name})
            ran.append(version)
    return ran


def main(argv: Sequence[str] | None = None) -> int:
    from circulation.config.settings import settings

    parser = argparse.ArgumentParser(description="Apply SQL migrations to the circulation DB")
    parser.add_argument("--db", type=Path, default=settings.db_path, help="SQLite DB file")
    args = parser.parse_args(argv)

    ran = run_migrations(args.db)
    print(f"Applied {len(ran)} migration(s) to {args.db}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
