from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path


def main() -> int:
    # Ensure project root (containing 'circulation') is importable
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))

    from circulation.config.settings import settings
    from circulation.repositories.sqlite import connect, create_schema

    parser = argparse.ArgumentParser(description="Initialize the circulation SQLite schema")
    parser.add_argument(
        "--db",
        default=str(settings.db_path),
        help="Path to SQLite DB file (will be created if missing)",
    )
    args = parser.parse_args()

    db_path = os.path.abspath(args.db)
    os.makedirs(os.path.dirname(db_path), exist_ok=True)

    # Programmatic schema init via repos so it always matches code
    conn = connect(db_path)
    try:
        create_schema(conn)
    finally:
        conn.close()

    print(f"Initialized schema at: {db_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
