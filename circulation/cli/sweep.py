"""Periodic maintenance: expire lapsed reservations and label overdue loans.

Meant to run from cron; exits 2 when storage keeps failing so the scheduler
can alert.
"""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from circulation.application.container import Container
from circulation.config.settings import settings
from circulation.infrastructure.retry import RepositoryError
from circulation.logging_config import get_logger

from .circulation import EXIT_OK, EXIT_STORAGE, open_container


def _parse_now(raw: str) -> datetime:
    moment = datetime.fromisoformat(raw)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run the circulation sweep")
    p.add_argument("--db", type=Path, default=settings.db_path, help="SQLite DB file")
    p.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="Override the current time (ISO 8601, UTC when no offset)",
    )
    return p


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    log = get_logger()

    container: Container | None = None
    try:
        container = open_container(args.db)
        result = container.coordinator.run_sweep(args.now)
    except RepositoryError as exc:
        log.error("Sweep aborted", extra={"error": str(exc)})
        print(f"Storage error: {exc}")
        return EXIT_STORAGE
    finally:
        if container is not None:
            container.close()

    print(f"Expired reservations: {len(result.expired)}")
    print(f"Loans flagged overdue: {len(result.overdue)}")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
