from __future__ import annotations

import argparse
import json
from datetime import date
from pathlib import Path
from typing import Iterable, List, Sequence

from circulation.application.services.reports_service import MemberActivity, OverdueLoan
from circulation.config.settings import settings
from circulation.domain.errors import CirculationError

from .circulation import EXIT_OK, EXIT_REJECTED, open_container


def _format_overdue(rows: Iterable[OverdueLoan]) -> str:
    out_lines: List[str] = []
    for r in rows:
        out_lines.append(
            f"loan {r.loan.loan_id}: {r.book_title} / {r.member_name} "
            f"due {r.loan.due_date.isoformat()} ({r.days_overdue}d late)"
        )
    return "\n".join(out_lines)


def _format_activity(rows: Iterable[MemberActivity]) -> str:
    out_lines: List[str] = []
    for r in rows:
        out_lines.append(
            f"{r.member_name} [id={r.member_id}]: loans={r.total_loans} open={r.open_loans} "
            f"reservations={r.reservations} events={r.events} "
            f"fines={r.pending_fines}"
        )
    return "\n".join(out_lines)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Circulation reports (read-only)")
    p.add_argument("--db", type=Path, default=settings.db_path, help="SQLite DB file")
    p.add_argument("--json", action="store_true", help="Print JSON instead of text")
    sub = p.add_subparsers(dest="report", required=True)

    av = sub.add_parser("available", help="Copies of a book on the shelf")
    av.add_argument("--book", type=int, required=True)

    od = sub.add_parser("overdue", help="Open loans past due")
    od.add_argument("--date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")

    act = sub.add_parser("activity", help="Member activity summary")
    act.add_argument("--member", type=int, default=None)
    return p


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    container = open_container(args.db)
    reports = container.reports
    try:
        if args.report == "available":
            copies = reports.available_copies(args.book)
            if args.json:
                print(json.dumps([c.model_dump(mode="json") for c in copies], indent=2))
            elif not copies:
                print("No copies available.")
            else:
                print("\n".join(f"copy {c.copy_id} [{c.barcode}] at {c.location}" for c in copies))
        elif args.report == "overdue":
            overdue = reports.overdue_loans(args.date)
            if args.json:
                payload = [
                    {
                        "loan_id": r.loan.loan_id,
                        "member": r.member_name,
                        "title": r.book_title,
                        "due_date": r.loan.due_date.isoformat(),
                        "days_overdue": r.days_overdue,
                    }
                    for r in overdue
                ]
                print(json.dumps(payload, indent=2))
            elif not overdue:
                print("No overdue loans.")
            else:
                print(_format_overdue(overdue))
        else:
            activity = reports.member_activity(args.member)
            if args.json:
                payload = [
                    {
                        "member_id": r.member_id,
                        "member": r.member_name,
                        "total_loans": r.total_loans,
                        "open_loans": r.open_loans,
                        "reservations": r.reservations,
                        "events": r.events,
                        "pending_fines": str(r.pending_fines.amount),
                    }
                    for r in activity
                ]
                print(json.dumps(payload, indent=2))
            else:
                print(_format_activity(activity) or "No members.")
    except CirculationError as exc:
        print(f"Rejected: {exc}")
        return EXIT_REJECTED
    finally:
        container.close()
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
