from __future__ import annotations

import argparse
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from circulation.application.container import Container, build_sqlite
from circulation.config.settings import settings
from circulation.domain.errors import CirculationError
from circulation.domain.value_objects.enums import ReturnCondition
from circulation.infrastructure.retry import RepositoryError
from circulation.logging_config import get_logger
from circulation.repositories.sqlite import connect, create_schema

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_STORAGE = 2


def open_container(db_path: Path) -> Container:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    create_schema(conn)
    return build_sqlite(conn, settings.policy)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Library circulation desk operations")
    p.add_argument("--db", type=Path, default=settings.db_path, help="SQLite DB file")
    sub = p.add_subparsers(dest="command", required=True)

    co = sub.add_parser("checkout", help="Lend a copy to a member")
    co.add_argument("--copy", type=int, required=True)
    co.add_argument("--member", type=int, required=True)
    co.add_argument("--staff", type=int, required=True)

    ret = sub.add_parser("return", help="Take a loan back")
    ret.add_argument("--loan", type=int, required=True)
    ret.add_argument(
        "--condition",
        choices=[c.value for c in ReturnCondition],
        default=ReturnCondition.GOOD.value,
    )

    rn = sub.add_parser("renew", help="Extend a loan by one loan period")
    rn.add_argument("--loan", type=int, required=True)

    rs = sub.add_parser("reserve", help="Join the waitlist for a book")
    rs.add_argument("--book", type=int, required=True)
    rs.add_argument("--member", type=int, required=True)

    cn = sub.add_parser("cancel", help="Cancel a reservation")
    cn.add_argument("--reservation", type=int, required=True)

    pay = sub.add_parser("pay", help="Record payment of a fine")
    pay.add_argument("--fine", type=int, required=True)

    wv = sub.add_parser("waive", help="Waive a fine")
    wv.add_argument("--fine", type=int, required=True)
    wv.add_argument("--staff", type=int, required=True)

    lost = sub.add_parser("lost", help="Report a loaned copy as lost")
    lost.add_argument("--loan", type=int, required=True)
    return p


def _fines_line(container: Container, loan_id: int) -> str:
    fines = container.fines.list_for_loan(loan_id)
    if not fines:
        return "no fine"
    total = sum((f.amount for f in fines if f.is_open), Decimal("0"))
    return f"fine due {total:.2f} {fines[0].currency}"


def _dispatch(container: Container, args: argparse.Namespace) -> str:
    coord = container.coordinator
    if args.command == "checkout":
        loan = coord.checkout(args.copy, args.member, args.staff)
        return f"Loan {loan.loan_id} opened, due {loan.due_date.isoformat()}"
    if args.command == "return":
        loan = coord.return_loan(args.loan, ReturnCondition(args.condition))
        return f"Loan {loan.loan_id} returned ({_fines_line(container, args.loan)})"
    if args.command == "renew":
        loan = coord.renew(args.loan)
        return f"Loan {loan.loan_id} renewed, due {loan.due_date.isoformat()}"
    if args.command == "reserve":
        res = coord.reserve(args.book, args.member)
        held = f", copy {res.held_copy_id} held" if res.held_copy_id is not None else ""
        return f"Reservation {res.reservation_id} {res.status.value}{held}"
    if args.command == "cancel":
        res = coord.cancel_reservation(args.reservation)
        return f"Reservation {res.reservation_id} {res.status.value}"
    if args.command == "pay":
        fine = coord.pay_fine(args.fine)
        return f"Fine {fine.fine_id} {fine.status.value} ({fine.amount} {fine.currency})"
    if args.command == "waive":
        fine = coord.waive_fine(args.fine, args.staff)
        return f"Fine {fine.fine_id} {fine.status.value}"
    if args.command == "lost":
        loan = coord.report_lost(args.loan)
        return f"Loan {loan.loan_id} {loan.status.value} ({_fines_line(container, args.loan)})"
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    log = get_logger()

    container: Container | None = None
    try:
        container = open_container(args.db)
        print(_dispatch(container, args))
    except CirculationError as exc:
        print(f"Rejected: {exc}")
        return EXIT_REJECTED
    except RepositoryError as exc:
        log.error("Storage failure", extra={"command": args.command, "error": str(exc)})
        print(f"Storage error: {exc}")
        return EXIT_STORAGE
    finally:
        if container is not None:
            container.close()
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
