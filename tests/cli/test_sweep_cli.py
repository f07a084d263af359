from __future__ import annotations

from pathlib import Path

import pytest

from circulation.application.container import Container
from circulation.cli import sweep as sweep_cli
from circulation.domain.value_objects.enums import LoanStatus
from circulation.infrastructure.retry import RepositoryError
from conftest import Library


def test_sweep_reports_counts(
    container: Container,
    library: Library,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sweep_cli, "open_container", lambda _db: container)
    loan = container.coordinator.checkout(library.copy(library.book()), library.member("Ada"), 1)
    container.queue.enqueue(library.book(), library.member("Bob"))

    assert sweep_cli.main(["--now", "2024-04-01T08:00:00"]) == 0
    out = capsys.readouterr().out
    assert "Expired reservations: 1" in out
    assert "Loans flagged overdue: 1" in out
    assert container.loans.get(loan.loan_id).status == LoanStatus.OVERDUE


def test_sweep_storage_failure(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)

    def broken(_db: Path) -> Container:
        raise RepositoryError("SQLite read (reservations) failed after retries")

    monkeypatch.setattr(sweep_cli, "open_container", broken)
    assert sweep_cli.main([]) == sweep_cli.EXIT_STORAGE
    assert "Storage error" in capsys.readouterr().out
