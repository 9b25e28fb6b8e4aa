"""Tests for the SQLite ledger store."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from bookset_import.lib.errors import LockedPeriodViolationError, PeriodLockUnavailableError
from bookset_import.lib.fingerprint import fingerprint
from bookset_import.lib.reconciler import ProcessedTransaction
from bookset_import.lib.store import LedgerStore


def _txn(date: str, amount: int, description: str) -> ProcessedTransaction:
    return ProcessedTransaction(
        {}, 0, date=date, amount=amount, description=description,
        fingerprint=fingerprint(date, amount, description),
    )


def _commit(store: LedgerStore, *txns: ProcessedTransaction, account: str = "chk"):
    return store.commit_batch(
        book_id="book",
        account_id=account,
        file_name="jan.csv",
        transactions=list(txns),
        total_rows=len(txns),
        duplicate_count=0,
        error_count=0,
    )


def test_commit_and_read_back():
    with TemporaryDirectory() as tmp:
        with LedgerStore(Path(tmp) / "state" / "ledger.sqlite") as store:
            batch_id, ids = _commit(store, _txn("2024-01-15", -4250, "Grocer"), _txn("2024-01-20", 900, "Refund"))
            assert len(ids) == 2
            assert store.count() == 2
            assert store.count("chk") == 2
            assert store.count("other") == 0

            fps = store.existing_fingerprints("chk")
            assert fps[fingerprint("2024-01-15", -4250, "Grocer")] == ids[0]
            assert store.existing_fingerprints("other") == {}

            batch = store.get_batch(batch_id)
            assert batch.imported_count == 2
            assert batch.undone_at is None
            assert [b.id for b in store.list_batches("book")] == [batch_id]


def test_existing_transactions_window():
    with TemporaryDirectory() as tmp:
        with LedgerStore(Path(tmp) / "ledger.sqlite") as store:
            _commit(store, _txn("2024-01-01", 1, "a"), _txn("2024-01-10", 2, "b"), _txn("2024-02-01", 3, "c"))
            everything = store.existing_transactions("chk")
            assert [t.date for t in everything] == ["2024-02-01", "2024-01-10", "2024-01-01"]

            window = store.existing_transactions("chk", "2024-01-05", "2024-01-31")
            assert [(t.date, t.amount, t.description) for t in window] == [("2024-01-10", 2, "b")]


def test_year_locks():
    with TemporaryDirectory() as tmp:
        with LedgerStore(Path(tmp) / "ledger.sqlite") as store:
            assert store.max_locked_year("book") is None
            assert not store.is_date_locked("book", "1999-01-01")

            store.lock_year("book", 2022)
            store.lock_year("book", 2020)
            store.lock_year("book", 2022)
            assert store.locked_years("book") == [2020, 2022]
            assert store.is_date_locked("book", "2021-07-04")
            assert store.is_date_locked("book", "2022-12-31")
            assert not store.is_date_locked("book", "2023-01-01")
            assert not store.is_date_locked("other", "2021-07-04")
            assert store.locked_dates("book", ["2022-01-01", "2023-01-01"]) == {"2022-01-01"}

            assert store.unlock_year("book", 2022)
            assert not store.unlock_year("book", 2022)
            assert store.max_locked_year("book") == 2020


def test_undo_batch():
    with TemporaryDirectory() as tmp:
        with LedgerStore(Path(tmp) / "ledger.sqlite") as store:
            first, _ = _commit(store, _txn("2024-01-01", 1, "a"))
            second, _ = _commit(store, _txn("2024-01-02", 2, "b"), _txn("2024-01-03", 3, "c"))

            assert store.undo_batch(second) == 2
            assert store.count() == 1
            assert store.get_batch(second).undone_at is not None
            assert store.get_batch(first).undone_at is None

            with pytest.raises(KeyError):
                store.undo_batch("nope")


def test_undo_refused_in_locked_year():
    with TemporaryDirectory() as tmp:
        with LedgerStore(Path(tmp) / "ledger.sqlite") as store:
            batch_id, _ = _commit(store, _txn("2023-12-31", 1, "a"), _txn("2024-01-01", 2, "b"))
            store.lock_year("book", 2023)
            with pytest.raises(LockedPeriodViolationError) as exc:
                store.undo_batch(batch_id)
            assert exc.value.locked_dates == ["2023-12-31"]
            assert store.count() == 2


def test_lock_lookup_failure_is_unavailable():
    with TemporaryDirectory() as tmp:
        store = LedgerStore(Path(tmp) / "ledger.sqlite")
        store.lock_year("book", 2023)
        store.close()
        with pytest.raises(PeriodLockUnavailableError):
            store.is_date_locked("book", "2023-01-01")
        with pytest.raises(PeriodLockUnavailableError):
            store.locked_dates("book", ["2023-01-01"])
