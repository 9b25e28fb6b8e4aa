"""SQLite ledger store.

Implements the read side the import pipeline needs (``TransactionStore``
and ``PeriodLockService``) plus the write operations the CLI performs after
the user confirms a batch. The pipeline itself never writes.

Period locks are per tax year: a date is locked when its year is at or
below the highest locked year of the book.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import LockedPeriodViolationError, PeriodLockUnavailableError
from .logging_setup import get_logger
from .reconciler import ExistingTransaction, ProcessedTransaction

logger = get_logger("bookset_import.store")


@dataclass(frozen=True)
class ImportBatch:
    id: str
    book_id: str
    account_id: str
    file_name: str
    imported_at: str
    total_rows: int
    imported_count: int
    duplicate_count: int
    error_count: int
    undone_at: str | None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LedgerStore:
    """Transactions, import batches and tax-year locks in one SQLite file."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                book_id TEXT NOT NULL,
                account_id TEXT NOT NULL,
                date TEXT NOT NULL,
                amount INTEGER NOT NULL,
                description TEXT NOT NULL,
                fingerprint TEXT,
                batch_id TEXT,
                imported_at TEXT
            );
            CREATE INDEX IF NOT EXISTS ix_transactions_account_date
                ON transactions (account_id, date);
            CREATE INDEX IF NOT EXISTS ix_transactions_fingerprint
                ON transactions (account_id, fingerprint);

            CREATE TABLE IF NOT EXISTS import_batches (
                id TEXT PRIMARY KEY,
                book_id TEXT NOT NULL,
                account_id TEXT NOT NULL,
                file_name TEXT NOT NULL,
                imported_at TEXT NOT NULL,
                total_rows INTEGER NOT NULL,
                imported_count INTEGER NOT NULL,
                duplicate_count INTEGER NOT NULL,
                error_count INTEGER NOT NULL,
                mapping_snapshot TEXT,
                undone_at TEXT
            );

            CREATE TABLE IF NOT EXISTS tax_year_locks (
                book_id TEXT NOT NULL,
                tax_year INTEGER NOT NULL,
                locked_at TEXT NOT NULL,
                PRIMARY KEY (book_id, tax_year)
            );
        """)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "LedgerStore":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # --- TransactionStore ---

    def existing_fingerprints(self, account_id: str) -> dict[str, str]:
        rows = self._conn.execute(
            "SELECT fingerprint, id FROM transactions "
            "WHERE account_id = ? AND fingerprint IS NOT NULL",
            (account_id,),
        ).fetchall()
        return {fp: txn_id for fp, txn_id in rows}

    def existing_transactions(
        self, account_id: str, start: str | None = None, end: str | None = None
    ) -> list[ExistingTransaction]:
        sql = "SELECT id, date, amount, description FROM transactions WHERE account_id = ?"
        params: list[Any] = [account_id]
        if start is not None:
            sql += " AND date >= ?"
            params.append(start)
        if end is not None:
            sql += " AND date <= ?"
            params.append(end)
        sql += " ORDER BY date DESC, rowid"
        return [
            ExistingTransaction(id=r[0], date=r[1], amount=r[2], description=r[3])
            for r in self._conn.execute(sql, params).fetchall()
        ]

    # --- PeriodLockService ---

    def max_locked_year(self, book_id: str) -> int | None:
        """Highest locked tax year, or PeriodLockUnavailableError if SQLite fails."""
        try:
            row = self._conn.execute(
                "SELECT MAX(tax_year) FROM tax_year_locks WHERE book_id = ?", (book_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise PeriodLockUnavailableError(f"Tax-year lock lookup failed: {exc}") from exc
        return row[0] if row else None

    def is_date_locked(self, book_id: str, date: str) -> bool:
        max_year = self.max_locked_year(book_id)
        return max_year is not None and int(date[:4]) <= max_year

    def locked_dates(self, book_id: str, dates: Sequence[str]) -> set[str]:
        max_year = self.max_locked_year(book_id)
        if max_year is None:
            return set()
        return {d for d in dates if int(d[:4]) <= max_year}

    def lock_year(self, book_id: str, year: int) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO tax_year_locks (book_id, tax_year, locked_at) VALUES (?, ?, ?)",
            (book_id, year, _now()),
        )
        self._conn.commit()

    def unlock_year(self, book_id: str, year: int) -> bool:
        cur = self._conn.execute(
            "DELETE FROM tax_year_locks WHERE book_id = ? AND tax_year = ?", (book_id, year)
        )
        self._conn.commit()
        return cur.rowcount > 0

    def locked_years(self, book_id: str) -> list[int]:
        rows = self._conn.execute(
            "SELECT tax_year FROM tax_year_locks WHERE book_id = ? ORDER BY tax_year",
            (book_id,),
        ).fetchall()
        return [r[0] for r in rows]

    # --- Batch writes ---

    def commit_batch(
        self,
        *,
        book_id: str,
        account_id: str,
        file_name: str,
        transactions: Sequence[ProcessedTransaction],
        total_rows: int,
        duplicate_count: int,
        error_count: int,
        mapping_snapshot: dict[str, Any] | None = None,
    ) -> tuple[str, list[str]]:
        """Write a batch record and its rows atomically.

        Returns (batch_id, transaction_ids).
        """
        batch_id = uuid.uuid4().hex
        now = _now()
        ids = [uuid.uuid4().hex for _ in transactions]
        with self._conn:
            self._conn.execute(
                "INSERT INTO import_batches (id, book_id, account_id, file_name, imported_at, "
                "total_rows, imported_count, duplicate_count, error_count, mapping_snapshot) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    batch_id,
                    book_id,
                    account_id,
                    file_name,
                    now,
                    total_rows,
                    len(transactions),
                    duplicate_count,
                    error_count,
                    json.dumps(mapping_snapshot) if mapping_snapshot is not None else None,
                ),
            )
            self._conn.executemany(
                "INSERT INTO transactions (id, book_id, account_id, date, amount, description, "
                "fingerprint, batch_id, imported_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (txn_id, book_id, account_id, t.date, t.amount, t.description,
                     t.fingerprint, batch_id, now)
                    for txn_id, t in zip(ids, transactions)
                ],
            )
        logger.info("Committed batch %s: %d transaction(s)", batch_id, len(ids))
        return batch_id, ids

    def undo_batch(self, batch_id: str) -> int:
        """Delete the rows of a batch. Refuses when any row is in a locked year."""
        batch = self.get_batch(batch_id)
        if batch is None:
            raise KeyError(batch_id)
        dates = [
            r[0]
            for r in self._conn.execute(
                "SELECT date FROM transactions WHERE batch_id = ?", (batch_id,)
            ).fetchall()
        ]
        locked = sorted(self.locked_dates(batch.book_id, dates))
        if locked:
            raise LockedPeriodViolationError(locked)
        with self._conn:
            cur = self._conn.execute("DELETE FROM transactions WHERE batch_id = ?", (batch_id,))
            self._conn.execute(
                "UPDATE import_batches SET undone_at = ? WHERE id = ?", (_now(), batch_id)
            )
        logger.info("Undid batch %s: removed %d transaction(s)", batch_id, cur.rowcount)
        return cur.rowcount

    _BATCH_COLUMNS = (
        "id, book_id, account_id, file_name, imported_at, total_rows, "
        "imported_count, duplicate_count, error_count, undone_at"
    )

    def get_batch(self, batch_id: str) -> ImportBatch | None:
        row = self._conn.execute(
            f"SELECT {self._BATCH_COLUMNS} FROM import_batches WHERE id = ?", (batch_id,)
        ).fetchone()
        return ImportBatch(*row) if row else None

    def list_batches(self, book_id: str, limit: int = 20) -> list[ImportBatch]:
        rows = self._conn.execute(
            f"SELECT {self._BATCH_COLUMNS} FROM import_batches WHERE book_id = ? "
            "ORDER BY imported_at DESC LIMIT ?",
            (book_id, limit),
        ).fetchall()
        return [ImportBatch(*r) for r in rows]

    def count(self, account_id: str | None = None) -> int:
        if account_id is None:
            row = self._conn.execute("SELECT COUNT(*) FROM transactions").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE account_id = ?", (account_id,)
            ).fetchone()
        return row[0] if row else 0
