"""Exact duplicate detection against the ledger's fingerprints.

Also defines the shapes shared by the later pipeline stages:
``ProcessedTransaction`` (a staged row plus its classification),
``ExistingTransaction`` (a read-only ledger row) and the
``TransactionStore`` protocol the orchestrator reads them from.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Protocol

from .fingerprint import FingerprintedTransaction
from .mapper import StagedTransaction


class ImportStatus(str, Enum):
    NEW = "new"
    DUPLICATE = "duplicate"
    FUZZY_DUPLICATE = "fuzzy_duplicate"
    ERROR = "error"


@dataclass(frozen=True)
class ExistingTransaction:
    id: str
    date: str  # YYYY-MM-DD
    amount: int  # cents
    description: str = ""


@dataclass(frozen=True)
class ProcessedTransaction(StagedTransaction):
    fingerprint: str | None = None  # None only for error rows
    status: ImportStatus = ImportStatus.NEW
    duplicate_of_id: str | None = None  # set iff status is DUPLICATE
    fuzzy_matches: tuple[ExistingTransaction, ...] = ()  # set iff FUZZY_DUPLICATE

    @classmethod
    def from_staged(
        cls,
        staged: StagedTransaction,
        *,
        fingerprint: str | None = None,
        status: ImportStatus = ImportStatus.NEW,
        duplicate_of_id: str | None = None,
    ) -> "ProcessedTransaction":
        base = {f.name: getattr(staged, f.name) for f in fields(StagedTransaction)}
        return cls(
            **base,
            fingerprint=fingerprint,
            status=status,
            duplicate_of_id=duplicate_of_id,
        )


class TransactionStore(Protocol):
    """Read side of the ledger used by an import batch."""

    def existing_fingerprints(self, account_id: str) -> dict[str, str]:
        """Map of fingerprint -> transaction id for the account."""
        ...

    def existing_transactions(
        self, account_id: str, start: str | None = None, end: str | None = None
    ) -> list[ExistingTransaction]:
        """Ledger rows for the account, optionally within [start, end]."""
        ...


def detect_exact_duplicates(
    incoming: Iterable[FingerprintedTransaction],
    existing_fingerprints: Mapping[str, str],
) -> list[ProcessedTransaction]:
    """Classify each row as DUPLICATE (fingerprint already in the ledger) or NEW."""
    processed: list[ProcessedTransaction] = []
    for item in incoming:
        duplicate_id = existing_fingerprints.get(item.fingerprint)
        if duplicate_id is not None:
            processed.append(
                ProcessedTransaction.from_staged(
                    item.staged,
                    fingerprint=item.fingerprint,
                    status=ImportStatus.DUPLICATE,
                    duplicate_of_id=duplicate_id,
                )
            )
        else:
            processed.append(
                ProcessedTransaction.from_staged(item.staged, fingerprint=item.fingerprint)
            )
    return processed


def error_rows(staged: Iterable[StagedTransaction]) -> list[ProcessedTransaction]:
    """Wrap invalid rows so they appear in the batch result with ERROR status."""
    return [
        ProcessedTransaction.from_staged(t, status=ImportStatus.ERROR)
        for t in staged
        if not t.is_valid
    ]
