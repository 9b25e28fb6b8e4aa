"""Period lock gate — reports batch dates that fall in locked periods.

The gate never aborts early and never changes a row. It returns every
locked date it found so the user sees all violations at once; refusing to
commit is the caller's job (see ``BatchResult.committable``).

Each distinct date is asked about once. Services exposing a batched
``locked_dates`` call are asked once for the whole batch.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from .errors import PeriodLockUnavailableError
from .logging_setup import get_logger
from .mapper import StagedTransaction

logger = get_logger("bookset_import.period_lock")


class PeriodLockService(Protocol):
    def is_date_locked(self, book_id: str, date: str) -> bool: ...


@runtime_checkable
class BatchPeriodLockService(Protocol):
    def is_date_locked(self, book_id: str, date: str) -> bool: ...

    def locked_dates(self, book_id: str, dates: Sequence[str]) -> set[str]: ...


@dataclass(frozen=True)
class LockVerdict:
    valid: bool
    locked_dates: list[str]
    warnings: list[str] = field(default_factory=list)


class PeriodLockGate:
    """Checks transaction dates against a PeriodLockService."""

    def __init__(self, service: PeriodLockService | None) -> None:
        self.service = service

    def _locked_among(self, book_id: str, distinct: list[str], warnings: list[str]) -> set[str]:
        if self.service is None:
            if distinct:
                warnings.append("No period lock service configured; lock status not checked")
            return set()

        if isinstance(self.service, BatchPeriodLockService):
            try:
                return set(self.service.locked_dates(book_id, distinct))
            except PeriodLockUnavailableError as exc:
                logger.warning("Batched lock check failed for book %s: %s", book_id, exc)
                warnings.append(f"Lock status unavailable for {len(distinct)} date(s): {exc}")
                return set()

        locked: set[str] = set()
        unavailable: list[str] = []
        for day in distinct:
            try:
                if self.service.is_date_locked(book_id, day):
                    locked.add(day)
            except PeriodLockUnavailableError as exc:
                logger.warning("Lock check failed for book %s on %s: %s", book_id, day, exc)
                unavailable.append(day)
        if unavailable:
            warnings.append(
                "Lock status unavailable, treated as unlocked: " + ", ".join(unavailable)
            )
        return locked

    def validate(self, book_id: str, transactions: Iterable[StagedTransaction]) -> LockVerdict:
        """Return every locked date in ``transactions`` (input order, repeats kept)."""
        dates = [t.date for t in transactions if t.date]
        distinct = list(dict.fromkeys(dates))
        warnings: list[str] = []

        locked = self._locked_among(book_id, distinct, warnings)
        locked_dates = [d for d in dates if d in locked]
        if locked_dates:
            logger.info(
                "Book %s: %d transaction(s) in locked periods", book_id, len(locked_dates)
            )
        return LockVerdict(valid=not locked_dates, locked_dates=locked_dates, warnings=warnings)
