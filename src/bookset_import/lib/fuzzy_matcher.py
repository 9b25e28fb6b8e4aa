"""Fuzzy duplicate matching.

Catches rows whose fingerprint differs from the ledger's (the bank
reworded the description, or posted a day later) but which are plausibly
the same real-world transaction: equal amount, dates within a window.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date

from .logging_setup import get_logger
from .reconciler import ExistingTransaction, ImportStatus, ProcessedTransaction

logger = get_logger("bookset_import.fuzzy_matcher")


@dataclass(frozen=True)
class FuzzyMatchOptions:
    date_window_days: int = 3  # inclusive on both sides
    require_exact_amount: bool = True


def find_fuzzy_matches(
    candidate: ProcessedTransaction,
    existing: Iterable[ExistingTransaction],
    options: FuzzyMatchOptions = FuzzyMatchOptions(),
) -> list[ExistingTransaction]:
    """Return existing rows matching ``candidate``, in their original order.

    A candidate without a parsed date or amount matches nothing.
    """
    if candidate.date is None or candidate.amount is None:
        return []

    candidate_date = date.fromisoformat(candidate.date)
    matches: list[ExistingTransaction] = []
    for txn in existing:
        if options.require_exact_amount and txn.amount != candidate.amount:
            continue
        days = abs((candidate_date - date.fromisoformat(txn.date)).days)
        if days <= options.date_window_days:
            matches.append(txn)
    return matches


def detect_fuzzy_duplicates(
    processed: Sequence[ProcessedTransaction],
    existing: Sequence[ExistingTransaction],
    options: FuzzyMatchOptions = FuzzyMatchOptions(),
) -> list[ProcessedTransaction]:
    """Mark NEW rows with nearby same-amount ledger rows as FUZZY_DUPLICATE.

    Rows already DUPLICATE or ERROR pass through untouched.
    """
    out: list[ProcessedTransaction] = []
    for txn in processed:
        if txn.status != ImportStatus.NEW:
            out.append(txn)
            continue
        matches = find_fuzzy_matches(txn, existing, options)
        if matches:
            logger.debug(
                "Row %d fuzzy-matches %s", txn.row_index, ", ".join(m.id for m in matches)
            )
            out.append(
                replace(txn, status=ImportStatus.FUZZY_DUPLICATE, fuzzy_matches=tuple(matches))
            )
        else:
            out.append(txn)
    return out
