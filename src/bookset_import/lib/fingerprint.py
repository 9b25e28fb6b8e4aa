"""Transaction fingerprinting for exact-duplicate detection.

Generates stable SHA-256 hashes from date, amount and description so the
same bank row imported twice maps to the same ledger identity.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable
from dataclasses import dataclass

from .mapper import StagedTransaction


def normalize_description(description: str) -> str:
    """Normalize a description for consistent fingerprinting.

    Strips whitespace, lowercases, and collapses runs of whitespace.
    Punctuation is kept: "Target #12" and "Target 12" are different rows.
    """
    return re.sub(r"\s+", " ", description.strip().lower())


def fingerprint(date: str, amount: int, description: str) -> str:
    """Generate a stable transaction fingerprint.

    Args:
        date: Transaction date (e.g., "2024-01-15")
        amount: Amount in integer cents (e.g., -4250)
        description: Raw description (will be normalized)

    Returns:
        SHA-256 hex digest string
    """
    parts = f"{date}|{amount}|{normalize_description(description)}"
    return hashlib.sha256(parts.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class FingerprintedTransaction:
    staged: StagedTransaction
    fingerprint: str


def add_fingerprints(transactions: Iterable[StagedTransaction]) -> list[FingerprintedTransaction]:
    """Fingerprint valid rows. Invalid rows are left out of the result."""
    return [
        FingerprintedTransaction(t, fingerprint(t.date, t.amount, t.description))
        for t in transactions
        if t.is_valid
    ]
