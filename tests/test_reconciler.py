"""Tests for exact duplicate detection."""

from bookset_import.lib.fingerprint import add_fingerprints, fingerprint
from bookset_import.lib.mapper import StagedTransaction
from bookset_import.lib.reconciler import ImportStatus, detect_exact_duplicates, error_rows
from bookset_import.lib.validation import IssueCode, RowIssue


def _staged(index: int, date: str, amount: int, description: str) -> StagedTransaction:
    return StagedTransaction({"i": str(index)}, index, date=date, amount=amount, description=description)


def test_classifies_duplicates_and_new():
    incoming = add_fingerprints([
        _staged(0, "2024-01-15", 10000, "Target"),
        _staged(1, "2024-01-16", 2500, "Coffee"),
    ])
    existing = {fingerprint("2024-01-15", 10000, "TARGET"): "txn-1"}

    processed = detect_exact_duplicates(incoming, existing)
    assert [p.status for p in processed] == [ImportStatus.DUPLICATE, ImportStatus.NEW]
    assert processed[0].duplicate_of_id == "txn-1"
    assert processed[1].duplicate_of_id is None
    assert processed[1].fingerprint == incoming[1].fingerprint


def test_keeps_staged_fields_and_order():
    incoming = add_fingerprints([_staged(i, "2024-01-15", i, f"Row {i}") for i in range(5)])
    processed = detect_exact_duplicates(incoming, {})
    assert [p.row_index for p in processed] == [0, 1, 2, 3, 4]
    assert processed[3].description == "Row 3"
    assert processed[3].raw_row == {"i": "3"}
    assert all(p.status == ImportStatus.NEW for p in processed)


def test_same_row_twice_in_batch_both_new():
    incoming = add_fingerprints([
        _staged(0, "2024-01-15", 500, "Coffee"),
        _staged(1, "2024-01-15", 500, "Coffee"),
    ])
    processed = detect_exact_duplicates(incoming, {})
    assert [p.status for p in processed] == [ImportStatus.NEW, ImportStatus.NEW]


def test_error_rows():
    bad = StagedTransaction(
        {}, 4, amount=100, description="x",
        issues=(RowIssue(IssueCode.MISSING_VALUE, "Date is required"),),
    )
    rows = error_rows([_staged(0, "2024-01-01", 1, "ok"), bad])
    assert len(rows) == 1
    assert rows[0].status == ImportStatus.ERROR
    assert rows[0].fingerprint is None
    assert rows[0].errors == ["Date is required"]
    assert rows[0].row_index == 4
