"""Tests for the row mapper."""

from bookset_import.lib.mapper import map_row, map_rows, resolve_columns
from bookset_import.lib.mapping import AmountMode, CsvMapping
from bookset_import.lib.validation import IssueCode


def _signed() -> CsvMapping:
    return CsvMapping(date_column="Date", description_column="Description", amount_column="Amount")


def _separate() -> CsvMapping:
    return CsvMapping(
        date_column="Date",
        description_column="Description",
        amount_mode=AmountMode.SEPARATE,
        inflow_column="Credit",
        outflow_column="Debit",
    )


def _codes(staged):
    return [issue.code for issue in staged.issues]


def test_valid_signed_row():
    row = {"Date": "01/15/2024", "Amount": "-$42.50", "Description": "  TRADER JOE'S  "}
    staged = map_row(row, _signed(), 3)
    assert staged.is_valid
    assert staged.errors == []
    assert staged.date == "2024-01-15"
    assert staged.amount == -4250
    assert staged.description == "TRADER JOE'S"
    assert staged.row_index == 3
    assert staged.raw_row is row


def test_conversion_errors_accumulate():
    row = {"Date": "13/45/2024", "Amount": "abc", "Description": "Store"}
    staged = map_row(row, _signed(), 0)
    assert not staged.is_valid
    assert _codes(staged) == [IssueCode.DATE_PARSE_ERROR, IssueCode.AMOUNT_PARSE_ERROR]
    assert 'Invalid date: "13/45/2024" (expected format: MM/dd/yyyy)' in staged.errors
    assert 'Invalid amount: "abc"' in staged.errors
    assert staged.date is None
    assert staged.amount is None
    assert staged.description == "Store"


def test_missing_column_in_row():
    staged = map_row({"Date": "01/15/2024", "Description": "x"}, _signed(), 0)
    assert staged.errors == ['Missing column "Amount" in CSV row']
    assert _codes(staged) == [IssueCode.MISSING_COLUMN_MAPPING]


def test_missing_mapping_reported_per_column():
    mapping = CsvMapping(date_column="Date", description_column="", amount_column="")
    staged = map_row({"Date": "01/15/2024"}, mapping, 0)
    assert staged.errors == [
        "Missing mapping for description column",
        "Missing mapping for amount column",
    ]


def test_blank_fields_stop_before_conversion():
    row = {"Date": "  ", "Amount": "not money", "Description": ""}
    staged = map_row(row, _signed(), 0)
    assert staged.errors == ["Date is required", "Description is required"]
    assert all(code == IssueCode.MISSING_VALUE for code in _codes(staged))


def test_description_empty_after_sanitization():
    row = {"Date": "01/15/2024", "Amount": "5", "Description": "<script>x</script>"}
    staged = map_row(row, _signed(), 0)
    assert staged.errors == ["Description is empty after sanitization"]
    assert _codes(staged) == [IssueCode.EMPTY_DESCRIPTION]
    assert staged.date == "2024-01-15"
    assert staged.amount == 500


def test_description_truncated():
    row = {"Date": "01/15/2024", "Amount": "5", "Description": "y" * 800}
    staged = map_row(row, _signed(), 0)
    assert staged.is_valid
    assert len(staged.description) == 500


def test_separate_inflow_wins():
    row = {"Date": "01/15/2024", "Credit": "100.00", "Debit": "", "Description": "Payroll"}
    assert map_row(row, _separate(), 0).amount == 10000


def test_separate_outflow_is_negative():
    row = {"Date": "01/15/2024", "Credit": "", "Debit": "50.00", "Description": "Rent"}
    assert map_row(row, _separate(), 0).amount == -5000
    row["Debit"] = "-50.00"
    assert map_row(row, _separate(), 0).amount == -5000


def test_separate_zero_inflow_falls_back_to_outflow():
    row = {"Date": "01/15/2024", "Credit": "0.00", "Debit": "12.00", "Description": "Fee"}
    assert map_row(row, _separate(), 0).amount == -1200


def test_separate_both_missing():
    row = {"Date": "01/15/2024", "Credit": "", "Debit": "", "Description": "Nothing"}
    staged = map_row(row, _separate(), 0)
    assert staged.errors == ["Missing amount in both inflow and outflow columns"]

    row.update({"Credit": "0.00", "Debit": "0"})
    staged = map_row(row, _separate(), 0)
    assert staged.errors == ["Missing amount in both inflow and outflow columns"]


def test_separate_placeholder_falls_through_to_other_column():
    row = {"Date": "01/15/2024", "Credit": "n/a", "Debit": "5.00", "Description": "Odd"}
    staged = map_row(row, _separate(), 0)
    assert staged.is_valid
    assert staged.amount == -500

    row.update({"Credit": "-", "Debit": "12.00"})
    assert map_row(row, _separate(), 0).amount == -1200

    row.update({"Credit": "250.00", "Debit": "--"})
    assert map_row(row, _separate(), 0).amount == 25000


def test_separate_only_garbage_is_amount_error():
    row = {"Date": "01/15/2024", "Credit": "n/a", "Debit": "??", "Description": "Odd"}
    staged = map_row(row, _separate(), 0)
    assert _codes(staged) == [IssueCode.AMOUNT_PARSE_ERROR, IssueCode.AMOUNT_PARSE_ERROR]
    assert staged.errors == ['Invalid amount: "n/a"', 'Invalid amount: "??"']

    row.update({"Debit": ""})
    assert map_row(row, _separate(), 0).errors == ['Invalid amount: "n/a"']

    row.update({"Debit": "0.00"})
    assert map_row(row, _separate(), 0).errors == [
        "Missing amount in both inflow and outflow columns"
    ]


def test_is_valid_matches_errors():
    rows = [
        {"Date": "01/15/2024", "Amount": "1", "Description": "ok"},
        {"Date": "bad", "Amount": "1", "Description": "ok"},
        {"Date": "01/15/2024", "Amount": "", "Description": "ok"},
    ]
    for staged in map_rows(rows, _signed()):
        assert staged.is_valid == (len(staged.errors) == 0)
        if staged.is_valid:
            assert staged.date and staged.amount is not None and staged.description


def test_map_rows_indexes_from_zero():
    rows = [{"Date": "01/0%d/2024" % i, "Amount": "1", "Description": "x"} for i in range(1, 4)]
    staged = map_rows(rows, _signed())
    assert [s.row_index for s in staged] == [0, 1, 2]
    assert [s.date for s in staged] == ["2024-01-01", "2024-01-02", "2024-01-03"]


def test_resolve_columns_once():
    resolved = resolve_columns(_separate(), ["Date", "Description", "Credit"])
    assert not resolved.ok
    assert [i.message for i in resolved.issues] == ['Missing column "Debit" in CSV row']

    resolved = resolve_columns(_separate(), ["Date", "Description", "Credit", "Debit"])
    assert resolved.ok
    assert resolved.value.inflow({"Credit": "9"}) == "9"
