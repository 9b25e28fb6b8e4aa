"""Row mapper — turns one raw CSV row into a StagedTransaction.

Work happens in three steps, each reporting every problem it finds:

1. resolve the mapping's columns against the row's keys;
2. require non-blank date, amount and description cells;
3. convert the cells (date, cents, sanitized description).

Step 3 only runs when steps 1 and 2 are clean.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from .logging_setup import get_logger
from .mapping import AmountMode, CsvMapping
from .normalizers import MAX_DESCRIPTION_LENGTH, clean_currency, parse_date, sanitize_text
from .validation import IssueCode, RowIssue, Validated, combine, invalid, valid

logger = get_logger("bookset_import.mapper")


@dataclass(frozen=True)
class StagedTransaction:
    """A parsed but not yet committed row."""

    raw_row: Mapping[str, str]
    row_index: int  # 0-based, header excluded
    date: str | None = None  # YYYY-MM-DD
    amount: int | None = None  # cents
    description: str | None = None
    issues: tuple[RowIssue, ...] = field(default=())

    @property
    def errors(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def is_valid(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class ResolvedColumns:
    """Accessors for a mapping whose columns were found in a row's keys."""

    mapping: CsvMapping

    @staticmethod
    def _cell(row: Mapping[str, str], column: str) -> str:
        value = row[column]
        return value if isinstance(value, str) else ""

    def date(self, row: Mapping[str, str]) -> str:
        return self._cell(row, self.mapping.date_column)

    def description(self, row: Mapping[str, str]) -> str:
        return self._cell(row, self.mapping.description_column)

    def amount(self, row: Mapping[str, str]) -> str:
        return self._cell(row, self.mapping.amount_column)

    def inflow(self, row: Mapping[str, str]) -> str:
        return self._cell(row, self.mapping.inflow_column)

    def outflow(self, row: Mapping[str, str]) -> str:
        return self._cell(row, self.mapping.outflow_column)


def resolve_columns(mapping: CsvMapping, columns: Iterable[str]) -> Validated[ResolvedColumns]:
    """Check that every column the mapping needs is configured and present."""
    available = set(columns)
    results: list[Validated] = []
    for label, column in mapping.required_columns():
        if not column or not column.strip():
            results.append(
                invalid(IssueCode.MISSING_COLUMN_MAPPING, f"Missing mapping for {label} column")
            )
        elif column not in available:
            results.append(
                invalid(IssueCode.MISSING_COLUMN_MAPPING, f'Missing column "{column}" in CSV row')
            )
    issues = combine(*results)
    if issues:
        return Validated(issues=issues)
    return valid(ResolvedColumns(mapping))


def _require(value: str, message: str) -> Validated[str]:
    if not value.strip():
        return invalid(IssueCode.MISSING_VALUE, message)
    return valid(value)


_BOTH_MISSING = "Missing amount in both inflow and outflow columns"


def _check_present(cols: ResolvedColumns, row: Mapping[str, str]) -> tuple[RowIssue, ...]:
    if cols.mapping.amount_mode == AmountMode.SIGNED:
        amount = _require(cols.amount(row), "Amount is required")
    else:
        amount = _require(cols.inflow(row) + cols.outflow(row), _BOTH_MISSING)
    return combine(
        _require(cols.date(row), "Date is required"),
        amount,
        _require(cols.description(row), "Description is required"),
    )


def _convert_date(raw: str, mapping: CsvMapping) -> Validated[str]:
    parsed = parse_date(raw, mapping.date_format)
    if parsed is None:
        return invalid(
            IssueCode.DATE_PARSE_ERROR,
            f'Invalid date: "{raw}" (expected format: {mapping.date_format.value})',
        )
    return valid(parsed)


def _convert_cell(raw: str) -> Validated[int]:
    cents = clean_currency(raw)
    if cents is None:
        return invalid(IssueCode.AMOUNT_PARSE_ERROR, f'Invalid amount: "{raw}"')
    return valid(cents)


def _convert_amount(cols: ResolvedColumns, row: Mapping[str, str]) -> Validated[int]:
    if cols.mapping.amount_mode == AmountMode.SIGNED:
        return _convert_cell(cols.amount(row))

    # Placeholders such as "-" or "N/A" in the unused column count as empty.
    raw_in, raw_out = cols.inflow(row), cols.outflow(row)
    inflow, outflow = _convert_cell(raw_in), _convert_cell(raw_out)
    if inflow.value:
        return valid(inflow.value)
    if outflow.value:
        return valid(-abs(outflow.value))

    filled = [result for raw, result in ((raw_in, inflow), (raw_out, outflow)) if raw.strip()]
    if filled and all(not result.ok for result in filled):
        return Validated(issues=combine(*filled))
    return invalid(IssueCode.MISSING_VALUE, _BOTH_MISSING)


def _convert_description(raw: str, max_length: int) -> Validated[str]:
    description = sanitize_text(raw, max_length)
    if not description:
        return invalid(IssueCode.EMPTY_DESCRIPTION, "Description is empty after sanitization")
    return valid(description)


def map_row(
    row: Mapping[str, str],
    mapping: CsvMapping,
    row_index: int,
    *,
    resolved: Validated[ResolvedColumns] | None = None,
    max_description_length: int = MAX_DESCRIPTION_LENGTH,
) -> StagedTransaction:
    """Map one raw row. Never raises; problems land in ``issues``.

    ``resolved`` lets a caller reuse a column resolution computed for rows
    sharing the same keys.
    """
    if resolved is None:
        resolved = resolve_columns(mapping, row.keys())
    if not resolved.ok:
        return StagedTransaction(raw_row=row, row_index=row_index, issues=resolved.issues)

    cols = resolved.value
    missing = _check_present(cols, row)
    if missing:
        return StagedTransaction(raw_row=row, row_index=row_index, issues=missing)

    date = _convert_date(cols.date(row).strip(), mapping)
    amount = _convert_amount(cols, row)
    description = _convert_description(cols.description(row), max_description_length)

    issues = combine(date, amount, description)
    if issues:
        logger.debug("Row %d rejected: %s", row_index, "; ".join(i.message for i in issues))
    return StagedTransaction(
        raw_row=row,
        row_index=row_index,
        date=date.value,
        amount=amount.value,
        description=description.value,
        issues=issues,
    )


def map_rows(
    rows: Sequence[Mapping[str, str]],
    mapping: CsvMapping,
    *,
    max_description_length: int = MAX_DESCRIPTION_LENGTH,
) -> list[StagedTransaction]:
    """Map every row, resolving columns once per distinct key set."""
    resolutions: dict[tuple[str, ...], Validated[ResolvedColumns]] = {}
    staged: list[StagedTransaction] = []
    for index, row in enumerate(rows):
        keys = tuple(row.keys())
        if keys not in resolutions:
            resolutions[keys] = resolve_columns(mapping, keys)
        staged.append(
            map_row(
                row,
                mapping,
                index,
                resolved=resolutions[keys],
                max_description_length=max_description_length,
            )
        )
    return staged
