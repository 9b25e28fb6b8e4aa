"""CSV ingestor — file checks plus row extraction for preview and full parses.

File-level checks (extension, byte size, row count) raise before any row
reaches the mapper. Everything below the file level is lenient: ragged rows
are kept and reported as ``ParseIssue``s, blank lines are skipped.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import IO, Union

from .errors import (
    CsvParseError,
    FileTooLargeError,
    RowCountExceededError,
    UnsupportedFileTypeError,
)
from .logging_setup import get_logger

logger = get_logger("bookset_import.csv_ingest")

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
MAX_ROWS = 50_000
PREVIEW_ROWS = 5
EMPTY_HEADER = "__empty__"


@dataclass(frozen=True)
class CsvUpload:
    """An in-memory upload (e.g. from a web form)."""

    name: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


CsvSource = Union[str, "PathLike[str]", CsvUpload]


@dataclass(frozen=True)
class ParseIssue:
    row: int  # 0-based data row index
    message: str


@dataclass
class ParseResult:
    rows: list[dict[str, str]]
    fields: list[str]
    issues: list[ParseIssue] = field(default_factory=list)


def source_name(source: CsvSource) -> str:
    if isinstance(source, CsvUpload):
        return source.name
    return Path(source).name


def check_file(source: CsvSource, max_bytes: int = MAX_FILE_SIZE) -> None:
    """Reject non-CSV names and files over ``max_bytes``."""
    name = source_name(source)
    size = source.size if isinstance(source, CsvUpload) else Path(source).stat().st_size
    if size > max_bytes:
        raise FileTooLargeError(size, max_bytes)
    if not name.lower().endswith(".csv"):
        raise UnsupportedFileTypeError(name)


def _open_text(source: CsvSource) -> IO[str]:
    # utf-8-sig drops a leading BOM that spreadsheet exports often add.
    if isinstance(source, CsvUpload):
        return io.TextIOWrapper(io.BytesIO(source.content), encoding="utf-8-sig", newline="")
    return open(source, encoding="utf-8-sig", newline="")


def _records(f: IO[str]) -> Iterator[list[str]]:
    reader = csv.reader(f)
    try:
        for cells in reader:
            if not any(cell.strip() for cell in cells):
                continue
            yield cells
    except UnicodeDecodeError as exc:
        raise CsvParseError(f"CSV parsing failed: file is not valid UTF-8 ({exc.reason})") from exc
    except csv.Error as exc:
        raise CsvParseError(f"CSV parsing failed: {exc}") from exc


def _header_names(cells: list[str]) -> list[str]:
    return [cell.strip() or EMPTY_HEADER for cell in cells]


def _row_with_header(
    cells: list[str], header: list[str], index: int, issues: list[ParseIssue]
) -> dict[str, str]:
    row: dict[str, str] = {}
    for name, value in zip(header, cells):
        # Duplicate header names keep the first column's value.
        if name not in row:
            row[name] = value
    if len(cells) < len(header):
        issues.append(
            ParseIssue(index, f"Too few fields: expected {len(header)} fields but parsed {len(cells)}")
        )
    elif len(cells) > len(header):
        issues.append(
            ParseIssue(index, f"Too many fields: expected {len(header)} fields but parsed {len(cells)}")
        )
    return row


def _parse(
    source: CsvSource,
    *,
    has_header_row: bool,
    limit: int | None,
    max_rows: int | None,
    max_bytes: int,
) -> ParseResult:
    check_file(source, max_bytes)

    rows: list[dict[str, str]] = []
    issues: list[ParseIssue] = []
    header: list[str] | None = None
    width = 0

    with _open_text(source) as f:
        for cells in _records(f):
            if has_header_row and header is None:
                header = _header_names(cells)
                continue
            if limit is not None and len(rows) >= limit:
                break
            if max_rows is not None and len(rows) >= max_rows:
                raise RowCountExceededError(max_rows)

            index = len(rows)
            if header is not None:
                rows.append(_row_with_header(cells, header, index, issues))
            else:
                width = max(width, len(cells))
                rows.append({str(i): value for i, value in enumerate(cells)})

    if has_header_row:
        fields = list(dict.fromkeys(header or []))
    else:
        fields = [str(i) for i in range(width)]

    logger.debug(
        "Parsed %d row(s) from %s (%d issue(s))", len(rows), source_name(source), len(issues)
    )
    return ParseResult(rows=rows, fields=fields, issues=issues)


def preview_csv(
    source: CsvSource,
    has_header_row: bool = True,
    *,
    rows: int = PREVIEW_ROWS,
    max_bytes: int = MAX_FILE_SIZE,
) -> ParseResult:
    """Parse at most ``rows`` data rows for column detection."""
    return _parse(source, has_header_row=has_header_row, limit=rows, max_rows=None, max_bytes=max_bytes)


def parse_full_csv(
    source: CsvSource,
    has_header_row: bool = True,
    *,
    max_rows: int = MAX_ROWS,
    max_bytes: int = MAX_FILE_SIZE,
) -> ParseResult:
    """Parse every data row, failing once the file exceeds ``max_rows``."""
    return _parse(source, has_header_row=has_header_row, limit=None, max_rows=max_rows, max_bytes=max_bytes)
