"""Row-level validation results.

A ``Validated`` holds either a value or a non-empty tuple of ``RowIssue``s.
``combine`` gathers issues from several results without stopping at the
first failure, so one pass over a row reports everything wrong with it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class IssueCode(str, Enum):
    MISSING_COLUMN_MAPPING = "missing_column_mapping"
    MISSING_VALUE = "missing_value"
    DATE_PARSE_ERROR = "date_parse_error"
    AMOUNT_PARSE_ERROR = "amount_parse_error"
    EMPTY_DESCRIPTION = "empty_description_after_sanitization"


@dataclass(frozen=True)
class RowIssue:
    code: IssueCode
    message: str


@dataclass(frozen=True)
class Validated(Generic[T]):
    value: T | None = None
    issues: tuple[RowIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues


def valid(value: T) -> Validated[T]:
    return Validated(value=value)


def invalid(code: IssueCode, message: str) -> Validated:
    return Validated(issues=(RowIssue(code, message),))


def combine(*results: Validated) -> tuple[RowIssue, ...]:
    """Concatenate the issues of ``results``, dropping repeated messages."""
    seen: set[str] = set()
    out: list[RowIssue] = []
    for result in results:
        for issue in result.issues:
            if issue.message in seen:
                continue
            seen.add(issue.message)
            out.append(issue)
    return tuple(out)
