"""Exception hierarchy for the import pipeline.

File-level problems are raised and stop a batch before any row is read.
Row-level problems are never raised; they travel as ``RowIssue`` values
on the staged transaction (see ``validation.py``).
"""

from __future__ import annotations


class BooksetImportError(Exception):
    """Base class for every error raised by this package."""


class FileRejectedError(BooksetImportError):
    """The uploaded file cannot be imported at all."""


class FileTooLargeError(FileRejectedError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"File too large ({size} bytes). Maximum size is {limit // (1024 * 1024)}MB."
        )


class UnsupportedFileTypeError(FileRejectedError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Only CSV files are supported (got {name!r}).")


class RowCountExceededError(FileRejectedError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"File has too many rows. Maximum is {limit}.")


class CsvParseError(FileRejectedError):
    """The file is not decodable UTF-8 or is not well-formed CSV."""


class InvalidMappingError(BooksetImportError):
    """A CsvMapping is missing a column its amount mode requires."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("Invalid column mapping: " + "; ".join(problems))


class UnknownProfileError(BooksetImportError):
    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        super().__init__(
            f"Unknown bank profile {name!r}. Available: {', '.join(available) or 'none'}"
        )


class ConfigError(BooksetImportError):
    """Raised when import/config.yaml holds an invalid value."""


class LockedPeriodViolationError(BooksetImportError):
    """Raised when a caller tries to commit a batch touching a locked period."""

    def __init__(self, locked_dates: list[str]) -> None:
        self.locked_dates = locked_dates
        shown = ", ".join(sorted(set(locked_dates)))
        super().__init__(f"Batch contains transactions in locked periods: {shown}")


class PeriodLockUnavailableError(BooksetImportError):
    """The period lock service could not answer."""
