"""Import orchestrator — runs one CSV batch through the whole pipeline.

    file -> rows -> staged -> fingerprinted -> exact -> fuzzy -> lock gate

The result lists every input row, in file order, with its outcome. Nothing
is written; committing the NEW rows is up to the caller, which must also
refuse to commit when the lock verdict is not valid.

Callers must not run two batches for the same account at once: the
fingerprint map is a snapshot taken at batch start.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from .bank_profiles import BankProfileRegistry, default_registry
from .config import ImportSettings
from .csv_ingest import CsvSource, ParseIssue, ParseResult, parse_full_csv, preview_csv, source_name
from .errors import LockedPeriodViolationError
from .fingerprint import add_fingerprints
from .fuzzy_matcher import FuzzyMatchOptions, detect_fuzzy_duplicates
from .logging_setup import get_logger
from .mapper import map_rows
from .mapping import CsvMapping
from .period_lock import LockVerdict, PeriodLockGate, PeriodLockService
from .reconciler import (
    ImportStatus,
    ProcessedTransaction,
    TransactionStore,
    detect_exact_duplicates,
    error_rows,
)

logger = get_logger("bookset_import.orchestrator")


@dataclass(frozen=True)
class ImportStats:
    total: int
    new: int
    exact_duplicates: int
    fuzzy_duplicates: int
    errors: int

    @classmethod
    def from_transactions(cls, transactions: list[ProcessedTransaction]) -> "ImportStats":
        def count(status: ImportStatus) -> int:
            return sum(1 for t in transactions if t.status == status)

        return cls(
            total=len(transactions),
            new=count(ImportStatus.NEW),
            exact_duplicates=count(ImportStatus.DUPLICATE),
            fuzzy_duplicates=count(ImportStatus.FUZZY_DUPLICATE),
            errors=count(ImportStatus.ERROR),
        )


@dataclass(frozen=True)
class BatchResult:
    file_name: str
    book_id: str
    account_id: str
    mapping: CsvMapping
    transactions: list[ProcessedTransaction]
    lock_verdict: LockVerdict
    stats: ImportStats
    parse_issues: list[ParseIssue]

    def by_status(self, status: ImportStatus) -> list[ProcessedTransaction]:
        return [t for t in self.transactions if t.status == status]

    def committable(self) -> list[ProcessedTransaction]:
        """The NEW rows, or LockedPeriodViolationError if the batch is blocked."""
        if not self.lock_verdict.valid:
            raise LockedPeriodViolationError(self.lock_verdict.locked_dates)
        return self.by_status(ImportStatus.NEW)


def _search_window(
    transactions: list[ProcessedTransaction], window_days: int
) -> tuple[str, str] | None:
    dates = [date.fromisoformat(t.date) for t in transactions if t.date]
    if not dates:
        return None
    pad = timedelta(days=window_days)
    return (min(dates) - pad).isoformat(), (max(dates) + pad).isoformat()


class ImportOrchestrator:
    """Wires the pipeline stages to a store and a lock service."""

    def __init__(
        self,
        store: TransactionStore,
        lock_service: PeriodLockService | None,
        *,
        registry: BankProfileRegistry | None = None,
        settings: ImportSettings | None = None,
        fuzzy_options: FuzzyMatchOptions | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or ImportSettings()
        self.registry = registry or default_registry()
        self.gate = PeriodLockGate(lock_service)
        self.fuzzy_options = fuzzy_options or self.settings.fuzzy_options

    def resolve_mapping(self, mapping: CsvMapping | str) -> CsvMapping:
        if isinstance(mapping, str):
            mapping = self.registry.require(mapping)
        return mapping.validate()

    def preview(self, source: CsvSource, has_header_row: bool = True) -> ParseResult:
        return preview_csv(
            source,
            has_header_row,
            rows=self.settings.preview_rows,
            max_bytes=self.settings.max_file_bytes,
        )

    def run(
        self,
        source: CsvSource,
        mapping: CsvMapping | str,
        *,
        book_id: str,
        account_id: str,
    ) -> BatchResult:
        """Process a file end to end and return the batch decision.

        File-level problems (bad mapping, wrong extension, too large, too
        many rows) raise before any row is processed.
        """
        mapping = self.resolve_mapping(mapping)
        name = source_name(source)

        parsed = parse_full_csv(
            source,
            mapping.has_header_row,
            max_rows=self.settings.max_rows,
            max_bytes=self.settings.max_file_bytes,
        )
        logger.info("Importing %s: %d row(s) into account %s", name, len(parsed.rows), account_id)

        staged = map_rows(
            parsed.rows, mapping, max_description_length=self.settings.max_description_length
        )
        fingerprinted = add_fingerprints(staged)

        existing_fps = self.store.existing_fingerprints(account_id)
        processed = detect_exact_duplicates(fingerprinted, existing_fps)

        window = _search_window(processed, self.fuzzy_options.date_window_days)
        if window is not None and any(t.status == ImportStatus.NEW for t in processed):
            existing = self.store.existing_transactions(account_id, *window)
            processed = detect_fuzzy_duplicates(processed, existing, self.fuzzy_options)

        everything = sorted([*processed, *error_rows(staged)], key=lambda t: t.row_index)
        verdict = self.gate.validate(book_id, processed)

        stats = ImportStats.from_transactions(everything)
        logger.info(
            "Batch %s: %d new, %d duplicate, %d fuzzy, %d error; locks %s",
            name,
            stats.new,
            stats.exact_duplicates,
            stats.fuzzy_duplicates,
            stats.errors,
            "clear" if verdict.valid else f"violated on {len(verdict.locked_dates)} row(s)",
        )
        return BatchResult(
            file_name=name,
            book_id=book_id,
            account_id=account_id,
            mapping=mapping,
            transactions=everything,
            lock_verdict=verdict,
            stats=stats,
            parse_issues=parsed.issues,
        )
