"""Import settings loaded from ``import/config.yaml``.

Project layout (all optional)::

    <root>/import/config.yaml       settings below
    <root>/import/profiles/*.yaml   extra bank profiles
    <root>/import/state/ledger.sqlite

Example config.yaml::

    limits:
      max_file_mb: 10
      max_rows: 50000
      preview_rows: 5
    fuzzy:
      date_window_days: 3
      require_exact_amount: true
    database: import/state/ledger.sqlite

``BOOKSET_IMPORT_DB`` overrides the database path.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

from .csv_ingest import MAX_FILE_SIZE, MAX_ROWS, PREVIEW_ROWS
from .errors import ConfigError
from .fuzzy_matcher import FuzzyMatchOptions
from .normalizers import MAX_DESCRIPTION_LENGTH


def get_project_root() -> Path:
    """Find the project root by looking for an import/ directory."""
    cwd = Path.cwd()
    for parent in [cwd, *cwd.parents]:
        if (parent / "import").is_dir():
            return parent
    return cwd


@dataclass(frozen=True)
class ImportSettings:
    max_file_bytes: int = MAX_FILE_SIZE
    max_rows: int = MAX_ROWS
    preview_rows: int = PREVIEW_ROWS
    max_description_length: int = MAX_DESCRIPTION_LENGTH
    date_window_days: int = 3
    require_exact_amount: bool = True
    db_path: Path = Path("import/state/ledger.sqlite")
    profiles_dir: Path = Path("import/profiles")

    @property
    def fuzzy_options(self) -> FuzzyMatchOptions:
        return FuzzyMatchOptions(
            date_window_days=self.date_window_days,
            require_exact_amount=self.require_exact_amount,
        )

    @classmethod
    def load(cls, project_root: Path) -> "ImportSettings":
        """Read ``import/config.yaml`` under ``project_root`` if it exists."""
        path = project_root / "import" / "config.yaml"
        data: dict = {}
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"{path}: expected a mapping at top level")

        limits = data.get("limits") or {}
        fuzzy = data.get("fuzzy") or {}
        for section, value in (("limits", limits), ("fuzzy", fuzzy)):
            if not isinstance(value, dict):
                raise ConfigError(f"{path}: '{section}' must be a mapping, got {value!r}")
        defaults = cls()

        max_mb = limits.get("max_file_mb")
        if max_mb is not None and (isinstance(max_mb, bool) or not isinstance(max_mb, (int, float))):
            raise ConfigError(f"max_file_mb must be a number, got {max_mb!r}")
        settings = cls(
            max_file_bytes=int(max_mb * 1024 * 1024) if max_mb is not None else defaults.max_file_bytes,
            max_rows=limits.get("max_rows", defaults.max_rows),
            preview_rows=limits.get("preview_rows", defaults.preview_rows),
            max_description_length=limits.get(
                "max_description_length", defaults.max_description_length
            ),
            date_window_days=fuzzy.get("date_window_days", defaults.date_window_days),
            require_exact_amount=fuzzy.get("require_exact_amount", defaults.require_exact_amount),
            db_path=project_root / data.get("database", defaults.db_path),
            profiles_dir=project_root / data.get("profiles_dir", defaults.profiles_dir),
        )

        env_db = os.environ.get("BOOKSET_IMPORT_DB")
        if env_db:
            settings = replace(settings, db_path=Path(env_db))
        settings.check()
        return settings

    def check(self) -> None:
        for name in ("max_file_bytes", "max_rows", "preview_rows", "max_description_length"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if (
            not isinstance(self.date_window_days, int)
            or isinstance(self.date_window_days, bool)
            or self.date_window_days < 0
        ):
            raise ConfigError(
                f"date_window_days must be a non-negative integer, got {self.date_window_days!r}"
            )
        if not isinstance(self.require_exact_amount, bool):
            raise ConfigError("require_exact_amount must be true or false")
