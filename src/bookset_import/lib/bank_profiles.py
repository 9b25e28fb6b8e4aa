"""Bank profiles — named CsvMapping presets for common institutions.

The registry is a plain value: build it at startup with ``default_registry()``
(optionally extended from a directory of YAML files) and pass it to whatever
needs lookups. Nothing here is module-level mutable state.

YAML profile layout (one file per profile)::

    name: FIRST_TECH
    mapping:
      date_column: Posting Date
      description_column: Description
      amount_mode: separate
      inflow_column: Credit
      outflow_column: Debit
      date_format: MM/dd/yyyy
      has_header_row: true
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import yaml

from .errors import InvalidMappingError, UnknownProfileError
from .mapping import AmountMode, CsvMapping
from .normalizers import DateFormat


@dataclass(frozen=True)
class BankProfile:
    name: str
    mapping: CsvMapping

    @classmethod
    def load(cls, path: Path) -> "BankProfile":
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if "mapping" not in data:
            raise InvalidMappingError([f"{path.name}: no 'mapping' section"])
        name = data.get("name") or path.stem
        mapping = CsvMapping.from_dict(data["mapping"]).validate()
        return cls(name=str(name), mapping=mapping)


BUILTIN_PROFILES: tuple[BankProfile, ...] = (
    BankProfile(
        "CHASE_CHECKING",
        CsvMapping(
            date_column="Posting Date",
            description_column="Description",
            amount_column="Amount",
            date_format=DateFormat.MDY_SLASH,
            amount_mode=AmountMode.SIGNED,
        ),
    ),
    BankProfile(
        "AMEX",
        CsvMapping(
            date_column="Date",
            description_column="Description",
            date_format=DateFormat.MDY_SLASH,
            amount_mode=AmountMode.SEPARATE,
            inflow_column="Credits",
            outflow_column="Charges",
        ),
    ),
    BankProfile(
        "BANK_OF_AMERICA",
        CsvMapping(
            date_column="Date",
            description_column="Description",
            amount_column="Amount",
            date_format=DateFormat.MDY_SLASH,
        ),
    ),
    BankProfile(
        "WELLS_FARGO",
        CsvMapping(
            date_column="Date",
            description_column="Description",
            amount_column="Amount",
            date_format=DateFormat.MDY_SLASH,
        ),
    ),
)


class BankProfileRegistry:
    """Read-only, case-sensitive lookup of bank profiles by name."""

    def __init__(self, profiles: Iterable[BankProfile] = ()) -> None:
        table: dict[str, CsvMapping] = {}
        for profile in profiles:
            table[profile.name] = profile.mapping
        self._profiles: Mapping[str, CsvMapping] = MappingProxyType(table)

    def get(self, name: str) -> CsvMapping | None:
        return self._profiles.get(name)

    def require(self, name: str) -> CsvMapping:
        mapping = self.get(name)
        if mapping is None:
            raise UnknownProfileError(name, self.names())
        return mapping

    def names(self) -> list[str]:
        return list(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def with_profiles(self, profiles: Iterable[BankProfile]) -> "BankProfileRegistry":
        """Return a new registry; later profiles replace same-named ones."""
        merged = [BankProfile(n, m) for n, m in self._profiles.items()]
        return BankProfileRegistry([*merged, *profiles])

    def with_directory(self, profiles_dir: Path) -> "BankProfileRegistry":
        """Return a new registry extended by every ``*.yaml`` in ``profiles_dir``."""
        if not profiles_dir.is_dir():
            return self
        loaded = [BankProfile.load(p) for p in sorted(profiles_dir.glob("*.yaml"))]
        return self.with_profiles(loaded)


def default_registry(profiles_dir: Path | None = None) -> BankProfileRegistry:
    registry = BankProfileRegistry(BUILTIN_PROFILES)
    if profiles_dir is not None:
        registry = registry.with_directory(profiles_dir)
    return registry
