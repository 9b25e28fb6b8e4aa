"""Column mapping configuration for a CSV layout."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping

from .errors import InvalidMappingError
from .normalizers import DateFormat


class AmountMode(str, Enum):
    SIGNED = "signed"  # one column, negative = outflow
    SEPARATE = "separate"  # inflow and outflow columns


# camelCase keys used by saved account mappings and exported snapshots
_CAMEL_KEYS = {
    "dateColumn": "date_column",
    "descriptionColumn": "description_column",
    "amountMode": "amount_mode",
    "amountColumn": "amount_column",
    "inflowColumn": "inflow_column",
    "outflowColumn": "outflow_column",
    "dateFormat": "date_format",
    "hasHeaderRow": "has_header_row",
}


@dataclass(frozen=True)
class CsvMapping:
    """How to read date, amount and description out of one CSV layout."""

    date_column: str
    description_column: str
    date_format: DateFormat = DateFormat.MDY_SLASH
    amount_mode: AmountMode = AmountMode.SIGNED
    amount_column: str = ""
    inflow_column: str = ""
    outflow_column: str = ""
    has_header_row: bool = True

    def required_columns(self) -> list[tuple[str, str]]:
        """(label, column) pairs the active amount mode needs."""
        required = [("date", self.date_column), ("description", self.description_column)]
        if self.amount_mode == AmountMode.SIGNED:
            required.append(("amount", self.amount_column))
        else:
            required.append(("inflow", self.inflow_column))
            required.append(("outflow", self.outflow_column))
        return required

    def problems(self) -> list[str]:
        return [
            f"Missing mapping for {label} column"
            for label, column in self.required_columns()
            if not column or not column.strip()
        ]

    def validate(self) -> "CsvMapping":
        """Raise InvalidMappingError unless every required column is set."""
        problems = self.problems()
        if problems:
            raise InvalidMappingError(problems)
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CsvMapping":
        """Build a mapping from snake_case or camelCase keys."""
        fields: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if name in cls.__dataclass_fields__:
                fields[name] = value
        missing = [f for f in ("date_column", "description_column") if f not in fields]
        if missing:
            raise InvalidMappingError([f"Missing mapping for {m.split('_')[0]} column" for m in missing])

        try:
            fields["date_format"] = DateFormat(fields.get("date_format", DateFormat.MDY_SLASH))
        except ValueError:
            allowed = ", ".join(f.value for f in DateFormat)
            raise InvalidMappingError(
                [f"Unsupported date format {fields['date_format']!r} (expected one of {allowed})"]
            ) from None
        try:
            fields["amount_mode"] = AmountMode(fields.get("amount_mode", AmountMode.SIGNED))
        except ValueError:
            raise InvalidMappingError(
                [f"Unsupported amount mode {fields['amount_mode']!r}"]
            ) from None

        for name in ("date_column", "description_column", "amount_column",
                     "inflow_column", "outflow_column"):
            fields[name] = "" if fields.get(name) is None else str(fields.get(name, ""))
        fields["has_header_row"] = bool(fields.get("has_header_row", True))
        return cls(**fields)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["date_format"] = self.date_format.value
        data["amount_mode"] = self.amount_mode.value
        return data
