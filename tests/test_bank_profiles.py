"""Tests for bank profiles and CsvMapping configuration."""

import dataclasses
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
import yaml

from bookset_import.lib.bank_profiles import BankProfile, default_registry
from bookset_import.lib.errors import InvalidMappingError, UnknownProfileError
from bookset_import.lib.mapping import AmountMode, CsvMapping
from bookset_import.lib.normalizers import DateFormat


def test_builtin_profiles():
    registry = default_registry()
    assert registry.names() == ["CHASE_CHECKING", "AMEX", "BANK_OF_AMERICA", "WELLS_FARGO"]

    amex = registry.get("AMEX")
    assert amex.amount_mode == AmountMode.SEPARATE
    assert amex.inflow_column == "Credits"
    assert amex.outflow_column == "Charges"

    chase = registry.get("CHASE_CHECKING")
    assert chase.date_column == "Posting Date"
    assert chase.date_format == DateFormat.MDY_SLASH


def test_lookup_is_case_sensitive():
    registry = default_registry()
    assert registry.get("amex") is None
    assert "AMEX" in registry
    with pytest.raises(UnknownProfileError):
        registry.require("amex")


def test_profiles_are_immutable():
    mapping = default_registry().get("AMEX")
    with pytest.raises(dataclasses.FrozenInstanceError):
        mapping.date_column = "Other"


def test_registries_are_independent():
    base = default_registry()
    extra = BankProfile("CREDIT_UNION", CsvMapping(date_column="D", description_column="M", amount_column="A"))
    extended = base.with_profiles([extra])
    assert "CREDIT_UNION" in extended
    assert "CREDIT_UNION" not in base
    assert "CREDIT_UNION" not in default_registry()


def test_load_profiles_from_yaml_directory():
    with TemporaryDirectory() as tmp:
        profiles_dir = Path(tmp)
        with open(profiles_dir / "first_tech.yaml", "w") as f:
            yaml.dump(
                {
                    "name": "FIRST_TECH",
                    "mapping": {
                        "dateColumn": "Posting Date",
                        "descriptionColumn": "Description",
                        "amountMode": "separate",
                        "inflowColumn": "Credit",
                        "outflowColumn": "Debit",
                        "dateFormat": "yyyy-MM-dd",
                    },
                },
                f,
            )
        registry = default_registry(profiles_dir)

    mapping = registry.require("FIRST_TECH")
    assert mapping.amount_mode == AmountMode.SEPARATE
    assert mapping.date_format == DateFormat.ISO
    assert mapping.has_header_row is True
    assert len(registry) == 5


def test_yaml_profile_with_incomplete_mapping_rejected():
    with TemporaryDirectory() as tmp:
        path = Path(tmp) / "broken.yaml"
        with open(path, "w") as f:
            yaml.dump({"mapping": {"date_column": "Date", "description_column": "Memo"}}, f)
        with pytest.raises(InvalidMappingError) as exc:
            BankProfile.load(path)
    assert "Missing mapping for amount column" in str(exc.value)


def test_mapping_validate():
    mapping = CsvMapping(
        date_column="Date",
        description_column="Memo",
        amount_mode=AmountMode.SEPARATE,
        inflow_column="In",
    )
    with pytest.raises(InvalidMappingError) as exc:
        mapping.validate()
    assert exc.value.problems == ["Missing mapping for outflow column"]


def test_mapping_from_dict_rejects_unknown_format():
    with pytest.raises(InvalidMappingError):
        CsvMapping.from_dict({"date_column": "D", "description_column": "M", "date_format": "dd.MM.yyyy"})


def test_mapping_round_trips_through_dict():
    mapping = default_registry().require("AMEX")
    assert CsvMapping.from_dict(mapping.to_dict()) == mapping
