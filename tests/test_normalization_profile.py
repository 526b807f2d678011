from __future__ import annotations

import json
from pathlib import Path

import pytest

from rfq_builder.normalization_profile import (
    QUOTATION_PROFILE,
    RFQ_PROFILE,
    NormalizationProfile,
    get_profile,
    load_profile,
)


def test_get_profile_returns_builtins_case_insensitively() -> None:
    assert get_profile("RFQ") is RFQ_PROFILE
    assert get_profile(" quotation ") is QUOTATION_PROFILE
    assert QUOTATION_PROFILE.has_totals
    assert not RFQ_PROFILE.has_totals


def test_get_profile_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Unknown normalization profile"):
        get_profile("invoice")


def test_from_dict_extends_a_builtin_and_overrides_defaults() -> None:
    profile = NormalizationProfile.from_dict(
        {"name": "tenant-a", "extends": "rfq", "metadata_defaults": {"currency": "USD"}}
    )
    assert profile.name == "tenant-a"
    assert profile.title == RFQ_PROFILE.title
    assert profile.metadata_fields == RFQ_PROFILE.metadata_fields
    assert profile.metadata_defaults["currency"] == "USD"
    assert profile.metadata_defaults["packing"] == "Export seaworthy"


@pytest.mark.parametrize(
    ("overrides", "error_fragment"),
    [
        ({"metadata_fields": ("rfqNumber", "colour")}, "Unknown metadata field"),
        ({"party_fields": ("buyer",)}, "Unknown party block"),
        ({"item_number_fields": ("weight",)}, "Unknown item number field"),
        ({"item_number_fields": ("unitPrice",)}, "must include quantity"),
        ({"totals_fields": ("shipping",)}, "Unknown totals field"),
        ({"identifier_field": "quoteNumber"}, "identifier_field"),
        ({"metadata_defaults": {"subject": "  "}}, "non-blank"),
        ({"metadata_defaults": {"leadTime": "2 weeks"}}, "unselected metadata field"),
        ({"name": " "}, "name"),
    ],
)
def test_profile_rejects_inconsistent_tables(overrides: dict, error_fragment: str) -> None:
    values = {
        "name": "custom",
        "title": "Request for Quotation",
        "identifier_field": "rfqNumber",
        "metadata_fields": ("rfqNumber", "subject", "currency"),
    }
    values.update(overrides)
    with pytest.raises(ValueError, match=error_fragment):
        NormalizationProfile(**values)


def test_from_path_and_load_profile(tmp_path: Path) -> None:
    path = tmp_path / "tenant.json"
    path.write_text(
        json.dumps(
            {
                "name": "tenant-c",
                "title": "Quotation",
                "identifier_field": "quoteNumber",
                "metadata_fields": ["quoteNumber", "currency"],
                "metadata_defaults": {"currency": "GBP"},
                "party_fields": ["supplier", "customer"],
                "item_number_fields": ["quantity", "unitPrice"],
                "totals_fields": ["total"],
            }
        ),
        encoding="utf-8",
    )
    profile = load_profile("rfq", path)
    assert profile.name == "tenant-c"
    assert profile.metadata_defaults == {"currency": "GBP"}
    assert profile.totals_fields == ("total",)
    assert load_profile("quotation") is QUOTATION_PROFILE


def test_from_path_rejects_non_object(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError, match="JSON object"):
        NormalizationProfile.from_path(path)
