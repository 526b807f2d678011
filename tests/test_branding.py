from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from rfq_builder.branding import (
    DEFAULT_COMPANY_PROFILES,
    BrandingOverride,
    get_company_profile,
    load_company_profiles,
    merge_branding,
)


def test_default_company_profiles() -> None:
    assert [profile.id for profile in DEFAULT_COMPANY_PROFILES] == ["sos", "dle", "dug"]
    assert load_company_profiles() is DEFAULT_COMPANY_PROFILES


def test_get_company_profile_falls_back_to_first() -> None:
    assert get_company_profile(DEFAULT_COMPANY_PROFILES, "dug").id == "dug"
    assert get_company_profile(DEFAULT_COMPANY_PROFILES, "unknown").id == "sos"
    assert get_company_profile(DEFAULT_COMPANY_PROFILES, None).id == "sos"


def test_merge_branding_applies_only_given_fields() -> None:
    base = DEFAULT_COMPANY_PROFILES[1].branding
    merged = merge_branding(base, {"companyName": "Delta Branch", "contactLines": ["Tel: 1"]})
    assert merged.company_name == "Delta Branch"
    assert merged.contact_lines == ["Tel: 1"]
    assert merged.address_lines == base.address_lines
    assert merged.primary_color == base.primary_color

    assert merge_branding(base, None) is base
    assert merge_branding(base, BrandingOverride(accent_color="#000000")).accent_color == "#000000"


def test_load_company_profiles_from_file(tmp_path: Path) -> None:
    path = tmp_path / "companies.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "acme",
                    "label": "ACME",
                    "branding": {
                        "companyName": "ACME Ltd",
                        "addressLines": ["1 Main St"],
                        "contactLines": [],
                        "logoRelativePath": "branding/acme.png",
                    },
                    "supplier": {"companyName": "ACME Ltd", "taxId": "X1"},
                }
            ]
        ),
        encoding="utf-8",
    )
    profiles = load_company_profiles(path)
    assert len(profiles) == 1
    assert profiles[0].branding.primary_color == "#1f2937"
    assert profiles[0].supplier.tax_id == "X1"


def test_load_company_profiles_rejects_bad_files(tmp_path: Path) -> None:
    empty = tmp_path / "empty.json"
    empty.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError, match="non-empty JSON list"):
        load_company_profiles(empty)

    incomplete = tmp_path / "incomplete.json"
    incomplete.write_text(json.dumps([{"id": "x"}]), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_company_profiles(incomplete)
