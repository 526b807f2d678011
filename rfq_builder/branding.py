from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from schemas.rfq_schema import Party


class BrandingProfile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    company_name: str
    address_lines: list[str]
    contact_lines: list[str]
    logo_relative_path: str
    primary_color: str = "#1f2937"
    accent_color: str = "#2563eb"


class BrandingOverride(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    company_name: str | None = None
    address_lines: list[str] | None = None
    contact_lines: list[str] | None = None
    logo_relative_path: str | None = None
    primary_color: str | None = None
    accent_color: str | None = None


class CompanyProfile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    label: str
    branding: BrandingProfile
    supplier: Party


DEFAULT_BRANDING = BrandingProfile(
    company_name="Your Company Ltd.",
    address_lines=["Example Street 123", "City, Country"],
    contact_lines=["Tel: +00 123 456 789", "sales@example.com"],
    logo_relative_path="branding/logo.png",
)

# Logos live under the assets directory (``public/`` by default).
DEFAULT_COMPANY_PROFILES: tuple[CompanyProfile, ...] = (
    CompanyProfile(
        id="sos",
        label="SOS - Superb Oil Stream",
        branding=BrandingProfile(
            company_name="Superb Oil Stream Ltd",
            address_lines=["Ferris Building No.1", "Floor 1, Triq San Luqa", "G'Mangia Pieta, PTA 1020", "Malta"],
            contact_lines=["Tel: +356 20100800", "info@superboilstream.com", "https://superboilstream.com"],
            logo_relative_path="branding/sos-logo.png",
            primary_color="#0b2c52",
            accent_color="#f97316",
        ),
        supplier=Party(
            company_name="Superb Oil Stream Ltd",
            address="Ferris Building No.1, Floor 1, Triq San Luqa, G'Mangia Pieta, PTA 1020, Malta",
            phone="+356 20100800",
            email="info@superboilstream.com",
            website="https://superboilstream.com",
            tax_id="C52977",
        ),
    ),
    CompanyProfile(
        id="dle",
        label="DLE - Delta FZ LLE",
        branding=BrandingProfile(
            company_name="Delta FZ LLE",
            address_lines=["Office 1309, 13th Floor", "Fujairah - Creative Tower", "P.O.Box 4422", "United Arab Emirates"],
            contact_lines=["Tel: +971 9 2077666", "info@deltaunited.me", "https://deltaunited.me"],
            logo_relative_path="branding/dle-logo.png",
            primary_color="#1f2937",
            accent_color="#10b981",
        ),
        supplier=Party(
            company_name="Delta FZ LLE",
            address="Office 1309, 13th Floor, Fujairah - Creative Tower, P.O.Box 4422, UAE",
            phone="+971 9 2077666",
            email="info@deltaunited.me",
            website="https://deltaunited.me",
            tax_id="14596/2019",
        ),
    ),
    CompanyProfile(
        id="dug",
        label="DUG - Delta United Group",
        branding=BrandingProfile(
            company_name="Delta United Group",
            address_lines=["Tajoura Al Andalusy", "Alshat road P.O Box 30694", "Tripoli, Libya"],
            contact_lines=["Tel: +218 218213698092", "info@deltaunited.me", "https://deltaunited.me"],
            logo_relative_path="branding/dug-logo.jpeg",
            primary_color="#0076a8",
            accent_color="#004f75",
        ),
        supplier=Party(
            company_name="Delta United Group",
            address="Tajoura Al Andalusy, Alshat road P.O Box 30694, Tripoli, Libya",
            phone="+218 218213698092",
            email="info@deltaunited.me",
            website="https://deltaunited.me",
        ),
    ),
)


def load_company_profiles(path: str | Path | None = None) -> tuple[CompanyProfile, ...]:
    if path is None:
        return DEFAULT_COMPANY_PROFILES
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, list) or not payload:
        raise ValueError(f"Company profiles file must contain a non-empty JSON list: {path}")
    return tuple(CompanyProfile.model_validate(entry) for entry in payload)


def get_company_profile(profiles: tuple[CompanyProfile, ...], company_id: str | None) -> CompanyProfile:
    """Return the profile with ``company_id``; the first profile is the default."""
    for profile in profiles:
        if profile.id == company_id:
            return profile
    return profiles[0]


def merge_branding(base: BrandingProfile, overrides: BrandingOverride | dict[str, Any] | None) -> BrandingProfile:
    if overrides is None:
        return base
    if isinstance(overrides, dict):
        overrides = BrandingOverride.model_validate(overrides)
    update = overrides.model_dump(exclude_none=True)
    return base.model_copy(update=update)
