from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from schemas.rfq_schema import ITEM_NUMBER_KEYS, METADATA_TEXT_KEYS, PARTY_BLOCKS, TOTALS_KEYS


@dataclass(frozen=True)
class NormalizationProfile:
    """Field table and business-term defaults for one document variant.

    Profiles are plain values handed to ``DocumentNormalizer``; a tenant with
    different default terms gets its own profile instead of patching globals.
    """

    name: str
    title: str
    identifier_field: str
    metadata_fields: tuple[str, ...]
    metadata_defaults: dict[str, str] = field(default_factory=dict)
    party_fields: tuple[str, ...] = ("supplier",)
    item_number_fields: tuple[str, ...] = ("quantity",)
    totals_fields: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Profile name must not be blank")
        _check_known("metadata field", self.metadata_fields, METADATA_TEXT_KEYS)
        _check_known("party block", self.party_fields, PARTY_BLOCKS)
        _check_known("item number field", self.item_number_fields, ITEM_NUMBER_KEYS)
        _check_known("totals field", self.totals_fields, TOTALS_KEYS)
        if "quantity" not in self.item_number_fields:
            raise ValueError("item_number_fields must include quantity")
        if self.identifier_field not in self.metadata_fields:
            raise ValueError(f"identifier_field {self.identifier_field!r} is not a metadata field")
        for key, default in self.metadata_defaults.items():
            if key not in self.metadata_fields:
                raise ValueError(f"Default given for unselected metadata field: {key}")
            if not isinstance(default, str) or not default.strip():
                raise ValueError(f"Default for {key} must be non-blank text")

    @property
    def has_totals(self) -> bool:
        return bool(self.totals_fields)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "NormalizationProfile":
        base_name = payload.get("extends")
        base = get_profile(str(base_name)) if base_name else None

        def pick(key: str, fallback: Any) -> Any:
            if key in payload:
                return payload[key]
            return getattr(base, key) if base is not None else fallback

        defaults = dict(base.metadata_defaults) if base is not None else {}
        defaults.update(payload.get("metadata_defaults", {}))
        return cls(
            name=str(pick("name", "")),
            title=str(pick("title", "Request for Quotation")),
            identifier_field=str(pick("identifier_field", "rfqNumber")),
            metadata_fields=tuple(pick("metadata_fields", ())),
            metadata_defaults=defaults,
            party_fields=tuple(pick("party_fields", ("supplier",))),
            item_number_fields=tuple(pick("item_number_fields", ("quantity",))),
            totals_fields=tuple(pick("totals_fields", ())),
        )

    @classmethod
    def from_path(cls, path: str | Path) -> "NormalizationProfile":
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Profile file must contain a JSON object: {path}")
        return cls.from_dict(payload)


def _check_known(kind: str, values: tuple[str, ...], known: tuple[str, ...]) -> None:
    unknown = [value for value in values if value not in known]
    if unknown:
        raise ValueError(f"Unknown {kind}(s): {', '.join(unknown)}")


RFQ_PROFILE = NormalizationProfile(
    name="rfq",
    title="Request for Quotation",
    identifier_field="rfqNumber",
    metadata_fields=(
        "rfqNumber",
        "issueDate",
        "dueDate",
        "subject",
        "packing",
        "deliveryTerms",
        "currency",
        "paymentTerms",
        "guarantees",
        "origin",
        "packingRequirements",
        "accessoriesInclusions",
    ),
    metadata_defaults={
        "packing": "Export seaworthy",
        "deliveryTerms": "Your best",
        "currency": "EUR/USD",
        "paymentTerms": "To be agreed",
        "guarantees": "12/18 months",
        "origin": "TBA",
    },
)

QUOTATION_PROFILE = NormalizationProfile(
    name="quotation",
    title="Quotation",
    identifier_field="quoteNumber",
    metadata_fields=(
        "quoteNumber",
        "rfqNumber",
        "issueDate",
        "validUntil",
        "subject",
        "deliveryTerms",
        "currency",
        "paymentTerms",
        "guarantees",
        "origin",
        "leadTime",
    ),
    metadata_defaults={
        "deliveryTerms": "Your best",
        "currency": "EUR/USD",
        "paymentTerms": "To be agreed",
        "guarantees": "12/18 months",
        "origin": "TBA",
        "leadTime": "To be confirmed",
    },
    party_fields=("supplier", "customer"),
    item_number_fields=("quantity", "unitPrice", "totalPrice"),
    totals_fields=("subtotal", "tax", "discount", "total"),
)

BUILTIN_PROFILES: dict[str, NormalizationProfile] = {
    RFQ_PROFILE.name: RFQ_PROFILE,
    QUOTATION_PROFILE.name: QUOTATION_PROFILE,
}


def get_profile(name: str) -> NormalizationProfile:
    normalized = name.strip().lower()
    if normalized not in BUILTIN_PROFILES:
        raise ValueError(f"Unknown normalization profile: {name}")
    return BUILTIN_PROFILES[normalized]


def load_profile(name: str, path: str | Path | None = None) -> NormalizationProfile:
    if path:
        return NormalizationProfile.from_path(path)
    return get_profile(name)
