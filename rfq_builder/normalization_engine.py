from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from rfq_builder.coercion import coerce_number, is_blank, normalize_text
from rfq_builder.errors import DocumentValidationError
from rfq_builder.normalization_profile import RFQ_PROFILE, NormalizationProfile
from rfq_builder.validation import evaluate_business_rules
from schemas.rfq_schema import ITEM_TEXT_KEYS, PARTY_KEYS, RfqDocument


@dataclass(frozen=True)
class NormalizationResult:
    document: RfqDocument | None
    violations: tuple[dict[str, Any], ...] = ()
    warnings: tuple[dict[str, Any], ...] = ()

    @property
    def ok(self) -> bool:
        return self.document is not None and not self.violations

    @property
    def message(self) -> str:
        return " | ".join(str(v["message"]) for v in self.violations)

    def unwrap(self) -> RfqDocument:
        if self.document is None or self.violations:
            raise DocumentValidationError(self.violations)
        return self.document


def _violation(code: str, field: str, message: str) -> dict[str, Any]:
    return {"code": code, "severity": "error", "field": field, "message": message}


def _warning(code: str, field: str, message: str) -> dict[str, Any]:
    return {"code": code, "severity": "warning", "field": field, "message": message}


class DocumentNormalizer:
    """Turn an untrusted extraction payload into a validated ``RfqDocument``.

    Hard invariants (document text, at least one item, item descriptions)
    are collected as violations and fail the whole call together. Blank
    optional fields and unreadable numbers degrade to None and are reported
    as warnings.
    """

    def __init__(self, profile: NormalizationProfile = RFQ_PROFILE, *, amount_tolerance: float = 0.01) -> None:
        self.profile = profile
        self.amount_tolerance = amount_tolerance

    def normalize(self, raw: Any) -> RfqDocument:
        return self.validate(raw).unwrap()

    def validate(self, raw: Any) -> NormalizationResult:
        violations: list[dict[str, Any]] = []
        warnings: list[dict[str, Any]] = []

        if not isinstance(raw, Mapping):
            violations.append(_violation("invalid_document", "$", "Document must be a JSON object"))
            return NormalizationResult(document=None, violations=tuple(violations))

        full_text = raw.get("fullText")
        if not isinstance(full_text, str) or not full_text.strip():
            violations.append(
                _violation("missing_full_text", "fullText", "Document text (fullText) is required")
            )

        metadata = self._normalize_metadata(raw.get("metadata"), violations, warnings)
        items = self._normalize_items(raw.get("items"), violations, warnings)
        remarks = self._text(raw.get("remarks"), "remarks", warnings)
        totals = self._normalize_totals(raw.get("totals"), warnings)

        if violations:
            return NormalizationResult(document=None, violations=tuple(violations), warnings=tuple(warnings))

        payload: dict[str, Any] = {
            "fullText": full_text,
            "metadata": metadata,
            "items": items,
            "remarks": remarks,
            "totals": totals,
        }
        try:
            document = RfqDocument.model_validate(payload)
        except ValidationError as exc:
            for error in exc.errors():
                location = ".".join(str(part) for part in error["loc"])
                violations.append(_violation("schema_violation", location, f"{location}: {error['msg']}"))
            return NormalizationResult(document=None, violations=tuple(violations), warnings=tuple(warnings))

        warnings.extend(evaluate_business_rules(document, amount_tolerance=self.amount_tolerance))
        return NormalizationResult(document=document, warnings=tuple(warnings))

    def _text(self, value: Any, field: str, warnings: list[dict[str, Any]]) -> str | None:
        result = normalize_text(value)
        if result is None and not is_blank(value):
            warnings.append(
                _warning("invalid_text", field, f"{field}: expected text, got {type(value).__name__}")
            )
        return result

    def _number(self, value: Any, field: str, warnings: list[dict[str, Any]]) -> float | None:
        result = coerce_number(value)
        if result is None and not is_blank(value):
            warnings.append(_warning("unparsable_number", field, f"{field}: could not read {value!r} as a number"))
        return result

    def _normalize_party(self, value: Any, field: str, warnings: list[dict[str, Any]]) -> dict[str, Any] | None:
        if value is None:
            return None
        if not isinstance(value, Mapping):
            warnings.append(_warning("invalid_party", field, f"{field}: expected an object, ignoring it"))
            return None
        return {key: self._text(value.get(key), f"{field}.{key}", warnings) for key in PARTY_KEYS}

    def _normalize_metadata(
        self,
        value: Any,
        violations: list[dict[str, Any]],
        warnings: list[dict[str, Any]],
    ) -> dict[str, Any]:
        if value is None:
            value = {}
        elif not isinstance(value, Mapping):
            violations.append(_violation("invalid_metadata", "metadata", "metadata must be an object"))
            value = {}

        metadata: dict[str, Any] = {}
        for block in self.profile.party_fields:
            metadata[block] = self._normalize_party(value.get(block), f"metadata.{block}", warnings)
        for key in self.profile.metadata_fields:
            text = self._text(value.get(key), f"metadata.{key}", warnings)
            metadata[key] = text if text is not None else self.profile.metadata_defaults.get(key)
        return metadata

    def _normalize_items(
        self,
        value: Any,
        violations: list[dict[str, Any]],
        warnings: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        if value is None:
            violations.append(
                _violation("missing_items", "items", "At least one item is required: the item list is missing")
            )
            return []
        if not isinstance(value, list):
            violations.append(_violation("invalid_items", "items", "items must be a list"))
            return []
        if not value:
            violations.append(
                _violation("empty_items", "items", "At least one item is required: the item list is empty")
            )
            return []

        items: list[dict[str, Any]] = []
        for index, raw_item in enumerate(value):
            prefix = f"items[{index}]"
            if not isinstance(raw_item, Mapping):
                violations.append(_violation("invalid_item", prefix, f"{prefix}: item must be an object"))
                continue

            description = normalize_text(raw_item.get("description"))
            if description is None:
                violations.append(
                    _violation(
                        "missing_description",
                        f"{prefix}.description",
                        f"{prefix}: item description is required",
                    )
                )
                continue

            item: dict[str, Any] = {"description": description}
            for key in ITEM_TEXT_KEYS:
                item[key] = self._text(raw_item.get(key), f"{prefix}.{key}", warnings)
            for key in self.profile.item_number_fields:
                item[key] = self._number(raw_item.get(key), f"{prefix}.{key}", warnings)
            items.append(item)
        return items

    def _normalize_totals(self, value: Any, warnings: list[dict[str, Any]]) -> dict[str, Any] | None:
        if not self.profile.has_totals:
            return None
        if value is None:
            value = {}
        elif not isinstance(value, Mapping):
            warnings.append(_warning("invalid_totals", "totals", "totals: expected an object, ignoring it"))
            value = {}
        return {key: self._number(value.get(key), f"totals.{key}", warnings) for key in self.profile.totals_fields}


def normalize_document(raw: Any, profile: NormalizationProfile = RFQ_PROFILE) -> RfqDocument:
    return DocumentNormalizer(profile).normalize(raw)
