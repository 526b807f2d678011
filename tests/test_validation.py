from __future__ import annotations

from typing import Any

from rfq_builder.normalization_engine import DocumentNormalizer, normalize_document
from rfq_builder.normalization_profile import QUOTATION_PROFILE
from rfq_builder.validation import evaluate_business_rules


def _quotation(**totals: Any) -> dict[str, Any]:
    return {
        "fullText": "Quotation",
        "metadata": {"quoteNumber": "Q-1"},
        "items": [
            {"description": "Valve", "quantity": 2, "unitPrice": "10,50", "totalPrice": "21,00"},
            {"description": "Gasket", "quantity": "4", "unitPrice": "1.25", "totalPrice": "5.00"},
        ],
        "totals": totals,
    }


def test_consistent_quotation_has_no_findings() -> None:
    result = DocumentNormalizer(QUOTATION_PROFILE).validate(
        _quotation(subtotal="26.00", tax="5.46", discount=0, total="31.46")
    )
    assert result.ok
    assert result.warnings == ()


def test_business_rules_detect_line_subtotal_and_total_mismatches() -> None:
    raw = _quotation(subtotal="30.00", tax="5.00", discount="1.00", total="40.00")
    raw["items"][1]["totalPrice"] = "6.00"
    result = DocumentNormalizer(QUOTATION_PROFILE).validate(raw)

    assert result.ok
    codes = {w["code"] for w in result.warnings}
    assert codes == {"line_total_mismatch", "subtotal_mismatch", "amount_mismatch"}
    assert all(w["severity"] == "warning" for w in result.warnings)
    line = next(w for w in result.warnings if w["code"] == "line_total_mismatch")
    assert line["field"] == "items[1].totalPrice"
    assert line["expected_total"] == 5.0


def test_subtotal_check_skipped_when_a_line_total_is_missing() -> None:
    raw = _quotation(subtotal="99.00")
    raw["items"][0]["totalPrice"] = None
    document = DocumentNormalizer(QUOTATION_PROFILE).normalize(raw)
    assert evaluate_business_rules(document) == []


def test_rfq_documents_have_no_price_rules() -> None:
    document = normalize_document({"fullText": "x", "items": [{"description": "Valve", "quantity": 1}]})
    assert evaluate_business_rules(document) == []
