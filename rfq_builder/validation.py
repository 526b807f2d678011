from __future__ import annotations

from typing import Any

from schemas.rfq_schema import RfqDocument


def evaluate_business_rules(
    document: RfqDocument,
    *,
    amount_tolerance: float = 0.01,
) -> list[dict[str, Any]]:
    """Check price arithmetic of a quotation. Findings are warnings only."""
    if document.totals is None:
        return []

    violations: list[dict[str, Any]] = []
    for index, item in enumerate(document.items):
        if item.quantity is None or item.unit_price is None or item.total_price is None:
            continue
        expected = round(item.quantity * item.unit_price, 2)
        if abs(expected - round(item.total_price, 2)) > amount_tolerance:
            violations.append(
                {
                    "code": "line_total_mismatch",
                    "severity": "warning",
                    "field": f"items[{index}].totalPrice",
                    "message": f"items[{index}]: quantity x unitPrice does not match totalPrice",
                    "expected_total": expected,
                    "actual_total": item.total_price,
                }
            )

    totals = document.totals
    line_totals = [item.total_price for item in document.items]
    if totals.subtotal is not None and all(value is not None for value in line_totals):
        line_sum = round(sum(value for value in line_totals if value is not None), 2)
        if abs(line_sum - round(totals.subtotal, 2)) > amount_tolerance:
            violations.append(
                {
                    "code": "subtotal_mismatch",
                    "severity": "warning",
                    "field": "totals.subtotal",
                    "message": "sum(items.totalPrice) does not match subtotal",
                    "expected_subtotal": line_sum,
                    "actual_subtotal": totals.subtotal,
                }
            )

    if totals.subtotal is not None and totals.total is not None:
        computed = round(totals.subtotal + (totals.tax or 0.0) - (totals.discount or 0.0), 2)
        if abs(computed - round(totals.total, 2)) > amount_tolerance:
            violations.append(
                {
                    "code": "amount_mismatch",
                    "severity": "warning",
                    "field": "totals.total",
                    "message": "subtotal + tax - discount does not match total",
                    "expected_total": computed,
                    "actual_total": totals.total,
                }
            )

    return violations
