from __future__ import annotations

import json
from typing import Any

import pytest

from rfq_builder.branding import DEFAULT_BRANDING
from rfq_builder.errors import DocumentValidationError
from rfq_builder.extraction_service import SourceDocument
from rfq_builder.normalization_engine import DocumentNormalizer
from rfq_builder.pipeline import process_document, render_document


class _FakeVisionClient:
    provider_name = "fake"

    def __init__(self, extraction: dict[str, Any], enrichment: dict[str, Any] | None = None) -> None:
        self._extraction = extraction
        self._enrichment = enrichment
        self.completion_calls = 0

    def extract_json(self, source: SourceDocument, model_name: str, prompt: str, schema: dict | None = None) -> str:
        return json.dumps(self._extraction)

    def complete_json(self, model_name: str, system_prompt: str, user_text: str, schema: dict | None = None) -> str:
        self.completion_calls += 1
        if self._enrichment is None:
            raise RuntimeError("enrichment unavailable")
        return json.dumps(self._enrichment)


def _source() -> SourceDocument:
    return SourceDocument(filename="rfq.pdf", mime_type="application/pdf", content=b"%PDF-1.4")


def _extraction() -> dict[str, Any]:
    return {
        "fullText": "Please quote",
        "metadata": {"rfqNumber": "RFQ-5", "currency": None},
        "items": [{"description": "Copeland compressor", "quantity": "2"}],
        "remarks": None,
    }


def test_process_document_normalizes_and_enriches() -> None:
    client = _FakeVisionClient(
        _extraction(),
        {"items": [{"index": 0, "fields": {"item": "Compressor", "brandManufacturer": "Copeland"}}]},
    )
    result = process_document(_source(), client=client, normalizer=DocumentNormalizer(), model_name="m", document_id="doc-1")

    assert result.ok
    document = result.unwrap()
    assert document.metadata.currency == "EUR/USD"
    assert document.items[0].quantity == 2.0
    assert document.items[0].rich_description is not None
    assert document.items[0].rich_description.startswith("Item: Compressor")


def test_process_document_without_enrichment_skips_completion_call() -> None:
    client = _FakeVisionClient(_extraction())
    result = process_document(_source(), client=client, normalizer=DocumentNormalizer(), model_name="m", enrich=False)
    assert result.ok
    assert client.completion_calls == 0
    assert result.unwrap().items[0].rich_description is None


def test_process_document_survives_failed_enrichment() -> None:
    client = _FakeVisionClient(_extraction())
    result = process_document(_source(), client=client, normalizer=DocumentNormalizer(), model_name="m")
    assert result.ok
    assert client.completion_calls == 1


def test_process_document_reports_violations_without_enriching() -> None:
    raw = _extraction()
    raw["items"] = [{"description": " "}]
    client = _FakeVisionClient(raw)
    result = process_document(_source(), client=client, normalizer=DocumentNormalizer(), model_name="m")
    assert not result.ok
    assert result.violations[0]["code"] == "missing_description"
    assert client.completion_calls == 0


def test_render_document_returns_pdf_and_filename() -> None:
    document, pdf_bytes, filename = render_document(
        _extraction(), normalizer=DocumentNormalizer(), brand=DEFAULT_BRANDING, reviewer="Ann"
    )
    assert document.metadata.rfq_number == "RFQ-5"
    assert pdf_bytes.startswith(b"%PDF")
    assert filename == "rfq-RFQ-5.pdf"


def test_render_document_rejects_invalid_payload() -> None:
    with pytest.raises(DocumentValidationError) as exc_info:
        render_document({"fullText": "", "items": []}, normalizer=DocumentNormalizer(), brand=DEFAULT_BRANDING)
    assert len(exc_info.value.violations) == 2
