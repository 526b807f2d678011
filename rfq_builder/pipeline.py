from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any
from uuid import uuid4

from rfq_builder.branding import BrandingProfile
from rfq_builder.extraction_service import (
    SourceDocument,
    VisionClient,
    enrich_item_descriptions,
    extract_document,
)
from rfq_builder.logger import log_document_event
from rfq_builder.normalization_engine import DocumentNormalizer, NormalizationResult
from rfq_builder.pdf_renderer import build_pdf_filename, render_document_pdf
from schemas.rfq_schema import RfqDocument, serialize_document

_LOGGER = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _log_result(result: NormalizationResult, *, document_id: str, stage: str, profile: str, started: float) -> None:
    for warning in result.warnings:
        _LOGGER.warning(warning["message"], extra={"document_id": document_id, "stage": stage})
    log_document_event(
        _LOGGER,
        logging.INFO if result.ok else logging.WARNING,
        "Normalization finished" if result.ok else f"Normalization failed: {result.message}",
        document_id=document_id,
        stage=stage,
        profile=profile,
        latency_ms=_elapsed_ms(started),
        outcome="success" if result.ok else "validation_failed",
        violation_count=len(result.violations),
    )


def process_document(
    source: SourceDocument,
    *,
    client: VisionClient,
    normalizer: DocumentNormalizer,
    model_name: str,
    enrich: bool = True,
    document_id: str | None = None,
) -> NormalizationResult:
    """Extract, normalize and optionally enrich one uploaded document."""
    document_id = document_id or str(uuid4())
    profile = normalizer.profile.name
    started = time.monotonic()

    raw = extract_document(source, client=client, model_name=model_name, profile=normalizer.profile)
    log_document_event(
        _LOGGER,
        logging.INFO,
        f"Extracted {source.filename} with {getattr(client, 'provider_name', 'unknown')}",
        document_id=document_id,
        stage="extraction",
        profile=profile,
        latency_ms=_elapsed_ms(started),
        outcome="success",
    )

    result = normalizer.validate(raw)
    _log_result(result, document_id=document_id, stage="normalization", profile=profile, started=started)
    if not result.ok or not enrich:
        return result

    enriched = enrich_item_descriptions(result.unwrap(), client=client, model_name=model_name)
    final = normalizer.validate(serialize_document(enriched))
    return NormalizationResult(document=final.document, violations=final.violations, warnings=result.warnings)


def render_document(
    raw: Any,
    *,
    normalizer: DocumentNormalizer,
    brand: BrandingProfile,
    reviewer: str | None = None,
    assets_dir: str | Path | None = None,
    document_id: str | None = None,
) -> tuple[RfqDocument, bytes, str]:
    """Re-validate a reviewed document and render it as a PDF.

    Raises DocumentValidationError when the reviewed payload broke an invariant.
    """
    document_id = document_id or str(uuid4())
    started = time.monotonic()
    result = normalizer.validate(raw)
    _log_result(result, document_id=document_id, stage="render_validation", profile=normalizer.profile.name, started=started)
    document = result.unwrap()

    pdf_bytes = render_document_pdf(
        document,
        brand,
        profile=normalizer.profile,
        reviewer=reviewer,
        assets_dir=assets_dir,
    )
    log_document_event(
        _LOGGER,
        logging.INFO,
        f"Rendered PDF ({len(pdf_bytes)} bytes)",
        document_id=document_id,
        stage="render",
        profile=normalizer.profile.name,
        latency_ms=_elapsed_ms(started),
        outcome="success",
    )
    return document, pdf_bytes, build_pdf_filename(document, normalizer.profile)
