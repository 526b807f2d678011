from __future__ import annotations

import logging
from typing import Any

from fastapi import Body, FastAPI, File, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from rfq_builder.branding import (
    BrandingOverride,
    CompanyProfile,
    get_company_profile,
    load_company_profiles,
    merge_branding,
)
from rfq_builder.config import Settings
from rfq_builder.errors import DocumentValidationError, PDFGenerationError
from rfq_builder.extraction_service import (
    ExtractionError,
    SourceDocument,
    VisionClient,
    build_client,
    check_upload,
    read_upload,
)
from rfq_builder.normalization_engine import DocumentNormalizer
from rfq_builder.normalization_profile import load_profile
from rfq_builder.pipeline import process_document, render_document
from schemas.rfq_schema import serialize_document

_LOGGER = logging.getLogger(__name__)

_UPLOAD_ERROR_CODES = {"empty_file", "file_too_large", "unsupported_type"}


class RenderRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    quote: Any
    brand: BrandingOverride | None = None
    company_id: str | None = None
    reviewer: str | None = None


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def create_app(
    settings: Settings | None = None,
    *,
    client: VisionClient | None = None,
    model_name: str | None = None,
    normalizer: DocumentNormalizer | None = None,
    company_profiles: tuple[CompanyProfile, ...] | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    normalizer = normalizer or DocumentNormalizer(
        load_profile(settings.normalization_profile, settings.normalization_profile_path)
    )
    profiles = company_profiles or load_company_profiles(settings.company_profiles_path)

    app = FastAPI(title="RFQ Builder API", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "profile": normalizer.profile.name}

    @app.get("/company-profiles")
    def company_profiles_list() -> list[dict[str, Any]]:
        return [profile.model_dump(mode="json", by_alias=True) for profile in profiles]

    @app.post("/process-quote")
    def process_quote(file: UploadFile = File(...)) -> Any:
        source = SourceDocument(
            filename=file.filename or "document",
            mime_type=file.content_type or "application/octet-stream",
            content=read_upload(file.file, max_bytes=settings.max_upload_bytes),
        )
        try:
            check_upload(
                source,
                max_bytes=settings.max_upload_bytes,
                allowed_mime_types=settings.allowed_mime_types,
            )
            if client is not None:
                active_client, active_model = client, model_name or settings.extraction_model
            else:
                active_client, active_model = build_client(settings)
            result = process_document(
                source,
                client=active_client,
                normalizer=normalizer,
                model_name=active_model,
                enrich=settings.enrich_item_descriptions,
            )
        except ExtractionError as exc:
            if exc.code in _UPLOAD_ERROR_CODES:
                return _error(str(exc), 400, code=exc.code)
            _LOGGER.exception("Extraction failed for %s", source.filename)
            status = 500 if exc.code == "missing_api_key" else 502
            return _error(str(exc), status, code=exc.code)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("Pipeline failed for %s", source.filename)
            status = getattr(exc, "status_code", None)
            return _error(str(exc) or "Unknown error", status if isinstance(status, int) else 500)

        if not result.ok:
            return _error(result.message, 422, violations=list(result.violations))
        return {"data": serialize_document(result.unwrap()), "warnings": list(result.warnings)}

    @app.post("/render-quote")
    def render_quote(payload: dict[str, Any] = Body(...)) -> Any:
        try:
            request = RenderRequest.model_validate(payload)
        except ValidationError:
            return _error("Invalid request", 400)

        company = get_company_profile(profiles, request.company_id or settings.default_company_id)
        brand = merge_branding(company.branding, request.brand)
        try:
            _, pdf_bytes, filename = render_document(
                request.quote,
                normalizer=normalizer,
                brand=brand,
                reviewer=request.reviewer,
                assets_dir=settings.assets_dir,
            )
        except DocumentValidationError as exc:
            return _error(str(exc), 422, violations=exc.violations)
        except PDFGenerationError as exc:
            _LOGGER.exception("PDF generation failed")
            return _error(str(exc), 500)

        return Response(
            content=pdf_bytes,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app
