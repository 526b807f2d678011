from __future__ import annotations

import base64
import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Protocol

import requests

from rfq_builder.config import Settings
from rfq_builder.normalization_profile import RFQ_PROFILE, NormalizationProfile
from schemas.rfq_schema import ITEM_NUMBER_KEYS, ITEM_TEXT_KEYS, PARTY_KEYS, RfqDocument

_LOGGER = logging.getLogger(__name__)


class ExtractionError(RuntimeError):
    def __init__(self, message: str, code: str = "extraction_failed") -> None:
        super().__init__(message)
        self.code = code


_MIME_BY_SUFFIX = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}


def _mime_for_path(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in _MIME_BY_SUFFIX:
        raise ExtractionError(f"Unsupported file extension: {suffix}", code="unsupported_type")
    return _MIME_BY_SUFFIX[suffix]


@dataclass(frozen=True)
class SourceDocument:
    filename: str
    mime_type: str
    content: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> "SourceDocument":
        file_path = Path(path)
        if not file_path.exists():
            raise ExtractionError(f"File not found: {file_path}", code="file_not_found")
        return cls(filename=file_path.name, mime_type=_mime_for_path(file_path), content=file_path.read_bytes())

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def check_upload(
    source: SourceDocument,
    *,
    max_bytes: int = 15 * 1024 * 1024,
    allowed_mime_types: tuple[str, ...] = tuple(_MIME_BY_SUFFIX.values()),
) -> None:
    if not source.content:
        raise ExtractionError("The uploaded file is empty", code="empty_file")
    if len(source.content) > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ExtractionError(f"The uploaded file exceeds the {limit_mb:g} MB limit", code="file_too_large")
    if source.mime_type.lower() not in allowed_mime_types:
        raise ExtractionError(
            f"Unsupported format {source.mime_type}. Use PDF or images (png, jpg, webp, tiff).",
            code="unsupported_type",
        )


def read_upload(stream: BinaryIO, *, max_bytes: int) -> bytes:
    """Read at most ``max_bytes + 1`` bytes; the extra byte marks an oversized upload."""
    return stream.read(max_bytes + 1)


class VisionClient(Protocol):
    def extract_json(
        self,
        source: SourceDocument,
        model_name: str,
        prompt: str,
        schema: dict[str, Any] | None = None,
    ) -> str:
        """Return raw model text output intended to be valid JSON."""

    def complete_json(
        self,
        model_name: str,
        system_prompt: str,
        user_text: str,
        schema: dict[str, Any] | None = None,
    ) -> str:
        """Return a text-only completion intended to be valid JSON."""


SYSTEM_PROMPT = (
    "You turn supplier documents into structured requests for quotation. "
    "Follow the JSON schema exactly and return strict JSON only, no markdown or prose."
)

CORRECTIVE_PROMPT = (
    "Your previous output was invalid. Return only one valid JSON object "
    "that follows the schema, with no extra text."
)

ENRICHMENT_SYSTEM_PROMPT = (
    "You rewrite technical item descriptions for a request for quotation. "
    "For every input item return, under the same index, the fields item (short component name), "
    "brandManufacturer, model, application (one short sentence), voltageFrequency and "
    "referencePartNumber. Use '-' when a value is not stated and never invent data. "
    "All fields must be written in English."
)

ENRICHMENT_FIELDS: tuple[tuple[str, str], ...] = (
    ("item", "Item"),
    ("brandManufacturer", "Brand/Manufacturer"),
    ("model", "Model"),
    ("application", "Application"),
    ("voltageFrequency", "Voltage/Frequency"),
    ("referencePartNumber", "Reference Part No."),
)


def build_extraction_prompt(profile: NormalizationProfile = RFQ_PROFILE) -> str:
    defaults = ", ".join(f"{key}={value}" for key, value in profile.metadata_defaults.items())
    lines = [
        f"Analyse the attached document and extract the data needed for a {profile.title.lower()}.",
        "Fill every field of the JSON object. Use null when a value is missing.",
        "Focus on the requesting party or supplier and ignore references to end customers.",
    ]
    if not profile.has_totals:
        lines.append("Do not produce prices or monetary values.")
    if defaults:
        lines.append(f"Template defaults when information is missing: {defaults}.")
    return " ".join(lines)


def _nullable(kind: str | list[str] = "string") -> dict[str, Any]:
    kinds = [kind] if isinstance(kind, str) else list(kind)
    return {"type": [*kinds, "null"]}


def _strict_object(properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "object",
        "additionalProperties": False,
        "required": list(properties),
        "properties": properties,
    }


def build_extraction_json_schema(profile: NormalizationProfile = RFQ_PROFILE) -> dict[str, Any]:
    """Strict JSON schema for structured model output under ``profile``."""
    party = _strict_object({key: _nullable() for key in PARTY_KEYS})

    metadata_properties: dict[str, Any] = {block: party for block in profile.party_fields}
    metadata_properties.update({key: _nullable() for key in profile.metadata_fields})

    item_properties: dict[str, Any] = {"description": {"type": "string"}}
    item_properties.update({key: _nullable() for key in ITEM_TEXT_KEYS})
    item_properties.update(
        {key: _nullable(["number", "string"]) for key in ITEM_NUMBER_KEYS if key in profile.item_number_fields}
    )

    properties: dict[str, Any] = {
        "fullText": {"type": "string", "description": "Full text of the document"},
        "metadata": _strict_object(metadata_properties),
        "items": {"type": "array", "minItems": 1, "items": _strict_object(item_properties)},
        "remarks": _nullable(),
    }
    if profile.has_totals:
        properties["totals"] = _strict_object({key: _nullable(["number", "string"]) for key in profile.totals_fields})
    return _strict_object(properties)


ENRICHMENT_JSON_SCHEMA: dict[str, Any] = _strict_object(
    {
        "items": {
            "type": "array",
            "items": _strict_object(
                {
                    "index": {"type": "integer"},
                    "fields": _strict_object({key: _nullable() for key, _ in ENRICHMENT_FIELDS}),
                }
            ),
        }
    }
)


def parse_json_payload(raw_text: str) -> dict[str, Any]:
    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError:
        start = raw_text.find("{")
        end = raw_text.rfind("}")
        if start == -1 or end <= start:
            raise ExtractionError("Model returned invalid JSON", code="invalid_json") from None
        try:
            payload = json.loads(raw_text[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ExtractionError("Model returned invalid JSON", code="invalid_json") from exc
    if not isinstance(payload, dict):
        raise ExtractionError("Model output must be a JSON object", code="invalid_json_shape")
    return payload


def _response_format(schema: dict[str, Any] | None, name: str) -> dict[str, Any]:
    if schema is None:
        return {"type": "json_object"}
    return {"type": "json_schema", "json_schema": {"name": name, "strict": True, "schema": schema}}


class OpenAIVisionClient:
    """OpenAI chat completions client; also serves OpenAI-compatible gateways."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        provider_name: str = "OpenAI",
        default_headers: dict[str, str] | None = None,
    ) -> None:
        try:
            from openai import OpenAI, OpenAIError
        except ImportError as exc:
            raise RuntimeError("openai package is required for OpenAI extraction") from exc
        self.provider_name = provider_name
        self._api_errors: tuple[type[Exception], ...] = (OpenAIError,)
        self._client = OpenAI(api_key=api_key, base_url=base_url, default_headers=default_headers or {})

    def _attachment(self, source: SourceDocument) -> dict[str, Any]:
        if source.is_pdf:
            return {"type": "file", "file": {"filename": source.filename, "file_data": source.data_uri}}
        return {"type": "image_url", "image_url": {"url": source.data_uri, "detail": "high"}}

    def _complete(self, model_name: str, messages: list[dict[str, Any]], response_format: dict[str, Any]) -> str:
        try:
            response = self._client.chat.completions.create(
                model=model_name,
                temperature=0.1,
                response_format=response_format,
                messages=messages,
            )
        except self._api_errors as exc:
            raise ExtractionError(
                f"{self.provider_name} request failed: {exc}", code="provider_request_failed"
            ) from exc
        text = response.choices[0].message.content
        if not text:
            raise ExtractionError(f"{self.provider_name} returned empty response", code="empty_response")
        return text

    def extract_json(
        self,
        source: SourceDocument,
        model_name: str,
        prompt: str,
        schema: dict[str, Any] | None = None,
    ) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": [{"type": "text", "text": prompt}, self._attachment(source)]},
        ]
        return self._complete(model_name, messages, _response_format(schema, "rfq_extraction"))

    def complete_json(
        self,
        model_name: str,
        system_prompt: str,
        user_text: str,
        schema: dict[str, Any] | None = None,
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_text},
        ]
        return self._complete(model_name, messages, _response_format(schema, "rfq_item_enrichment"))


class MistralVisionClient:
    provider_name = "Mistral"

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key
        self._base_url = "https://api.mistral.ai/v1"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = requests.post(f"{self._base_url}/{endpoint}", headers=self._headers(), json=body, timeout=60)
        except requests.RequestException as exc:
            raise ExtractionError(f"Mistral {endpoint} request failed: {exc}", code="provider_request_failed") from exc
        if response.status_code >= 400:
            raise ExtractionError(
                f"Mistral {endpoint} failed with status {response.status_code}: {response.text[:300]}",
                code="provider_request_failed",
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExtractionError(f"Mistral {endpoint} returned a non-JSON body", code="provider_request_failed") from exc
        if not isinstance(payload, dict):
            raise ExtractionError(f"Mistral {endpoint} returned an unexpected body", code="provider_request_failed")
        return payload

    def _ocr_text(self, source: SourceDocument) -> str:
        doc_key = "document_url" if source.is_pdf else "image_url"
        payload = self._post(
            "ocr",
            {"model": "mistral-ocr-latest", "document": {"type": doc_key, doc_key: source.data_uri}},
        )
        chunks = [
            page["markdown"]
            for page in payload.get("pages", [])
            if isinstance(page.get("markdown"), str) and page["markdown"].strip()
        ]
        if not chunks:
            raise ExtractionError("Mistral OCR returned no text", code="empty_response")
        return "\n\n".join(chunks)

    def _chat(self, model_name: str, messages: list[dict[str, Any]]) -> str:
        payload = self._post(
            "chat/completions",
            {"model": model_name, "response_format": {"type": "json_object"}, "messages": messages},
        )
        choices = payload.get("choices", [])
        if not choices:
            raise ExtractionError("Mistral chat returned no choices", code="empty_response")
        content = choices[0].get("message", {}).get("content")
        if not isinstance(content, str) or not content.strip():
            raise ExtractionError("Mistral chat returned empty content", code="empty_response")
        return content

    def extract_json(
        self,
        source: SourceDocument,
        model_name: str,
        prompt: str,
        schema: dict[str, Any] | None = None,
    ) -> str:
        ocr_text = self._ocr_text(source)
        schema_hint = f"\n\nJSON schema:\n{json.dumps(schema)}" if schema else ""
        return self._chat(
            model_name,
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": f"{prompt}{schema_hint}\n\nExtract fields from this OCR text:\n{ocr_text}",
                },
            ],
        )

    def complete_json(
        self,
        model_name: str,
        system_prompt: str,
        user_text: str,
        schema: dict[str, Any] | None = None,
    ) -> str:
        schema_hint = f"\n\nJSON schema:\n{json.dumps(schema)}" if schema else ""
        return self._chat(
            model_name,
            [
                {"role": "system", "content": f"{system_prompt}{schema_hint}"},
                {"role": "user", "content": user_text},
            ],
        )


class MultiProviderVisionClient:
    def __init__(self, providers: list[tuple[str, VisionClient, str]]) -> None:
        self._providers = providers
        self._last_success = threading.local()

    @property
    def provider_name(self) -> str:
        """Provider that served the calling thread's latest request."""
        return getattr(self._last_success, "provider_name", "auto")

    def _first_success(self, call: Any) -> str:
        errors: list[str] = []
        for provider_name, client, provider_model in self._providers:
            try:
                text = call(client, provider_model)
            except Exception as exc:  # noqa: BLE001
                errors.append(f"{provider_name}: {exc}")
                continue
            self._last_success.provider_name = provider_name
            return text
        raise ExtractionError(
            "All configured providers failed: " + "; ".join(errors),
            code="all_providers_failed",
        )

    def extract_json(
        self,
        source: SourceDocument,
        model_name: str,
        prompt: str,
        schema: dict[str, Any] | None = None,
    ) -> str:
        return self._first_success(
            lambda client, provider_model: client.extract_json(source, provider_model or model_name, prompt, schema)
        )

    def complete_json(
        self,
        model_name: str,
        system_prompt: str,
        user_text: str,
        schema: dict[str, Any] | None = None,
    ) -> str:
        return self._first_success(
            lambda client, provider_model: client.complete_json(
                provider_model or model_name, system_prompt, user_text, schema
            )
        )


def _provider_model(provider: str, settings: Settings) -> str:
    if provider == "mistral":
        return os.getenv("MISTRAL_MODEL", "pixtral-large-latest")
    return settings.extraction_model


def _client_for_provider(provider: str) -> VisionClient | None:
    if provider == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        return OpenAIVisionClient(api_key=api_key) if api_key else None
    if provider == "mistral":
        api_key = os.getenv("MISTRAL_API_KEY")
        return MistralVisionClient(api_key=api_key) if api_key else None
    raise ExtractionError(f"Unsupported provider: {provider}", code="unsupported_provider")


def build_client(settings: Settings) -> tuple[VisionClient, str]:
    provider = settings.extraction_provider
    if provider == "auto":
        order = os.getenv("EXTRACTION_PROVIDER_ORDER", "openai,mistral").split(",")
        providers: list[tuple[str, VisionClient, str]] = []
        for name in [x.strip().lower() for x in order if x.strip()]:
            client = _client_for_provider(name)
            if client is None:
                continue
            providers.append((name, client, _provider_model(name, settings)))
        if not providers:
            raise ExtractionError(
                "No provider API key found for configured fallback chain",
                code="missing_api_key",
            )
        return MultiProviderVisionClient(providers), settings.extraction_model

    client = _client_for_provider(provider)
    if client is None:
        raise ExtractionError(
            f"Configure {provider.upper()}_API_KEY before processing documents",
            code="missing_api_key",
        )
    return client, _provider_model(provider, settings)


def extract_document(
    source: SourceDocument | str | Path,
    *,
    client: VisionClient,
    model_name: str,
    profile: NormalizationProfile = RFQ_PROFILE,
) -> dict[str, Any]:
    """Run the extraction call, retrying once with a corrective prompt on bad JSON."""
    document = source if isinstance(source, SourceDocument) else SourceDocument.from_path(source)
    schema = build_extraction_json_schema(profile)

    first_text = client.extract_json(document, model_name, build_extraction_prompt(profile), schema)
    try:
        return parse_json_payload(first_text)
    except ExtractionError as exc:
        if exc.code not in {"invalid_json", "invalid_json_shape"}:
            raise
        _LOGGER.warning("Extraction output for %s was not valid JSON, retrying", document.filename)

    corrective_text = client.extract_json(document, model_name, CORRECTIVE_PROMPT, schema)
    return parse_json_payload(corrective_text)


def format_rich_description(fields: dict[str, Any]) -> str:
    lines = []
    for key, label in ENRICHMENT_FIELDS:
        value = fields.get(key)
        text = value.strip() if isinstance(value, str) and value.strip() else "-"
        lines.append(f"{label}: {text}")
    return "\n".join(lines)


def enrich_item_descriptions(document: RfqDocument, *, client: VisionClient, model_name: str) -> RfqDocument:
    """Attach a structured long-form description to each item.

    Enrichment is best effort: any failure leaves the document unchanged.
    """
    entries = [{"index": index, "description": item.description} for index, item in enumerate(document.items)]
    try:
        text = client.complete_json(
            model_name,
            ENRICHMENT_SYSTEM_PROMPT,
            json.dumps({"items": entries}, indent=2),
            ENRICHMENT_JSON_SCHEMA,
        )
        payload = parse_json_payload(text)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.warning("Item description enrichment failed: %s", exc)
        return document

    items = list(document.items)
    enriched = payload.get("items")
    for entry in enriched if isinstance(enriched, list) else []:
        if not isinstance(entry, dict):
            continue
        index = entry.get("index")
        fields = entry.get("fields")
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(items):
            continue
        if not isinstance(fields, dict):
            continue
        items[index] = items[index].model_copy(update={"rich_description": format_rich_description(fields)})
    return document.model_copy(update={"items": items})
