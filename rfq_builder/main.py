from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from rfq_builder.branding import get_company_profile, load_company_profiles
from rfq_builder.config import Settings, load_dotenv
from rfq_builder.errors import DocumentValidationError, PDFGenerationError
from rfq_builder.extraction_service import ExtractionError, SourceDocument, build_client, check_upload
from rfq_builder.logger import configure_logging
from rfq_builder.normalization_engine import DocumentNormalizer
from rfq_builder.normalization_profile import load_profile
from rfq_builder.pipeline import process_document, render_document
from schemas.rfq_schema import serialize_document

_LOGGER = logging.getLogger(__name__)


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _write_json(payload: Any, output: str | None) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def _normalizer(settings: Settings, profile_name: str | None) -> DocumentNormalizer:
    if profile_name:
        return DocumentNormalizer(load_profile(profile_name))
    return DocumentNormalizer(load_profile(settings.normalization_profile, settings.normalization_profile_path))


def run_extract(settings: Settings, args: argparse.Namespace) -> int:
    normalizer = _normalizer(settings, args.profile)
    try:
        source = SourceDocument.from_path(args.file)
        check_upload(source, max_bytes=settings.max_upload_bytes, allowed_mime_types=settings.allowed_mime_types)
        client, model_name = build_client(settings)
        result = process_document(
            source,
            client=client,
            normalizer=normalizer,
            model_name=model_name,
            enrich=settings.enrich_item_descriptions and not args.no_enrich,
        )
    except ExtractionError as exc:
        _LOGGER.error("Extraction failed (%s): %s", exc.code, exc)
        return 1
    except OSError as exc:
        _LOGGER.error("Cannot read %s: %s", args.file, exc)
        return 1
    if not result.ok:
        _LOGGER.error("Extracted document is invalid: %s", result.message)
        return 1
    _write_json(serialize_document(result.unwrap()), args.output)
    return 0


def run_normalize(settings: Settings, args: argparse.Namespace) -> int:
    normalizer = _normalizer(settings, args.profile)
    try:
        raw = _read_json(args.input)
    except (OSError, ValueError) as exc:
        _LOGGER.error("Cannot read %s: %s", args.input, exc)
        return 1
    result = normalizer.validate(raw)
    for warning in result.warnings:
        _LOGGER.warning(warning["message"])
    if not result.ok:
        _LOGGER.error("Document is invalid: %s", result.message)
        return 1
    _write_json(serialize_document(result.unwrap()), args.output)
    return 0


def run_render(settings: Settings, args: argparse.Namespace) -> int:
    normalizer = _normalizer(settings, args.profile)
    profiles = load_company_profiles(settings.company_profiles_path)
    company = get_company_profile(profiles, args.company or settings.default_company_id)
    try:
        raw = _read_json(args.input)
    except (OSError, ValueError) as exc:
        _LOGGER.error("Cannot read %s: %s", args.input, exc)
        return 1
    try:
        _, pdf_bytes, filename = render_document(
            raw,
            normalizer=normalizer,
            brand=company.branding,
            reviewer=args.reviewer,
            assets_dir=settings.assets_dir,
        )
    except (DocumentValidationError, PDFGenerationError) as exc:
        _LOGGER.error("Rendering failed: %s", exc)
        return 1
    output = Path(args.output) if args.output else Path(filename)
    output.write_bytes(pdf_bytes)
    _LOGGER.info("Wrote %s", output)
    return 0


def run_serve(args: argparse.Namespace) -> int:
    from rfq_builder.server import main as serve

    serve(host=args.host, port=args.port)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RFQ Builder")
    parser.add_argument("--profile", choices=["rfq", "quotation"], help="Override NORMALIZATION_PROFILE")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Extract a document from a PDF or image")
    extract.add_argument("file")
    extract.add_argument("--output")
    extract.add_argument("--no-enrich", action="store_true", help="Skip item description enrichment")

    normalize = subparsers.add_parser("normalize", help="Validate and default a JSON document")
    normalize.add_argument("input")
    normalize.add_argument("--output")

    render = subparsers.add_parser("render", help="Render a JSON document as PDF")
    render.add_argument("input")
    render.add_argument("--output")
    render.add_argument("--company", help="Company profile id used for branding")
    render.add_argument("--reviewer")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if args.command == "extract":
        return run_extract(settings, args)
    if args.command == "normalize":
        return run_normalize(settings, args)
    if args.command == "render":
        return run_render(settings, args)
    if args.command == "serve":
        return run_serve(args)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
