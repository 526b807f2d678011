"""PDF rendering for normalized RFQ and quotation documents."""

from __future__ import annotations

import io
import logging
import re
import time
from pathlib import Path

from reportlab.lib.colors import Color, HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from rfq_builder.branding import BrandingProfile
from rfq_builder.errors import PDFGenerationError
from rfq_builder.normalization_profile import RFQ_PROFILE, NormalizationProfile
from schemas.rfq_schema import Party, RfqDocument

_LOGGER = logging.getLogger(__name__)

MARGIN = 50
BODY_COLOR = HexColor("#374151")
TEXT_COLOR = HexColor("#111827")
MUTED_COLOR = HexColor("#6b7280")

FIELD_LABELS = {
    "rfqNumber": "RFQ #",
    "quoteNumber": "Quote #",
    "issueDate": "Date",
    "dueDate": "Due date",
    "validUntil": "Valid until",
    "subject": "Subject",
    "packing": "Packing",
    "deliveryTerms": "Delivery terms",
    "currency": "Currency",
    "paymentTerms": "Payment",
    "guarantees": "Guarantees",
    "origin": "Origin",
    "leadTime": "Lead time",
    "packingRequirements": "Packing requirements",
    "accessoriesInclusions": "Accessories / inclusions",
}
HEADER_FIELDS = ("rfqNumber", "quoteNumber", "issueDate", "dueDate", "validUntil", "subject")
SECTION_FIELDS = ("packingRequirements", "accessoriesInclusions")
PARTY_TITLES = {"supplier": "Supplier", "customer": "Customer"}


class _PageWriter:
    """Draws top-down on a canvas, starting a new page when space runs out."""

    def __init__(self, pdf_canvas: canvas.Canvas) -> None:
        self.canvas = pdf_canvas
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def ensure_space(self, needed: float) -> None:
        if self.y - needed < MARGIN:
            self.canvas.showPage()
            self.y = self.height - MARGIN

    def wrap(self, text: str, font: str, size: float, width: float) -> list[str]:
        lines: list[str] = []
        for paragraph in text.splitlines() or [""]:
            lines.extend(simpleSplit(paragraph, font, size, width) or [""])
        return lines

    def text(
        self,
        value: str,
        *,
        size: float = 10,
        color: Color = BODY_COLOR,
        font: str = "Helvetica",
        x: float = MARGIN,
    ) -> None:
        leading = size * 1.35
        for line in self.wrap(value, font, size, self.width - MARGIN - x):
            self.ensure_space(leading)
            self.canvas.setFont(font, size)
            self.canvas.setFillColor(color)
            self.canvas.drawString(x, self.y - size, line)
            self.y -= leading

    def row(self, cells: list[tuple[str, float, float]], *, size: float = 9, font: str = "Helvetica") -> None:
        """Draw wrapped cells given as (text, x, width) side by side."""
        leading = size * 1.35
        wrapped = [(self.wrap(text, font, size, width), x) for text, x, width in cells]
        count = max(len(lines) for lines, _ in wrapped)
        if count * leading <= self.height - 2 * MARGIN:
            self.ensure_space(count * leading)
        for offset in range(count):
            self.ensure_space(leading)
            self.canvas.setFont(font, size)
            self.canvas.setFillColor(TEXT_COLOR)
            for lines, x in wrapped:
                if offset < len(lines):
                    self.canvas.drawString(x, self.y - size, lines[offset])
            self.y -= leading

    def rule(self, color: Color) -> None:
        self.ensure_space(6)
        self.canvas.setStrokeColor(color)
        self.canvas.line(MARGIN, self.y - 2, self.width - MARGIN, self.y - 2)
        self.y -= 6

    def gap(self, amount: float = 8) -> None:
        self.y -= amount


def format_number(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_amount(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:,.2f}"


def _party_lines(party: Party) -> list[str]:
    lines = [value for value in (party.company_name, party.name, party.address) if value]
    if party.phone:
        lines.append(f"Tel: {party.phone}")
    if party.email:
        lines.append(f"Email: {party.email}")
    if party.website:
        lines.append(f"Website: {party.website}")
    if party.tax_id:
        lines.append(f"Tax ID: {party.tax_id}")
    return lines


def _draw_header(
    writer: _PageWriter,
    document: RfqDocument,
    brand: BrandingProfile,
    profile: NormalizationProfile,
    assets_dir: Path | None,
) -> None:
    top = writer.y
    if assets_dir is not None:
        logo_path = assets_dir / brand.logo_relative_path
        try:
            if not logo_path.is_file():
                raise FileNotFoundError("file does not exist")
            logo = ImageReader(str(logo_path))
            writer.canvas.drawImage(
                logo,
                writer.width - MARGIN - 110,
                top - 60,
                width=110,
                height=60,
                preserveAspectRatio=True,
                anchor="ne",
                mask="auto",
            )
        except OSError as exc:
            _LOGGER.warning("No logo available at %s: %s", logo_path, exc)

    writer.text(brand.company_name, size=22, color=HexColor(brand.primary_color), font="Helvetica-Bold")
    writer.gap(4)
    for line in [*brand.address_lines, *brand.contact_lines]:
        writer.text(line, size=10, color=MUTED_COLOR)

    writer.gap(12)
    writer.text(profile.title, size=16, color=HexColor(brand.accent_color), font="Helvetica-Bold")
    for key in profile.metadata_fields:
        if key not in HEADER_FIELDS:
            continue
        value = document.metadata.get(key)
        if key == "subject" and value is None:
            continue
        writer.text(f"{FIELD_LABELS[key]}: {value or '-'}", size=11, color=TEXT_COLOR)


def _draw_heading(writer: _PageWriter, title: str, brand: BrandingProfile) -> None:
    writer.gap(12)
    writer.ensure_space(40)
    writer.text(title, size=12, color=TEXT_COLOR, font="Helvetica-Bold")
    writer.rule(HexColor(brand.accent_color))


def _draw_parties(writer: _PageWriter, document: RfqDocument, brand: BrandingProfile, profile: NormalizationProfile) -> None:
    for block in profile.party_fields:
        _draw_heading(writer, PARTY_TITLES[block], brand)
        party = document.metadata.get(block)
        if party is None or party.is_empty:
            writer.text("No details provided")
            continue
        for line in _party_lines(party):
            writer.text(line)


def _draw_key_details(writer: _PageWriter, document: RfqDocument, brand: BrandingProfile, profile: NormalizationProfile) -> None:
    keys = [key for key in profile.metadata_fields if key not in HEADER_FIELDS and key not in SECTION_FIELDS]
    if not keys:
        return
    _draw_heading(writer, "Commercial terms", brand)
    label_width = 130
    for key in keys:
        writer.row(
            [
                (FIELD_LABELS[key], MARGIN, label_width),
                (document.metadata.get(key) or "-", MARGIN + label_width, writer.width - 2 * MARGIN - label_width),
            ],
            size=10,
        )


def _item_columns(writer: _PageWriter, profile: NormalizationProfile) -> list[tuple[str, float]]:
    columns = [("#", 30.0), ("Description", 0.0), ("Qty", 55.0), ("Unit", 45.0)]
    if "unitPrice" in profile.item_number_fields:
        columns.append(("Unit price", 70.0))
    if "totalPrice" in profile.item_number_fields:
        columns.append(("Total", 70.0))
    fixed = sum(width for _, width in columns)
    description_width = writer.width - 2 * MARGIN - fixed
    return [(name, width or description_width) for name, width in columns]


def _draw_items(writer: _PageWriter, document: RfqDocument, brand: BrandingProfile, profile: NormalizationProfile) -> None:
    _draw_heading(writer, "Items", brand)
    columns = _item_columns(writer, profile)
    positions: list[float] = []
    x = float(MARGIN)
    for _, width in columns:
        positions.append(x)
        x += width

    def cells(values: list[str]) -> list[tuple[str, float, float]]:
        return [(value, positions[i], columns[i][1] - 6) for i, value in enumerate(values)]

    writer.row(cells([name for name, _ in columns]), font="Helvetica-Bold")
    writer.gap(2)
    for index, item in enumerate(document.items):
        values = [
            item.item_number or str(index + 1),
            item.description,
            format_number(item.quantity),
            item.unit or "-",
        ]
        if "unitPrice" in profile.item_number_fields:
            values.append(format_amount(item.unit_price))
        if "totalPrice" in profile.item_number_fields:
            values.append(format_amount(item.total_price))
        writer.row(cells(values))
        for extra in (item.rich_description, item.notes):
            if extra:
                writer.text(extra, size=8, color=MUTED_COLOR, x=positions[1])
        writer.gap(4)


def _draw_totals(writer: _PageWriter, document: RfqDocument, brand: BrandingProfile) -> None:
    totals = document.totals
    if totals is None:
        return
    _draw_heading(writer, "Totals", brand)
    for label, value in (
        ("Subtotal", totals.subtotal),
        ("Tax", totals.tax),
        ("Discount", totals.discount),
        ("Total", totals.total),
    ):
        if value is not None:
            writer.row([(label, MARGIN, 130), (format_amount(value), MARGIN + 130, 150)], size=10)


def _draw_sections(
    writer: _PageWriter,
    document: RfqDocument,
    brand: BrandingProfile,
    profile: NormalizationProfile,
    reviewer: str | None,
) -> None:
    for key in SECTION_FIELDS:
        if key not in profile.metadata_fields:
            continue
        value = document.metadata.get(key)
        if value:
            _draw_heading(writer, FIELD_LABELS[key], brand)
            writer.text(value)
    if document.remarks:
        _draw_heading(writer, "Remarks", brand)
        writer.text(document.remarks)
    if reviewer and reviewer.strip():
        writer.gap(16)
        writer.text(f"Reviewed by: {reviewer.strip()}", size=9, color=MUTED_COLOR)


def render_document_pdf(
    document: RfqDocument,
    brand: BrandingProfile,
    *,
    profile: NormalizationProfile = RFQ_PROFILE,
    reviewer: str | None = None,
    assets_dir: str | Path | None = None,
) -> bytes:
    """Render ``document`` as an A4 PDF and return its bytes."""
    buffer = io.BytesIO()
    try:
        pdf_canvas = canvas.Canvas(buffer, pagesize=A4)
        pdf_canvas.setTitle(f"{profile.title} - {brand.company_name}")
        writer = _PageWriter(pdf_canvas)
        _draw_header(writer, document, brand, profile, Path(assets_dir) if assets_dir else None)
        _draw_parties(writer, document, brand, profile)
        _draw_key_details(writer, document, brand, profile)
        _draw_items(writer, document, brand, profile)
        _draw_totals(writer, document, brand)
        _draw_sections(writer, document, brand, profile, reviewer)
        pdf_canvas.showPage()
        pdf_canvas.save()
    except (ValueError, KeyError, OSError) as exc:
        raise PDFGenerationError(str(exc)) from exc
    return buffer.getvalue()


def build_pdf_filename(document: RfqDocument, profile: NormalizationProfile = RFQ_PROFILE) -> str:
    identifier = document.metadata.get(profile.identifier_field) or ""
    token = re.sub(r"[^a-zA-Z0-9_-]", "", identifier) or str(int(time.time() * 1000))
    return f"{profile.name}-{token}.pdf"
