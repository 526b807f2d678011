from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, StringConstraints
from pydantic.alias_generators import to_camel

Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Party(_WireModel):
    name: Text | None = None
    company_name: Text | None = None
    address: Text | None = None
    phone: Text | None = None
    email: Text | None = None
    website: Text | None = None
    tax_id: Text | None = None

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class Item(_WireModel):
    item_number: Text | None = None
    description: Text
    quantity: FiniteFloat | None = None
    unit: Text | None = None
    notes: Text | None = None
    rich_description: Text | None = None
    unit_price: FiniteFloat | None = None
    total_price: FiniteFloat | None = None


class Totals(_WireModel):
    subtotal: FiniteFloat | None = None
    tax: FiniteFloat | None = None
    discount: FiniteFloat | None = None
    total: FiniteFloat | None = None


class DocumentMetadata(_WireModel):
    supplier: Party | None = None
    customer: Party | None = None
    rfq_number: Text | None = None
    quote_number: Text | None = None
    issue_date: Text | None = None
    due_date: Text | None = None
    valid_until: Text | None = None
    subject: Text | None = None
    packing: Text | None = None
    delivery_terms: Text | None = None
    currency: Text | None = None
    payment_terms: Text | None = None
    guarantees: Text | None = None
    origin: Text | None = None
    lead_time: Text | None = None
    packing_requirements: Text | None = None
    accessories_inclusions: Text | None = None

    def get(self, key: str) -> Any:
        """Return a field by its wire (camelCase) name."""
        return getattr(self, WIRE_TO_ATTRIBUTE[key])


class RfqDocument(_WireModel):
    full_text: str = Field(min_length=1)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    items: list[Item] = Field(min_length=1)
    remarks: Text | None = None
    totals: Totals | None = None


WIRE_TO_ATTRIBUTE: dict[str, str] = {to_camel(name): name for name in DocumentMetadata.model_fields}

PARTY_KEYS: tuple[str, ...] = tuple(to_camel(name) for name in Party.model_fields)
ITEM_TEXT_KEYS: tuple[str, ...] = ("itemNumber", "unit", "notes", "richDescription")
ITEM_NUMBER_KEYS: tuple[str, ...] = ("quantity", "unitPrice", "totalPrice")
TOTALS_KEYS: tuple[str, ...] = tuple(to_camel(name) for name in Totals.model_fields)
PARTY_BLOCKS: tuple[str, ...] = ("supplier", "customer")
METADATA_TEXT_KEYS: tuple[str, ...] = tuple(
    key for key in WIRE_TO_ATTRIBUTE if key not in PARTY_BLOCKS
)


def serialize_document(document: RfqDocument) -> dict[str, Any]:
    return document.model_dump(mode="json", by_alias=True)
