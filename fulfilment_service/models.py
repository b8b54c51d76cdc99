"""
models.py — Data Models for Order Ingestion and Partner Submission

This module defines the data structures that flow through the service.
It uses Pydantic models to validate inbound webhook documents, queue messages
and the outbound partner order document.

Models:
    - ShopifyOrder / LineItem / LineItemProperty: inbound order webhook body.
    - KeyAliases / ClientConfig / ClientSecrets: per-client configuration.
    - DesignBits / Candidate: data derived from a line item at intake.
    - PartnerOrderItem / PartnerOrderPayload: the partner API order document.
    - QueueMessage: the message handed from intake to the worker.
"""

import json
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator

PRINT_JOB_ITEM_TYPE = 2
TEXTUAL_ITEM_TYPE = 5


# --- Inbound order ---
class LineItemProperty(BaseModel):
    """
    One name/value pair attached to a line item by the storefront.

    Names starting with "_" are private metadata (print job id, thumbnail),
    never customer-facing text.
    """
    model_config = ConfigDict(extra="allow")

    name: str = ""
    value: str = ""

    @field_validator("name", "value", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)


class LineItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Union[int, str]
    quantity: Optional[int] = None
    title: Optional[str] = None
    sku: Optional[str] = None
    properties: List[LineItemProperty] = Field(default_factory=list)

    @field_validator("properties", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return [] if v is None else v


class Customer(BaseModel):
    model_config = ConfigDict(extra="allow")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class Address(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    company: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None
    country_code: Optional[str] = None
    phone: Optional[str] = None


class ShopifyOrder(BaseModel):
    """
    Represents an order webhook document. Unknown fields are kept so the
    queued order is the order as received.

    Attributes:
        id (int | str): Shop-side order id, part of the idempotency key.
        name (Optional[str]): Human readable order name, e.g. "#1001".
        processed_at / created_at (Optional[str]): ISO timestamps.
        line_items (List[LineItem]): Ordered order lines.
    """
    model_config = ConfigDict(extra="allow")

    id: Union[int, str]
    name: Optional[str] = None
    email: Optional[str] = None
    customer: Optional[Customer] = None
    processed_at: Optional[str] = None
    created_at: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None

    @field_validator("line_items", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return [] if v is None else v

    @property
    def external_id(self) -> str:
        """Partner-visible reference: the order name, else the order id."""
        return self.name or str(self.id)


# --- Client configuration ---
def parse_alias_list(value: Any) -> List[str]:
    """
    Parses a configured alias list permissively.

    Accepts a list of names, a JSON array encoded as a string, or a
    comma-separated string. Anything else yields an empty list.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [v.strip() for v in value if isinstance(v, str) and v.strip()]
    if not isinstance(value, str):
        return []
    text = value.strip()
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return [v.strip() for v in parsed if isinstance(v, str) and v.strip()]
    return [part.strip() for part in text.split(",") if part.strip()]


class KeyAliases(BaseModel):
    """Accepted property names for the top/middle/bottom design text slots."""
    top: List[str] = Field(default_factory=list)
    middle: List[str] = Field(default_factory=list)
    bottom: List[str] = Field(default_factory=list)

    @field_validator("top", "middle", "bottom", mode="before")
    @classmethod
    def _parse(cls, v):
        return parse_alias_list(v)


class ClientConfig(BaseModel):
    """
    One tenant, looked up by slug for every request and every worker run.

    Alias lists accept the stored forms `topKeys` / `topKeysJson` as well as
    `top_aliases`, each as a list or as a delimited string.
    """
    slug: str
    shop_domain: str = Field(validation_alias=AliasChoices("shop_domain", "shopDomain"))
    secret_ref: str = Field(validation_alias=AliasChoices("secret_ref", "secretRef", "secretName"))
    top_aliases: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("top_aliases", "topAliases", "topKeys", "topKeysJson"),
    )
    middle_aliases: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("middle_aliases", "middleAliases", "middleKeys", "middleKeysJson"),
    )
    bottom_aliases: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("bottom_aliases", "bottomAliases", "bottomKeys", "bottomKeysJson"),
    )

    @field_validator("top_aliases", "middle_aliases", "bottom_aliases", mode="before")
    @classmethod
    def _parse_aliases(cls, v):
        return parse_alias_list(v)

    @property
    def key_aliases(self) -> KeyAliases:
        return KeyAliases(top=self.top_aliases, middle=self.middle_aliases, bottom=self.bottom_aliases)


class ClientSecrets(BaseModel):
    """Per-client secrets. Key material is held as SecretStr so it never shows up in logs."""
    webhook_signing_key: SecretStr = Field(
        validation_alias=AliasChoices("webhook_signing_key", "webhookSigningKey", "shopifyWebhookKey")
    )
    company_ref_id: int = Field(
        validation_alias=AliasChoices("company_ref_id", "companyRefId", "kxCompanyRefId")
    )
    api_key: SecretStr = Field(validation_alias=AliasChoices("api_key", "apiKey", "kxApiKey"))


# --- Derived per line ---
class DesignBits(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    top: Optional[str] = None
    middle: Optional[str] = None
    bottom: Optional[str] = None
    print_job_id: Optional[str] = Field(default=None, alias="printJobId")
    thumb: Optional[str] = None


class Candidate(BaseModel):
    """A line item paired with its design bits, prior to classification."""
    li: LineItem
    bits: DesignBits = Field(default_factory=DesignBits)


# --- Outbound partner document ---
class PartnerAttribute(BaseModel):
    name: str
    value: str


class PartnerOrderItem(BaseModel):
    """
    One item of the partner order.

    Attributes:
        type (int): 2 for a print-job item (carries print_job_ref), 5 for a textual item.
        textual_product_id (Optional[int]): Partner product id resolved from the SKU.
        attributes (List[PartnerAttribute]): Personalisation passed to the partner.
    """
    external_ref: str
    quantity: int
    type: int
    print_job_ref: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    textual_product_id: Optional[int] = None
    attributes: List[PartnerAttribute] = Field(default_factory=list)


class PartnerOrderPayload(BaseModel):
    external_ref: str
    company_ref_id: int
    sale_datetime: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_telephone: Optional[str] = None
    shipping_address_1: Optional[str] = None
    shipping_address_2: Optional[str] = None
    shipping_address_3: Optional[str] = None
    shipping_address_4: Optional[str] = None
    shipping_address_5: Optional[str] = None
    shipping_postcode: Optional[str] = None
    shipping_country_code: Optional[str] = None
    items: List[PartnerOrderItem] = Field(default_factory=list)

    def to_wire(self) -> dict:
        """JSON document for the partner API; absent optional fields are omitted."""
        return self.model_dump(exclude_none=True)


# --- Queue ---
class QueueMessage(BaseModel):
    """The unit of work handed from intake to the worker."""
    model_config = ConfigDict(populate_by_name=True)

    slug: str
    shop_domain: str = Field(alias="shopDomain")
    secret_ref: Optional[str] = Field(default=None, alias="secretRef")
    order: ShopifyOrder
    candidates: List[Candidate] = Field(default_factory=list)

    @property
    def dedup_key(self) -> str:
        return f"{self.shop_domain}#{self.order.id}"

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ProcessingOutcome(str, Enum):
    """Terminal states of the processing phase for one message."""
    ALREADY_PROCESSED = "already_processed"
    NO_PERSONALISED_CONTENT = "no_personalised_content"
    SUBMITTED = "submitted"
