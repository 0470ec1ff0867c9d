"""
Scanned receipt schema (Pydantic models)
Output of the receipt parser, consumed by the review UI, persistence and price validation
"""
import re
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CENTS = Decimal("0.01")


class RetailerType(str, Enum):
    """Supported store identities"""
    WALMART = "walmart"
    TARGET = "target"
    COSTCO = "costco"
    KROGER = "kroger"
    SAFEWAY = "safeway"
    WHOLE_FOODS = "whole_foods"
    ATWOODS = "atwoods"
    TRACTOR_SUPPLY = "tractor_supply"
    HOME_DEPOT = "home_depot"
    LOWES = "lowes"
    UNKNOWN = "unknown"


RETAILER_DISPLAY_NAMES = {
    RetailerType.WALMART: "Walmart",
    RetailerType.TARGET: "Target",
    RetailerType.COSTCO: "Costco",
    RetailerType.KROGER: "Kroger",
    RetailerType.SAFEWAY: "Safeway",
    RetailerType.WHOLE_FOODS: "Whole Foods",
    RetailerType.ATWOODS: "Atwoods",
    RetailerType.TRACTOR_SUPPLY: "Tractor Supply",
    RetailerType.HOME_DEPOT: "Home Depot",
    RetailerType.LOWES: "Lowes",
    RetailerType.UNKNOWN: "Unknown Store",
}


def retailer_display_name(retailer: RetailerType) -> str:
    """Human-readable store name for a retailer"""
    return RETAILER_DISPLAY_NAMES[retailer]


def to_cents(amount: Decimal) -> Decimal:
    """Quantize a currency amount to 2 decimal places"""
    return Decimal(amount).quantize(CENTS)


class ScannedItem(BaseModel):
    """Single line item parsed from a receipt"""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "GREAT VALUE SUGAR",
                "price": 12.99,
                "sku": "001234567890",
            }
        },
    )

    name: str = Field(..., min_length=3, max_length=200, description="Item description as printed")
    price: Decimal = Field(..., ge=0, description="Price paid for this line")
    sku: Optional[str] = Field(None, description="UPC/SKU product code (8-14 digits)")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        """Collapse whitespace before the length check"""
        if isinstance(v, str):
            return " ".join(v.split())
        return v

    @field_validator("price")
    @classmethod
    def round_price(cls, v: Decimal) -> Decimal:
        return to_cents(v)

    @field_validator("sku", mode="before")
    @classmethod
    def validate_sku(cls, v):
        """Store product codes as bare digits"""
        if v is None:
            return None
        digits = re.sub(r"\D", "", str(v))
        if not 8 <= len(digits) <= 14:
            raise ValueError(f"SKU must have 8-14 digits, got {v!r}")
        return digits


class ScannedReceiptData(BaseModel):
    """
    Aggregate parse result.

    Always returned by the parser, even when no items could be found.
    total_amount is the printed grand total and may differ from the sum of
    item prices (tax, discounts, missed lines).
    """
    model_config = ConfigDict(frozen=True)

    store_name: Optional[str] = Field(None, description="Display name of the store")
    retailer: RetailerType = Field(default=RetailerType.UNKNOWN, description="Retailer used to parse")
    items: List[ScannedItem] = Field(default_factory=list, description="Items in receipt order")
    total_amount: Optional[Decimal] = Field(None, ge=0, description="Printed receipt total")
    raw_text: str = Field(default="", description="Tokenized text, one token per line")

    @field_validator("total_amount")
    @classmethod
    def round_total(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return to_cents(v) if v is not None else None

    @property
    def items_total(self) -> Decimal:
        """Sum of parsed item prices"""
        return sum((item.price for item in self.items), Decimal("0.00"))

    @property
    def is_empty(self) -> bool:
        return not self.items
