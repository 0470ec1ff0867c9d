"""
Base Parser - Abstract base class for store-specific receipt parsers

All store parsers inherit from BaseReceiptParser and implement parse(), which
extracts data and returns ScannedReceiptData. The dispatcher picks the parser
by RetailerType.

The token-stream walk itself (parse_tokens) is shared. Stores customise it
through class attributes (noise patterns, name length band) and the
should_skip() hook.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
import re

import structlog
from pydantic import ValidationError

from receipt_validator.common.schemas.receipt_scanned import (
    RetailerType,
    ScannedItem,
    ScannedReceiptData,
)
from receipt_validator.parsers.price_extraction import (
    extract_price,
    find_item_number,
    is_sku,
    remove_item_number,
    remove_price_from_line,
    sku_digits,
)

logger = structlog.get_logger()

# Noise every store prints: separator rows, masked card numbers, farewells,
# cashier and store ids. "**** TOTAL" is not a separator row.
COMMON_NOISE_PATTERNS = [
    r"^[\s*=_-]{4,}$",
    r"\*{4,}\s*\d{1,4}\s*$",
    r"thank\s*you",
    r"cashier",
    r"store\s*#",
]

SUBTOTAL_RE = re.compile(r"sub\s*-?\s*total", re.IGNORECASE)

# "TOTAL TAX" / "TOTAL SAVINGS" are not the grand total
NOT_GRAND_TOTAL_RE = re.compile(r"total\s+(?:tax|sav)", re.IGNORECASE)

# Leftover text from a single-line item must contain a real word
WORD_RE = re.compile(r"[A-Za-z]{2,}")


class BaseReceiptParser(ABC):
    """
    Abstract base class for store-specific parsers.

    All parsers must implement parse(), which extracts data and returns a
    ScannedReceiptData object.

    Shared machinery:
    - parse_tokens(): walks the token stream, collecting items and total
    - is_noise(): header/footer/slogan filter built from NOISE_PATTERNS
    - clean_description(): tidy an item name
    """

    retailer: RetailerType = RetailerType.UNKNOWN

    # Regexes (case-insensitive, searched anywhere in the token)
    NOISE_PATTERNS: List[str] = []

    # Item names must satisfy MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH
    MIN_NAME_LENGTH = 3
    MAX_NAME_LENGTH = 200

    def __init__(self):
        self._noise_re = re.compile(
            "|".join(f"(?:{p})" for p in COMMON_NOISE_PATTERNS + self.NOISE_PATTERNS),
            re.IGNORECASE,
        )

    @abstractmethod
    def parse(
        self,
        tokens: Sequence[str],
        retailer: Optional[RetailerType] = None,
    ) -> ScannedReceiptData:
        """
        Parse receipt tokens and extract structured data.

        Never raises for unreadable receipts: an empty item list is a valid result.

        Args:
            tokens: Ordered line tokens
            retailer: Retailer the caller determined (generic parser records it)

        Returns:
            ScannedReceiptData object with extracted data
        """
        pass

    # Hooks

    def is_noise(self, token: str) -> bool:
        """Header, footer, slogan or separator line"""
        return bool(self._noise_re.search(token))

    def should_skip(self, token: str) -> bool:
        """Store-specific tokens that are never names, SKUs or prices"""
        return False

    def accept_name(self, name: str) -> bool:
        """Length band for item names"""
        return self.MIN_NAME_LENGTH <= len(name) <= self.MAX_NAME_LENGTH

    # Shared token-stream walk

    def parse_tokens(self, tokens: Sequence[str]) -> Tuple[List[ScannedItem], Optional[Decimal]]:
        """
        Walk the token stream collecting items and the receipt total.

        Receipt rows often come out of OCR stacked one token per visual line:

            GREAT VALUE
            SUGAR
            001234567890   <- SKU
            12.99          <- price

        so name tokens are accumulated until a price (optionally preceded by a
        SKU) closes the item. Single-line rows ("MILK 001234567890 3.99") are
        handled by splitting the price token into name text, SKU and price.

        Args:
            tokens: Ordered line tokens

        Returns:
            (items in receipt order, total or None)
        """
        items: List[ScannedItem] = []
        total: Optional[Decimal] = None
        pending_names: List[str] = []
        pending_sku: Optional[str] = None

        i = 0
        count = len(tokens)

        while i < count:
            token = tokens[i]
            lowered = token.lower()
            next_token = tokens[i + 1] if i + 1 < count else None

            if self.is_noise(token):
                i += 1
                continue

            # "TOTAL SAVINGS 0.50" / "TOTAL TAX", "0.24": never an item
            if NOT_GRAND_TOTAL_RE.search(lowered):
                pending_names = []
                pending_sku = None
                i += 2 if self._is_bare_price(next_token) else 1
                continue

            # Grand total: price on the next token, else on the same line
            if "total" in lowered and not SUBTOTAL_RE.search(lowered):
                next_price = extract_price(next_token) if next_token is not None else None
                if next_price is not None:
                    total = next_price
                    i += 2
                    continue
                same_line_price = extract_price(token)
                if same_line_price is not None:
                    total = same_line_price
                i += 1
                continue

            if "tax" in lowered or SUBTOTAL_RE.search(lowered):
                i += 1
                continue

            if self.should_skip(token):
                i += 1
                continue

            # SKU with the price stacked on the next token
            if is_sku(token) and next_token is not None:
                price = extract_price(next_token)
                if price is not None:
                    self._emit_item(items, pending_names, price, sku_digits(token))
                    pending_names = []
                    pending_sku = None
                    i += 2
                    continue

            price = extract_price(token)
            if price is not None:
                residual = remove_item_number(remove_price_from_line(token))
                if len(residual) > 2 and WORD_RE.search(residual):
                    pending_names.append(residual)
                sku = find_item_number(token) or pending_sku
                self._emit_item(items, pending_names, price, sku)
                pending_names = []
                pending_sku = None
                i += 1
                continue

            if len(token) > 1:
                if is_sku(token):
                    pending_sku = sku_digits(token)
                else:
                    embedded_sku = find_item_number(token)
                    if embedded_sku:
                        pending_sku = embedded_sku
                        name_text = remove_item_number(token)
                        if len(name_text) > 1:
                            pending_names.append(name_text)
                    else:
                        pending_names.append(token)

            i += 1

        return items, total

    @staticmethod
    def _is_bare_price(token: Optional[str]) -> bool:
        if token is None or extract_price(token) is None:
            return False
        return not WORD_RE.search(remove_price_from_line(token))

    def _emit_item(
        self,
        items: List[ScannedItem],
        name_tokens: List[str],
        price: Decimal,
        sku: Optional[str],
    ) -> None:
        if not name_tokens:
            return

        name = self.clean_description(" ".join(name_tokens))
        if not self.accept_name(name):
            logger.debug("item_name_rejected", parser=self.__class__.__name__, name=name)
            return

        try:
            items.append(ScannedItem(name=name, price=price, sku=sku))
        except ValidationError as e:
            logger.warning("item_rejected", parser=self.__class__.__name__,
                           name=name, price=str(price), error=str(e))

    # Utility methods

    def clean_description(self, description: str) -> str:
        """
        Clean up item description from OCR artifacts.

        Collapses whitespace and drops underscores and stray pipes.
        """
        description = description.replace("_", " ").replace("|", " ")
        return " ".join(description.split())

    def build_result(
        self,
        tokens: Sequence[str],
        store_name: Optional[str],
        retailer: RetailerType,
        items: List[ScannedItem],
        total: Optional[Decimal],
    ) -> ScannedReceiptData:
        return ScannedReceiptData(
            store_name=store_name,
            retailer=retailer,
            items=items,
            total_amount=total,
            raw_text="\n".join(tokens),
        )
