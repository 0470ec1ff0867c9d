"""
Generic Fallback Receipt Parser

Used for every retailer without a dedicated parser (Kroger, Safeway, Whole
Foods, Atwoods, Tractor Supply, Home Depot, Lowes) and for unknown stores.

Strategy:
- First line is usually the store name; it only stays out of the item walk
  when it reads like a header (no price on it or right after it)
- Same token-stream walk as the store parsers, with a stricter name band
  (3-99 characters) because nothing store-specific filters the noise
- Results are best effort and meant for user review
"""

from typing import Optional, Sequence

import structlog

from receipt_validator.common.schemas.receipt_scanned import (
    RetailerType,
    ScannedReceiptData,
)
from receipt_validator.parsers.price_extraction import extract_price, is_sku
from receipt_validator.parsers.vendors.base_parser import BaseReceiptParser

logger = structlog.get_logger()


class GenericParser(BaseReceiptParser):
    """
    Generic fallback parser for unknown stores or poor quality OCR.

    Handles:
    - Store name guess from the header line
    - Stacked and single-line item rows
    - Total extraction
    """

    STORE_NAME_MAX_LENGTH = 50
    MAX_NAME_LENGTH = 99

    NOISE_PATTERNS = [
        r"receipt",
    ]

    def parse(
        self,
        tokens: Sequence[str],
        retailer: Optional[RetailerType] = None,
    ) -> ScannedReceiptData:
        """
        Best-effort parsing of an unknown receipt format.

        Args:
            tokens: Ordered line tokens
            retailer: Retailer to record on the result (default UNKNOWN)

        Returns:
            ScannedReceiptData object with whatever could be extracted
        """
        retailer = retailer or RetailerType.UNKNOWN
        logger.info("generic_parser_started", retailer=retailer.value, tokens=len(tokens))

        store_name = self._guess_store_name(tokens)

        # Header line is the store name, not the start of the first item
        body = tokens[1:] if store_name and self._is_header(tokens) else tokens
        items, total = self.parse_tokens(body)

        logger.info("generic_parser_completed",
                    store=store_name,
                    items=len(items),
                    total=float(total) if total is not None else None,
                    note="Generic parser used - review recommended")

        return self.build_result(
            tokens,
            store_name=store_name,
            retailer=retailer,
            items=items,
            total=total,
        )

    def _guess_store_name(self, tokens: Sequence[str]) -> Optional[str]:
        """First token, when it is short enough to be a name"""
        if tokens and len(tokens[0]) < self.STORE_NAME_MAX_LENGTH:
            return tokens[0]
        return None

    def _is_header(self, tokens: Sequence[str]) -> bool:
        """First token carries no price and doesn't open an item ('APPLES', '2.50')"""
        first = tokens[0]
        if extract_price(first) is not None or is_sku(first) or "total" in first.lower():
            return False
        following = tokens[1] if len(tokens) > 1 else None
        return following is None or (extract_price(following) is None and not is_sku(following))
