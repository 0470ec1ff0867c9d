"""
Costco Wholesale Receipt Parser

Receipt Format:
- Item number (4-7 digits), abbreviated description, price, tax flag
- Membership number printed near the header
- Short numeric-only lines (member ids, item numbers, register ids) carry no
  name or price information and are dropped before SKU detection

Only 8-14 digit codes count as SKUs, so Costco's own short item numbers
never become product codes.
"""

from typing import Optional, Sequence

import structlog

from receipt_validator.common.schemas.receipt_scanned import (
    RetailerType,
    ScannedReceiptData,
    retailer_display_name,
)
from receipt_validator.parsers.vendors.base_parser import BaseReceiptParser

logger = structlog.get_logger()


class CostcoParser(BaseReceiptParser):
    """
    Parser for Costco Wholesale receipts.

    Handles:
    - Stacked and single-line item rows
    - Membership and item numbers (skipped)
    - "****  TOTAL" footer
    """

    retailer = RetailerType.COSTCO

    # Numeric-only tokens shorter than this are membership/item numbers
    MEMBER_NUMBER_MAX_LENGTH = 10

    NOISE_PATTERNS = [
        r"costco",
        r"wholesale",
        r"member",
    ]

    def should_skip(self, token: str) -> bool:
        return len(token) < self.MEMBER_NUMBER_MAX_LENGTH and all(
            ch.isdigit() or ch.isspace() for ch in token
        )

    def parse(
        self,
        tokens: Sequence[str],
        retailer: Optional[RetailerType] = None,
    ) -> ScannedReceiptData:
        """
        Parse Costco receipt tokens.

        Args:
            tokens: Ordered line tokens
            retailer: Ignored, always Costco

        Returns:
            ScannedReceiptData object
        """
        logger.info("costco_parser_started", tokens=len(tokens))

        items, total = self.parse_tokens(tokens)

        logger.info("costco_parser_completed",
                    items=len(items),
                    total=float(total) if total is not None else None)

        return self.build_result(
            tokens,
            store_name=retailer_display_name(RetailerType.COSTCO),
            retailer=RetailerType.COSTCO,
            items=items,
            total=total,
        )
