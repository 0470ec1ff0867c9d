"""
Walmart Receipt Parser

Walmart receipts print each row as DESCRIPTION  UPC  PRICE  TAXCODE. After OCR
the description words, the 12-digit UPC and the price frequently land on
separate stacked lines:

    GREAT VALUE
    SUGAR
    001234567890
    12.99

Noise specific to Walmart:
- Store name in header/footer ("WALMART", "WAL-MART", "SUPERCENTER")
- Slogan "Save money. Live better." (often split word by word)
- Register markers: ST# OP# TE# TR# TC#
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


class WalmartParser(BaseReceiptParser):
    """Parser for Walmart / Walmart Supercenter receipts."""

    retailer = RetailerType.WALMART

    NOISE_PATTERNS = [
        r"wal-?mart",
        r"super\s*cent(?:er|re)",
        r"save\s+money",
        r"live\s+better",
        r"^(?:save|money|live|better)\W*$",
        r"\b(?:st|op|te|tr|tc)\s*#",
        r"items?\s+sold",
    ]

    def parse(
        self,
        tokens: Sequence[str],
        retailer: Optional[RetailerType] = None,
    ) -> ScannedReceiptData:
        logger.info("walmart_parsing_started", tokens=len(tokens))

        items, total = self.parse_tokens(tokens)

        logger.info(
            "walmart_parsed",
            items=len(items),
            with_sku=sum(1 for item in items if item.sku),
            total=float(total) if total is not None else None,
        )

        return self.build_result(
            tokens,
            store_name=retailer_display_name(RetailerType.WALMART),
            retailer=RetailerType.WALMART,
            items=items,
            total=total,
        )
