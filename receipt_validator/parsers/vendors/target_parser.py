"""
Target Receipt Parser

Same stacked layout as Walmart (name tokens, then DPCI/UPC, then price).
Target prints 9-digit DPCI codes ("012-34-5678") which pass the SKU check
once separators are ignored.
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


class TargetParser(BaseReceiptParser):
    """Parser for Target receipts."""

    retailer = RetailerType.TARGET

    NOISE_PATTERNS = [
        r"target",
        r"expect\s+more",
        r"pay\s+less",
        r"redcard",
    ]

    def parse(
        self,
        tokens: Sequence[str],
        retailer: Optional[RetailerType] = None,
    ) -> ScannedReceiptData:
        logger.info("target_parsing_started", tokens=len(tokens))

        items, total = self.parse_tokens(tokens)

        logger.info("target_parsed",
                    items=len(items),
                    total=float(total) if total is not None else None)

        return self.build_result(
            tokens,
            store_name=retailer_display_name(RetailerType.TARGET),
            retailer=RetailerType.TARGET,
            items=items,
            total=total,
        )
