"""
Store Detector - Classifies which retailer a receipt came from

Keyword scan over the whole receipt, in fixed priority order; first match wins.
"""
from typing import List, Sequence, Tuple

import structlog

from receipt_validator.common.schemas.receipt_scanned import RetailerType

logger = structlog.get_logger()

# Checked in this order, first match wins
STORE_KEYWORDS: List[Tuple[Tuple[str, ...], RetailerType]] = [
    (("walmart", "wal-mart"), RetailerType.WALMART),
    (("target",), RetailerType.TARGET),
    (("costco",), RetailerType.COSTCO),
    (("kroger",), RetailerType.KROGER),
    (("safeway",), RetailerType.SAFEWAY),
    (("whole foods",), RetailerType.WHOLE_FOODS),
    (("atwoods",), RetailerType.ATWOODS),
    (("tractor supply",), RetailerType.TRACTOR_SUPPLY),
    (("home depot",), RetailerType.HOME_DEPOT),
    (("lowes",), RetailerType.LOWES),
]


def detect_store(tokens: Sequence[str]) -> RetailerType:
    """
    Identify the retailer from receipt tokens.

    Args:
        tokens: Ordered line tokens

    Returns:
        Matched RetailerType, or RetailerType.UNKNOWN
    """
    combined = " ".join(tokens).lower()

    for keywords, retailer in STORE_KEYWORDS:
        if any(keyword in combined for keyword in keywords):
            logger.debug("store_detected", retailer=retailer.value)
            return retailer

    return RetailerType.UNKNOWN
