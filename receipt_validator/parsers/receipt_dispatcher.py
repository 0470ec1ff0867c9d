"""
Receipt Dispatcher - Routes OCR output to the appropriate store parser

Flow:
1. Tokenize the OCR output (joined text, fragments or pre-split lines)
2. Use the caller's retailer hint, or run the store detector
3. Parse with the retailer's dedicated parser (Walmart, Target, Costco)
4. Fall back to GenericParser for every other retailer, including Unknown

Parsing never raises: a parser failure is logged and an empty result is
returned so the caller can show an editable, empty item list.
"""

from typing import Dict, List, Optional

import structlog

from receipt_validator.common.schemas.receipt_scanned import RetailerType, ScannedReceiptData
from receipt_validator.parsers.store_detector import detect_store
from receipt_validator.parsers.tokenizer import TokenSource, tokenize
from receipt_validator.parsers.vendors.base_parser import BaseReceiptParser
from receipt_validator.parsers.vendors.costco_parser import CostcoParser
from receipt_validator.parsers.vendors.generic_parser import GenericParser
from receipt_validator.parsers.vendors.target_parser import TargetParser
from receipt_validator.parsers.vendors.walmart_parser import WalmartParser

logger = structlog.get_logger()


class ReceiptDispatcher:
    """
    Routes receipt tokens to the correct store parser.

    Dedicated parsers are looked up by RetailerType; anything without one
    goes to the generic parser.
    """

    def __init__(self):
        self.parsers: Dict[RetailerType, BaseReceiptParser] = {
            RetailerType.WALMART: WalmartParser(),
            RetailerType.TARGET: TargetParser(),
            RetailerType.COSTCO: CostcoParser(),
        }
        self.generic_parser = GenericParser()

        logger.info("receipt_dispatcher_initialized", parser_count=len(self.parsers) + 1)

    def parser_for(self, retailer: RetailerType) -> BaseReceiptParser:
        return self.parsers.get(retailer, self.generic_parser)

    def dispatch(
        self,
        source: TokenSource,
        retailer: Optional[RetailerType] = None,
    ) -> ScannedReceiptData:
        """
        Parse a receipt by dispatching to the appropriate store parser.

        Args:
            source: Joined OCR text, positioned fragments, an OcrResult or line tokens
            retailer: Retailer hint from the caller; detected when omitted

        Returns:
            ScannedReceiptData (items may be empty, never None)
        """
        tokens = tokenize(source)

        if retailer is None:
            retailer = detect_store(tokens)
            logger.info("retailer_detected", retailer=retailer.value)

        parser = self.parser_for(retailer)
        parser_name = parser.__class__.__name__

        logger.info("dispatch_started",
                    parser=parser_name,
                    retailer=retailer.value,
                    tokens=len(tokens))

        try:
            result = parser.parse(tokens, retailer)
        except Exception as e:
            logger.error("parser_failed",
                         parser=parser_name,
                         error=str(e),
                         exc_info=True)
            return ScannedReceiptData(
                retailer=retailer,
                items=[],
                raw_text="\n".join(tokens),
            )

        if result.is_empty:
            logger.warning("no_items_found", parser=parser_name, retailer=retailer.value)
        else:
            logger.info("parse_success",
                        parser=parser_name,
                        store=result.store_name,
                        items=len(result.items),
                        total=float(result.total_amount) if result.total_amount is not None else None)

        return result

    def detect_retailer(self, source: TokenSource) -> RetailerType:
        """
        Identify the retailer without parsing the receipt.

        Args:
            source: Any supported OCR output shape

        Returns:
            Detected RetailerType (UNKNOWN if no keyword matched)
        """
        return detect_store(tokenize(source))

    def list_parsers(self) -> List[str]:
        """Parser class names, dedicated parsers first"""
        return [p.__class__.__name__ for p in self.parsers.values()] + [
            self.generic_parser.__class__.__name__
        ]


# Singleton instance for easy import
dispatcher = ReceiptDispatcher()


def parse_receipt(
    source: TokenSource,
    retailer: Optional[RetailerType] = None,
) -> ScannedReceiptData:
    """
    Convenience function to parse a receipt with store auto-detection.

    Example:
        ```python
        from receipt_validator.parsers.receipt_dispatcher import parse_receipt

        receipt = parse_receipt("WALMART\\nGREAT VALUE MILK\\n001234567890\\n3.99")
        print(f"Store: {receipt.store_name}")
        print(f"Items: {len(receipt.items)}")
        ```
    """
    return dispatcher.dispatch(source, retailer)
