"""
Store-specific receipt parsers

Each parser handles the quirks of one retailer's receipts.
All parsers inherit from BaseReceiptParser and implement parse().
"""

from receipt_validator.parsers.vendors.base_parser import BaseReceiptParser
from receipt_validator.parsers.vendors.walmart_parser import WalmartParser
from receipt_validator.parsers.vendors.target_parser import TargetParser
from receipt_validator.parsers.vendors.costco_parser import CostcoParser
from receipt_validator.parsers.vendors.generic_parser import GenericParser

__all__ = [
    'BaseReceiptParser',
    'WalmartParser',
    'TargetParser',
    'CostcoParser',
    'GenericParser',
]
