"""
Receipt Validator - parse OCR'd retail receipts and cross-check item prices
against current online prices.
"""

__version__ = "0.1.0"
