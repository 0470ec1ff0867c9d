"""
Price validation module

Compares parsed receipt prices against current online prices and rolls the
results into a receipt-level report.

Usage:
    from receipt_validator.domain.validation import PriceValidationService

    service = PriceValidationService.from_settings(load_settings())
    summary = await service.validate_receipt(receipt)
"""

from receipt_validator.domain.validation.schemas import (
    ConfidenceLevel,
    OverallStatus,
    PriceValidationResult,
    ValidationMethod,
    ValidationStatus,
    ValidationSummary,
)
from receipt_validator.domain.validation.classifier import (
    classify_price,
    codes_match,
    determine_confidence,
    generate_notes,
)
from receipt_validator.domain.validation.rate_limiter import RateLimiter
from receipt_validator.domain.validation.summary import summarize
from receipt_validator.domain.validation.price_validation_service import (
    PriceValidationService,
    ValidationCancelledError,
)

__all__ = [
    'ConfidenceLevel',
    'OverallStatus',
    'PriceValidationResult',
    'ValidationMethod',
    'ValidationStatus',
    'ValidationSummary',
    'classify_price',
    'codes_match',
    'determine_confidence',
    'generate_notes',
    'RateLimiter',
    'summarize',
    'PriceValidationService',
    'ValidationCancelledError',
]
