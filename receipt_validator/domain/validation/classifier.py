"""
Price Classifier - Turns a receipt/online price pair into status, confidence and notes

Tolerance policy (T = tolerance as a percentage, default 10):

    |p| <= 1          EXACT_MATCH
    |p| <= T          WITHIN_TOLERANCE
    p > 2T            SIGNIFICANT_OVERCHARGE
    p > T             POSSIBLE_OVERCHARGE
    otherwise         RECEIPT_LOWER  (p < -T)

where p = (receipt - online) / online * 100. Negative differences are
treated symmetrically: small ones are normal variance, large ones mean the
customer paid less.
"""
import re
from decimal import Decimal
from typing import Optional, Tuple

from receipt_validator.domain.validation.schemas import ConfidenceLevel, ValidationStatus

EXACT_MATCH_PERCENT = Decimal("1")
HUNDRED = Decimal("100")
PERCENT_PLACES = Decimal("0.01")


def price_delta(receipt_price: Decimal, online_price: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Difference and percent difference of a receipt price against an online price.

    Returns:
        (receipt - online, unrounded percent of online price)
    """
    if online_price <= 0:
        raise ValueError(f"online price must be positive, got {online_price}")
    difference = receipt_price - online_price
    return difference, difference / online_price * HUNDRED


def classify_price(percent_difference: Decimal, tolerance: float) -> ValidationStatus:
    """
    Classify a percent difference.

    Args:
        percent_difference: (receipt - online) / online * 100
        tolerance: Fraction, 0.10 means 10%

    Returns:
        ValidationStatus (never NOT_FOUND/ERROR)
    """
    limit = Decimal(str(tolerance)) * HUNDRED
    magnitude = abs(percent_difference)

    if magnitude <= EXACT_MATCH_PERCENT:
        return ValidationStatus.EXACT_MATCH
    if magnitude <= limit:
        return ValidationStatus.WITHIN_TOLERANCE
    if percent_difference > 2 * limit:
        return ValidationStatus.SIGNIFICANT_OVERCHARGE
    if percent_difference > limit:
        return ValidationStatus.POSSIBLE_OVERCHARGE
    return ValidationStatus.RECEIPT_LOWER


def normalize_code(code: Optional[str]) -> str:
    """Digits only, leading zeros dropped (UPC-A 012345678905 == EAN-13 0012345678905)"""
    if not code:
        return ""
    return re.sub(r"\D", "", code).lstrip("0")


def codes_match(item_code: Optional[str], matched_code: Optional[str]) -> bool:
    normalized = normalize_code(item_code)
    return bool(normalized) and normalized == normalize_code(matched_code)


def determine_confidence(item_code: Optional[str], matched_code: Optional[str]) -> ConfidenceLevel:
    """
    High: item had a code and the match carries the same code
    Medium: item had a code that didn't match, or the match exposes none
    Low: name-only match
    """
    if not item_code:
        return ConfidenceLevel.LOW
    if codes_match(item_code, matched_code):
        return ConfidenceLevel.HIGH
    return ConfidenceLevel.MEDIUM


def round_percent(percent: Decimal) -> Decimal:
    return percent.quantize(PERCENT_PLACES)


def generate_notes(
    status: ValidationStatus,
    difference: Optional[Decimal] = None,
    percent_difference: Optional[Decimal] = None,
    source: str = "the online listing",
    code_mismatch: bool = False,
) -> str:
    """
    Human-readable explanation for a result.

    Args:
        status: Classified status
        difference: Receipt minus online price
        percent_difference: Percent of online price
        source: Where the price came from, e.g. "Walmart.com"
        code_mismatch: The matched product carries a different product code
    """
    if status == ValidationStatus.EXACT_MATCH:
        note = f"✅ Price matches {source}"
    elif status == ValidationStatus.WITHIN_TOLERANCE:
        note = "✓ Within normal in-store vs online variance"
    elif status == ValidationStatus.RECEIPT_LOWER:
        note = f"✓ You paid less than {source}"
    elif status == ValidationStatus.POSSIBLE_OVERCHARGE:
        note = f"⚠️ Receipt price is {percent_difference:.1f}% higher - possible overcharge"
    elif status == ValidationStatus.SIGNIFICANT_OVERCHARGE:
        note = f"🚨 Receipt price is ${difference:.2f} higher - likely billing error"
    elif status == ValidationStatus.NOT_FOUND:
        note = f"Product not found on {source}"
    else:
        note = "Could not validate price"

    if code_mismatch:
        note += " (matched product has a different UPC - verify manually)"

    return note
