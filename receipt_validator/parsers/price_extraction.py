"""
Price and SKU extraction primitives shared by all receipt parsers

Two receipt shapes have to be handled:
- Stacked: name, SKU and price come out of OCR as separate tokens
- Single-line: "GREAT VALUE MILK 001234567890 3.99" in one token

extract_price / is_sku serve the stacked path; remove_price_from_line,
remove_item_number and find_item_number split single-line tokens apart.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Pattern

from receipt_validator.common.schemas.receipt_scanned import to_cents

AMOUNT = r"\d[\d,]*\.\d{2}"

# Tried in order; within the first pattern that matches, the rightmost match wins
PRICE_PATTERNS: List[Pattern[str]] = [
    re.compile(rf"\$\s*({AMOUNT})"),          # $12.99 or $ 12.99
    re.compile(rf"({AMOUNT})\s*$"),           # 12.99 at end of line
    re.compile(rf"(?:^|\s)({AMOUNT})(?=\s|$)"),  # 12.99 set off by whitespace
]

PRICE_REMOVAL_PATTERNS: List[Pattern[str]] = [
    re.compile(rf"\$\s*{AMOUNT}"),
    re.compile(rf"{AMOUNT}\s*$"),
    re.compile(rf"(?:^|\s){AMOUNT}(?=\s|$)"),
]

ITEM_NUMBER_RE = re.compile(r"\b\d{8,14}\b")

SKU_MIN_DIGITS = 8
SKU_MAX_DIGITS = 14
SKU_MIN_DIGIT_RATIO = 0.8


def parse_amount(amount_str: str) -> Optional[Decimal]:
    """Convert a matched amount like '1,234.56' to a 2-place Decimal"""
    try:
        return to_cents(Decimal(amount_str.replace(",", "")))
    except (InvalidOperation, ValueError):
        return None


def extract_price(token: str) -> Optional[Decimal]:
    """
    Find a currency amount in a token.

    Multiple amounts in one token ("$1.00 $2.00") resolve to the rightmost one.

    Args:
        token: One receipt line token

    Returns:
        Decimal amount with 2 decimal places, or None
    """
    for pattern in PRICE_PATTERNS:
        matches = list(pattern.finditer(token))
        if matches:
            return parse_amount(matches[-1].group(1))
    return None


def is_sku(token: str) -> bool:
    """
    True if the token looks like a UPC/SKU product code.

    8-14 digits, and digits must be more than 80% of the token so that long
    product names with a few digits in them don't qualify.
    """
    if not token:
        return False
    digit_count = sum(1 for ch in token if ch.isdigit())
    if not SKU_MIN_DIGITS <= digit_count <= SKU_MAX_DIGITS:
        return False
    return digit_count / len(token) > SKU_MIN_DIGIT_RATIO


def sku_digits(token: str) -> str:
    """Digits of a SKU token ('0012-3456-7890' -> '001234567890')"""
    return "".join(ch for ch in token if ch.isdigit())


def remove_price_from_line(line: str) -> str:
    """Strip currency amounts from a line, leaving candidate item text"""
    cleaned = line
    for pattern in PRICE_REMOVAL_PATTERNS:
        cleaned = pattern.sub(" ", cleaned)
    return " ".join(cleaned.split())


def remove_item_number(line: str) -> str:
    """Strip 8-14 digit item numbers (UPC-A, UPC-E, EAN) from a line"""
    return " ".join(ITEM_NUMBER_RE.sub(" ", line).split())


def find_item_number(line: str) -> Optional[str]:
    """First 8-14 digit item number embedded in a line, if any"""
    match = ITEM_NUMBER_RE.search(line)
    return match.group(0) if match else None
