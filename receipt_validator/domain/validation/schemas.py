"""
Data schemas for price validation module
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from receipt_validator.common.schemas.receipt_scanned import RetailerType, ScannedItem


class ValidationStatus(str, Enum):
    """Outcome of comparing a receipt price with the online price"""
    EXACT_MATCH = "exact_match"                        # Within 1%
    WITHIN_TOLERANCE = "within_tolerance"              # Normal in-store vs online variance
    RECEIPT_LOWER = "receipt_lower"                    # Customer paid less
    POSSIBLE_OVERCHARGE = "possible_overcharge"        # Above tolerance
    SIGNIFICANT_OVERCHARGE = "significant_overcharge"  # Above twice the tolerance
    NOT_FOUND = "not_found"                            # No online price
    ERROR = "error"                                    # Every attempt failed


class ConfidenceLevel(str, Enum):
    """How sure we are the online product is the receipt product"""
    HIGH = "high"        # Product code present and matched
    MEDIUM = "medium"    # Product code present, mismatched or unverifiable
    LOW = "low"          # Name-only match
    NONE = "none"        # Nothing matched


class ValidationMethod(str, Enum):
    """Which strategy produced the online price"""
    UPC_DIRECT = "UPC Direct"
    UPC_WITH_SCRAPE = "UPC + Scrape"
    NAME_SEARCH = "Name Search"
    FAILED = "Failed"
    NOT_FOUND = "Not Found"


class OverallStatus(str, Enum):
    """Receipt-level verdict"""
    ALL_GOOD = "all_good"
    POSSIBLE_ISSUES = "possible_issues"
    SIGNIFICANT_ISSUES = "significant_issues"
    NEEDS_REVIEW = "needs_review"


FLAGGED_STATUSES = frozenset({
    ValidationStatus.POSSIBLE_OVERCHARGE,
    ValidationStatus.SIGNIFICANT_OVERCHARGE,
})

SUCCESSFUL_STATUSES = frozenset({
    ValidationStatus.EXACT_MATCH,
    ValidationStatus.WITHIN_TOLERANCE,
    ValidationStatus.RECEIPT_LOWER,
    ValidationStatus.POSSIBLE_OVERCHARGE,
    ValidationStatus.SIGNIFICANT_OVERCHARGE,
})

# Presentation metadata
STATUS_ICONS = {
    ValidationStatus.EXACT_MATCH: "✅",
    ValidationStatus.WITHIN_TOLERANCE: "✓",
    ValidationStatus.RECEIPT_LOWER: "✓",
    ValidationStatus.POSSIBLE_OVERCHARGE: "⚠️",
    ValidationStatus.SIGNIFICANT_OVERCHARGE: "🚨",
    ValidationStatus.NOT_FOUND: "🔍",
    ValidationStatus.ERROR: "❌",
}

STATUS_DISPLAY_TEXTS = {
    ValidationStatus.EXACT_MATCH: "Exact Match",
    ValidationStatus.WITHIN_TOLERANCE: "Within Tolerance",
    ValidationStatus.RECEIPT_LOWER: "Receipt Lower",
    ValidationStatus.POSSIBLE_OVERCHARGE: "Possible Overcharge",
    ValidationStatus.SIGNIFICANT_OVERCHARGE: "Significant Overcharge",
    ValidationStatus.NOT_FOUND: "Not Found",
    ValidationStatus.ERROR: "Could Not Validate",
}

METHOD_ICONS = {
    ValidationMethod.UPC_DIRECT: "⚡️",
    ValidationMethod.UPC_WITH_SCRAPE: "🔗",
    ValidationMethod.NAME_SEARCH: "🔍",
    ValidationMethod.FAILED: "❌",
    ValidationMethod.NOT_FOUND: "❓",
}

OVERALL_STATUS_DISPLAY_TEXTS = {
    OverallStatus.ALL_GOOD: "✅ All charges appear correct",
    OverallStatus.POSSIBLE_ISSUES: "⚠️ Some items may be overcharged - review recommended",
    OverallStatus.SIGNIFICANT_ISSUES: "🚨 Significant billing errors detected - contact store",
    OverallStatus.NEEDS_REVIEW: "❓ Manual review needed",
}


def format_signed_amount(amount: Optional[Decimal]) -> str:
    """+$1.50 / $-0.25 / N/A"""
    if amount is None:
        return "N/A"
    prefix = "+" if amount > 0 else ""
    return f"{prefix}${amount:.2f}"


def format_signed_percent(percent: Optional[Decimal]) -> str:
    """+15.0% / -3.2% / N/A"""
    if percent is None:
        return "N/A"
    prefix = "+" if percent > 0 else ""
    return f"{prefix}{percent:.1f}%"


class PriceValidationResult(BaseModel):
    """
    Validation outcome for a single receipt item

    price_difference = receipt price - online price (positive means the
    customer paid more). percent_difference is relative to the online price.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "item": {"name": "GREAT VALUE MILK", "price": 3.99, "sku": "001234567890"},
                "online_price": 3.48,
                "price_difference": 0.51,
                "percent_difference": 14.66,
                "status": "possible_overcharge",
                "confidence": "high",
                "method": "UPC Direct",
                "notes": "⚠️ Receipt price is 14.7% higher - possible overcharge",
                "product_url": "https://www.walmart.com/ip/10450114",
            }
        },
    )

    item: ScannedItem
    online_price: Optional[Decimal] = Field(None, description="Current online price; None when not found")
    price_difference: Optional[Decimal] = Field(None, description="Receipt price minus online price")
    percent_difference: Optional[Decimal] = Field(None, description="Difference as % of online price")

    status: ValidationStatus
    confidence: ConfidenceLevel
    method: ValidationMethod
    notes: str = Field(default="", description="Human-readable explanation")

    product_url: Optional[str] = Field(None, description="Matched online product page")
    matched_name: Optional[str] = Field(None, description="Product title found online")
    matched_code: Optional[str] = Field(None, description="Product code of the online match")
    retailer: Optional[RetailerType] = Field(None, description="Retailer the price came from")

    @property
    def should_flag(self) -> bool:
        """Only flagged items warrant a user-facing warning"""
        return self.status in FLAGGED_STATUSES

    @property
    def did_overpay(self) -> bool:
        return self.price_difference is not None and self.price_difference > 0

    @property
    def formatted_difference(self) -> str:
        return format_signed_amount(self.price_difference)

    @property
    def formatted_percent_difference(self) -> str:
        return format_signed_percent(self.percent_difference)

    @property
    def status_icon(self) -> str:
        return STATUS_ICONS[self.status]

    @property
    def method_icon(self) -> str:
        return METHOD_ICONS[self.method]


class ValidationSummary(BaseModel):
    """
    Receipt-level rollup of item validation results

    Every aggregate is derived from `results` on access; nothing is stored
    or updated incrementally.
    """
    model_config = ConfigDict(frozen=True)

    results: List[PriceValidationResult] = Field(default_factory=list, description="One result per item, receipt order")
    validated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def _count(self, status: ValidationStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def flagged_items(self) -> List[PriceValidationResult]:
        return [r for r in self.results if r.should_flag]

    @property
    def total_items(self) -> int:
        return len(self.results)

    @property
    def successful_validations(self) -> int:
        return sum(1 for r in self.results if r.status in SUCCESSFUL_STATUSES)

    @property
    def exact_matches(self) -> int:
        return self._count(ValidationStatus.EXACT_MATCH)

    @property
    def within_tolerance(self) -> int:
        return self._count(ValidationStatus.WITHIN_TOLERANCE)

    @property
    def receipt_lower(self) -> int:
        return self._count(ValidationStatus.RECEIPT_LOWER)

    @property
    def possible_overcharges(self) -> int:
        return self._count(ValidationStatus.POSSIBLE_OVERCHARGE)

    @property
    def significant_overcharges(self) -> int:
        return self._count(ValidationStatus.SIGNIFICANT_OVERCHARGE)

    @property
    def not_found(self) -> int:
        return self._count(ValidationStatus.NOT_FOUND)

    @property
    def errors(self) -> int:
        return self._count(ValidationStatus.ERROR)

    @property
    def total_potential_overcharge(self) -> Decimal:
        """Sum of positive differences over flagged items"""
        return sum(
            (
                r.price_difference
                for r in self.flagged_items
                if r.price_difference is not None and r.price_difference > 0
            ),
            Decimal("0.00"),
        )

    @property
    def overall_status(self) -> OverallStatus:
        if self.significant_overcharges > 0:
            return OverallStatus.SIGNIFICANT_ISSUES
        if self.possible_overcharges > 0:
            return OverallStatus.POSSIBLE_ISSUES
        if self.results and self.successful_validations == self.total_items:
            return OverallStatus.ALL_GOOD
        return OverallStatus.NEEDS_REVIEW

    @property
    def summary_text(self) -> str:
        return "\n".join([
            "Receipt Validation Summary",
            "",
            f"Total Items: {self.total_items}",
            f"Successfully Validated: {self.successful_validations}",
            f"✅ Exact Matches: {self.exact_matches}",
            f"✓ Within Tolerance: {self.within_tolerance}",
            f"✓ Receipt Lower: {self.receipt_lower}",
            f"⚠️ Possible Overcharges: {self.possible_overcharges}",
            f"🚨 Significant Overcharges: {self.significant_overcharges}",
            f"🔍 Not Found: {self.not_found}",
            f"❌ Could Not Validate: {self.errors}",
            "",
            f"Potential Overcharge Total: ${self.total_potential_overcharge:.2f}",
            "",
            f"Status: {OVERALL_STATUS_DISPLAY_TEXTS[self.overall_status]}",
        ])
