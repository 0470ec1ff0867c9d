from decimal import Decimal
from typing import Optional

from receipt_validator.common.schemas.receipt_scanned import ScannedItem
from receipt_validator.domain.validation.schemas import (
    ConfidenceLevel,
    OverallStatus,
    PriceValidationResult,
    ValidationMethod,
    ValidationStatus,
)
from receipt_validator.domain.validation.summary import summarize


def _result(status: ValidationStatus, difference: Optional[str] = None, name: str = "ITEM") -> PriceValidationResult:
    found = status not in (ValidationStatus.NOT_FOUND, ValidationStatus.ERROR)
    return PriceValidationResult(
        item=ScannedItem(name=name, price=Decimal("5.00")),
        online_price=Decimal("4.00") if found else None,
        price_difference=Decimal(difference) if difference is not None else None,
        status=status,
        confidence=ConfidenceLevel.LOW if found else ConfidenceLevel.NONE,
        method=ValidationMethod.NAME_SEARCH if found else ValidationMethod.NOT_FOUND,
    )


def test_overcharge_total_and_significant_status() -> None:
    summary = summarize([
        _result(ValidationStatus.EXACT_MATCH, "0.01", name="ONE"),
        _result(ValidationStatus.POSSIBLE_OVERCHARGE, "1.00", name="TWO"),
        _result(ValidationStatus.NOT_FOUND, name="THREE"),
        _result(ValidationStatus.POSSIBLE_OVERCHARGE, "2.00", name="FOUR"),
        _result(ValidationStatus.SIGNIFICANT_OVERCHARGE, "5.00", name="FIVE"),
    ])

    assert summary.total_potential_overcharge == Decimal("8.00")
    assert summary.overall_status == OverallStatus.SIGNIFICANT_ISSUES
    assert [r.item.name for r in summary.flagged_items] == ["TWO", "FOUR", "FIVE"]
    assert summary.total_items == 5
    assert summary.successful_validations == 4
    assert summary.possible_overcharges == 2
    assert summary.significant_overcharges == 1
    assert summary.not_found == 1


def test_negative_differences_never_reduce_overcharge_total() -> None:
    summary = summarize([
        _result(ValidationStatus.POSSIBLE_OVERCHARGE, "1.50"),
        _result(ValidationStatus.RECEIPT_LOWER, "-3.00"),
    ])

    assert summary.total_potential_overcharge == Decimal("1.50")
    assert summary.overall_status == OverallStatus.POSSIBLE_ISSUES


def test_all_good_requires_every_item_validated() -> None:
    good = [
        _result(ValidationStatus.EXACT_MATCH, "0.00"),
        _result(ValidationStatus.WITHIN_TOLERANCE, "0.30"),
        _result(ValidationStatus.RECEIPT_LOWER, "-2.00"),
    ]

    assert summarize(good).overall_status == OverallStatus.ALL_GOOD
    assert summarize(good + [_result(ValidationStatus.ERROR)]).overall_status == OverallStatus.NEEDS_REVIEW
    assert summarize([]).overall_status == OverallStatus.NEEDS_REVIEW


def test_summary_text_and_result_formatting() -> None:
    summary = summarize([_result(ValidationStatus.SIGNIFICANT_OVERCHARGE, "5.00")])
    result = summary.results[0]

    assert result.should_flag
    assert result.did_overpay
    assert result.formatted_difference == "+$5.00"
    assert result.formatted_percent_difference == "N/A"
    assert result.status_icon == "🚨"
    assert "Potential Overcharge Total: $5.00" in summary.summary_text
    assert "Significant billing errors detected" in summary.summary_text
