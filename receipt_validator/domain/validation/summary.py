"""
Validation Summary Aggregator

Rolls item results into a receipt-level report. The summary only stores the
results; counts, flagged items, overcharge total and overall status are all
derived on access.
"""
from datetime import datetime
from typing import Iterable, Optional

import structlog

from receipt_validator.domain.validation.schemas import PriceValidationResult, ValidationSummary

logger = structlog.get_logger()


def summarize(
    results: Iterable[PriceValidationResult],
    validated_at: Optional[datetime] = None,
) -> ValidationSummary:
    """
    Build a ValidationSummary from item results (order preserved).

    Example:
        ```python
        summary = summarize(results)
        if summary.flagged_items:
            print(f"Possible overcharge: ${summary.total_potential_overcharge}")
        ```
    """
    data = {"results": list(results)}
    if validated_at is not None:
        data["validated_at"] = validated_at

    summary = ValidationSummary(**data)

    logger.debug("validation_summarized",
                 items=summary.total_items,
                 flagged=len(summary.flagged_items),
                 overall_status=summary.overall_status.value)
    return summary
