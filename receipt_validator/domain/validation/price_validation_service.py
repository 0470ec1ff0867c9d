"""
Price Validation Service - Checks receipt prices against current online prices

Strategy per item (first success wins):
1. UPC Direct:   item has a UPC and the UPC provider returns a price
2. UPC + Scrape: the UPC provider returns a product link, scrape that page
3. Name Search:  search the retailer catalog (by the UPC-verified title when
                 step 1 found one, otherwise by the receipt name)
4. Not Found:    nothing matched

Provider failures never abort an item: each step catches and falls through.
Only when every attempted step failed does the item come back as ERROR.

Example:
- Receipt: "GREAT VALUE MILK" 3.99, UPC 001234567890
- UPC lookup: Walmart API returns $3.48
- Result: POSSIBLE_OVERCHARGE (+14.7%), confidence HIGH, method "UPC Direct"
"""
import asyncio
from typing import Callable, List, Optional, Sequence

import structlog

from receipt_validator.common.config import Settings
from receipt_validator.common.schemas.receipt_scanned import (
    RetailerType,
    ScannedItem,
    ScannedReceiptData,
    retailer_display_name,
)
from receipt_validator.domain.validation.classifier import (
    classify_price,
    codes_match,
    determine_confidence,
    generate_notes,
    price_delta,
    round_percent,
)
from receipt_validator.domain.validation.providers.apify_catalog import ApifyCatalogProvider
from receipt_validator.domain.validation.providers.base import (
    CatalogProvider,
    ProductDataProvider,
    ProductMatch,
    ProductQuery,
    ProviderError,
)
from receipt_validator.domain.validation.providers.upc_lookup import UPCLookupProvider
from receipt_validator.domain.validation.schemas import (
    ConfidenceLevel,
    PriceValidationResult,
    ValidationMethod,
    ValidationStatus,
    ValidationSummary,
)
from receipt_validator.domain.validation.summary import summarize

logger = structlog.get_logger()

ProgressCallback = Callable[[float], None]


class ValidationCancelledError(Exception):
    """Caller cancelled a batch validation between items"""

    def __init__(self, completed: int, total: int):
        super().__init__(f"Price validation cancelled after {completed} of {total} items")
        self.completed = completed
        self.total = total


def price_source_label(retailer: Optional[RetailerType]) -> str:
    """'Walmart.com', 'HomeDepot.com' ... or a generic label"""
    if retailer is None or retailer == RetailerType.UNKNOWN:
        return "the online listing"
    return retailer_display_name(retailer).replace(" ", "") + ".com"


class PriceValidationService:
    """
    Validates receipt items against online prices.

    Usage:
        service = PriceValidationService.from_settings(load_settings())
        summary = await service.validate_receipt(receipt)
        print(summary.summary_text)
    """

    def __init__(
        self,
        settings: Settings,
        upc_provider: Optional[ProductDataProvider] = None,
        catalog_provider: Optional[CatalogProvider] = None,
    ):
        self.settings = settings
        self.upc_provider = upc_provider
        self.catalog_provider = catalog_provider

    @classmethod
    def from_settings(cls, settings: Settings) -> "PriceValidationService":
        """Build the service with every provider the settings have credentials for"""
        if not settings.is_validation_configured:
            logger.warning("price_validation_not_configured",
                           message=settings.configuration_message)
            return cls(settings)

        upc_provider = UPCLookupProvider(settings) if settings.is_upc_lookup_configured else None
        catalog_provider = ApifyCatalogProvider(settings) if settings.is_apify_configured else None

        logger.info("price_validation_configured",
                    upc_lookup=upc_provider is not None,
                    catalog=catalog_provider is not None)
        return cls(settings, upc_provider=upc_provider, catalog_provider=catalog_provider)

    @property
    def is_available(self) -> bool:
        return self.settings.enable_price_validation and (
            self.upc_provider is not None or self.catalog_provider is not None
        )

    @property
    def configuration_message(self) -> str:
        if self.is_available:
            return "Configuration OK"
        message = self.settings.configuration_message
        if message == "Configuration OK":
            return "No price data provider configured."
        return message

    # Single item

    async def validate_item(
        self,
        item: ScannedItem,
        retailer: RetailerType = RetailerType.UNKNOWN,
    ) -> PriceValidationResult:
        """
        Validate one item through the strategy cascade.

        Never raises for provider problems; returns NOT_FOUND or ERROR instead.

        Args:
            item: Parsed receipt item
            retailer: Store the receipt came from

        Returns:
            PriceValidationResult
        """
        if not self.is_available:
            return self._error_result(
                item, retailer, f"Price validation not available: {self.configuration_message}"
            )

        logger.info("price_validation_started",
                    item=item.name,
                    price=float(item.price),
                    sku=item.sku,
                    retailer=retailer.value)

        attempted = 0
        failures: List[Exception] = []
        verified_title: Optional[str] = None

        # Strategy 1 + 2: UPC first
        if item.sku and self.upc_provider is not None and self.settings.prefer_upc_lookup:
            attempted += 1
            query = ProductQuery(product_code=item.sku, name=item.name, retailer=retailer)
            upc_match = await self._attempt("upc_lookup", self.upc_provider.lookup(query), failures)

            if upc_match is not None:
                verified_title = upc_match.title

                if upc_match.price is not None:
                    return self._priced_result(item, retailer, upc_match, ValidationMethod.UPC_DIRECT)

                if upc_match.product_url and self.catalog_provider is not None:
                    attempted += 1
                    page = await self._attempt(
                        "product_page_scrape",
                        self.catalog_provider.fetch_product_page(upc_match.product_url),
                        failures,
                    )
                    if page is not None and page.price is not None:
                        if not page.matched_code:
                            page = page.model_copy(update={"matched_code": upc_match.matched_code})
                        return self._priced_result(item, retailer, page, ValidationMethod.UPC_WITH_SCRAPE)

        # Strategy 3: name search
        if self.catalog_provider is not None and self.catalog_provider.supports(retailer):
            attempted += 1
            search_name = verified_title or item.name
            if verified_title:
                logger.info("searching_with_verified_title", item=item.name, title=verified_title)
            query = ProductQuery(product_code=item.sku, name=search_name, retailer=retailer)
            match = await self._attempt("name_search", self.catalog_provider.lookup(query), failures)

            if match is not None and match.price is not None:
                return self._priced_result(item, retailer, match, ValidationMethod.NAME_SEARCH)

        if attempted and len(failures) == attempted:
            return self._error_result(item, retailer, f"Validation failed: {failures[-1]}")

        logger.info("price_validation_not_found", item=item.name, attempted=attempted)
        return PriceValidationResult(
            item=item,
            status=ValidationStatus.NOT_FOUND,
            confidence=ConfidenceLevel.NONE,
            method=ValidationMethod.NOT_FOUND,
            notes=generate_notes(ValidationStatus.NOT_FOUND, source=price_source_label(retailer)),
            retailer=retailer,
        )

    async def _attempt(self, step: str, call, failures: List[Exception]) -> Optional[ProductMatch]:
        try:
            return await call
        except ProviderError as e:
            logger.warning("validation_step_failed",
                           step=step,
                           provider=e.provider,
                           error_type=type(e).__name__,
                           error=str(e))
            failures.append(e)
        except Exception as e:
            logger.error("validation_step_error",
                         step=step,
                         error=str(e),
                         exc_info=True)
            failures.append(e)
        return None

    def _priced_result(
        self,
        item: ScannedItem,
        retailer: RetailerType,
        match: ProductMatch,
        method: ValidationMethod,
    ) -> PriceValidationResult:
        difference, percent = price_delta(item.price, match.price)
        status = classify_price(percent, self.settings.price_tolerance_percentage)
        confidence = determine_confidence(item.sku, match.matched_code)
        code_mismatch = bool(item.sku and match.matched_code and not codes_match(item.sku, match.matched_code))
        source_retailer = match.retailer or retailer

        if code_mismatch:
            logger.warning("product_code_mismatch",
                           item=item.name,
                           expected=item.sku,
                           found=match.matched_code)

        result = PriceValidationResult(
            item=item,
            online_price=match.price,
            price_difference=difference,
            percent_difference=round_percent(percent),
            status=status,
            confidence=confidence,
            method=method,
            notes=generate_notes(
                status,
                difference=difference,
                percent_difference=percent,
                source=price_source_label(source_retailer),
                code_mismatch=code_mismatch,
            ),
            product_url=match.product_url,
            matched_name=match.title,
            matched_code=match.matched_code,
            retailer=source_retailer,
        )

        logger.info("price_validation_complete",
                    item=item.name,
                    method=method.value,
                    status=status.value,
                    confidence=confidence.value,
                    online_price=float(match.price),
                    difference=float(difference))
        return result

    def _error_result(self, item: ScannedItem, retailer: RetailerType, notes: str) -> PriceValidationResult:
        logger.warning("price_validation_error", item=item.name, notes=notes)
        return PriceValidationResult(
            item=item,
            status=ValidationStatus.ERROR,
            confidence=ConfidenceLevel.NONE,
            method=ValidationMethod.FAILED,
            notes=notes,
            retailer=retailer,
        )

    # Batch

    async def validate_items(
        self,
        items: Sequence[ScannedItem],
        retailer: RetailerType = RetailerType.UNKNOWN,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[PriceValidationResult]:
        """
        Validate items one at a time, in receipt order.

        Args:
            items: Items to validate
            retailer: Store the receipt came from
            progress: Called with completed/total after each item
            cancel_event: Set it to stop before the next item

        Returns:
            One result per item, same order as `items`

        Raises:
            ValidationCancelledError: cancel_event was set
        """
        total = len(items)
        results: List[PriceValidationResult] = []

        logger.info("batch_validation_started", items=total, retailer=retailer.value)

        for index, item in enumerate(items):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("batch_validation_cancelled", completed=index, total=total)
                raise ValidationCancelledError(index, total)

            try:
                result = await self.validate_item(item, retailer)
            except Exception as e:
                logger.error("item_validation_failed",
                             item=item.name,
                             error=str(e),
                             exc_info=True)
                result = self._error_result(item, retailer, f"Validation failed: {e}")

            results.append(result)

            if progress is not None:
                progress((index + 1) / total)

        flagged = sum(1 for r in results if r.should_flag)
        logger.info("batch_validation_complete", items=total, flagged=flagged)
        return results

    async def validate_receipt(
        self,
        receipt: ScannedReceiptData,
        retailer: Optional[RetailerType] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ValidationSummary:
        """
        Validate every item on a parsed receipt.

        Args:
            receipt: Parser output
            retailer: Overrides the retailer the receipt was parsed as

        Returns:
            ValidationSummary for the receipt
        """
        retailer = retailer or receipt.retailer
        results = await self.validate_items(
            receipt.items, retailer, progress=progress, cancel_event=cancel_event
        )
        summary = summarize(results)

        logger.info("receipt_validation_complete",
                    store=receipt.store_name,
                    items=summary.total_items,
                    overall_status=summary.overall_status.value,
                    potential_overcharge=float(summary.total_potential_overcharge))
        return summary
