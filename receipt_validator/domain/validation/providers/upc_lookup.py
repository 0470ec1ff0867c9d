"""
UPC Lookup Provider - Product lookup by barcode across public UPC databases

Services (hybrid order):
1. Walmart affiliate API   - only for Walmart receipts, needs WALMART_API_KEY, has prices
2. UPCItemDB               - free tier 100 req/day, titles only
3. Open Food Facts         - no key, food products only, titles only
4. Barcode Lookup          - paid, first store listing has price + link
5. UPC Database            - free tier, titles only

The first service that knows the product wins. A title without a price is
still useful: the validation engine either scrapes the returned product
link or searches the retailer catalog with the verified title.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx
import structlog

from receipt_validator.common.config import Settings
from receipt_validator.common.schemas.receipt_scanned import RetailerType
from receipt_validator.domain.validation.providers.base import (
    ProductMatch,
    ProductQuery,
    ProviderAuthError,
    ProviderError,
    check_response,
    parse_price,
    send_request,
)
from receipt_validator.domain.validation.rate_limiter import RateLimiter
from receipt_validator.parsers.store_detector import detect_store

logger = structlog.get_logger()

UPC_ITEM_DB_URL = "https://api.upcitemdb.com/prod/trial/lookup"
BARCODE_LOOKUP_URL = "https://api.barcodelookup.com/v3/products"
UPC_DATABASE_URL = "https://api.upcdatabase.org/product/{upc}"
OPEN_FOOD_FACTS_URL = "https://world.openfoodfacts.org/api/v2/product/{upc}.json"
WALMART_API_URL = "https://developer.api.walmart.com/api-proxy/service/affil/product/v2/items"


class UPCLookupProvider:
    """
    Hybrid UPC lookup over every configured barcode service.

    DISABLED when no UPC key is set and Open Food Facts is turned off.
    """

    name = "upc_lookup"

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.settings = settings
        self.api_keys = settings.upc_api_keys
        self.client = client
        self.rate_limiter = rate_limiter or RateLimiter(settings.validation_delay, name=self.name)

    @property
    def is_configured(self) -> bool:
        return self.settings.is_upc_lookup_configured

    def supports(self, retailer: RetailerType) -> bool:
        """Barcode databases are retailer-agnostic"""
        return True

    async def lookup(self, query: ProductQuery) -> Optional[ProductMatch]:
        """
        Look up a product by its UPC, trying services in hybrid order.

        Returns:
            First ProductMatch found, or None if no service knows the code

        Raises:
            ProviderAuthError: No service is configured
            ProviderError: Every attempted service failed (last failure re-raised)
        """
        if not query.product_code:
            return None

        services = self._services_for(query.retailer)
        if not services:
            raise ProviderAuthError("No UPC lookup services configured", self.name)

        upc = query.product_code
        failures: List[ProviderError] = []

        for service_name, lookup in services:
            try:
                match = await lookup(upc)
            except ProviderError as e:
                logger.warning("upc_service_failed",
                               service=service_name,
                               upc=upc,
                               error=str(e))
                failures.append(e)
                continue

            if match is not None:
                logger.info("upc_lookup_success",
                            service=service_name,
                            upc=upc,
                            title=match.title,
                            has_price=match.price is not None)
                return match

            logger.debug("upc_service_no_match", service=service_name, upc=upc)

        if len(failures) == len(services):
            raise failures[-1]

        logger.info("upc_lookup_not_found", upc=upc, services=len(services))
        return None

    def _services_for(
        self, retailer: RetailerType
    ) -> List[Tuple[str, Callable[[str], Awaitable[Optional[ProductMatch]]]]]:
        services = []
        if retailer == RetailerType.WALMART and "walmart" in self.api_keys:
            services.append(("walmart", self.lookup_walmart))
        if "upcItemDB" in self.api_keys:
            services.append(("upcitemdb", self.lookup_upc_item_db))
        if self.settings.open_food_facts_enabled:
            services.append(("openfoodfacts", self.lookup_open_food_facts))
        if "barcodeLookup" in self.api_keys:
            services.append(("barcodelookup", self.lookup_barcode_lookup))
        if "upcDatabase" in self.api_keys:
            services.append(("upcdatabase", self.lookup_upc_database))
        return services

    async def _get_json(self, service: str, url: str, **kwargs: Any) -> Optional[Any]:
        await self.rate_limiter.wait()
        response = await send_request(
            service, self.client, "GET", url, self.settings.network_timeout, **kwargs
        )
        return check_response(service, response)

    # Individual services

    async def lookup_upc_item_db(self, upc: str) -> Optional[ProductMatch]:
        """UPCItemDB (https://www.upcitemdb.com/) - no prices"""
        data = await self._get_json(
            "upcitemdb",
            UPC_ITEM_DB_URL,
            params={"upc": upc},
            headers={"user_key": self.api_keys["upcItemDB"], "Accept": "application/json"},
        )
        items = (data or {}).get("items") or []
        if not items or not items[0].get("title"):
            return None

        item = items[0]
        images = item.get("images") or []
        return ProductMatch(
            title=item["title"],
            brand=item.get("brand"),
            image_url=images[0] if images else None,
            matched_code=upc,
            source="upcitemdb",
        )

    async def lookup_barcode_lookup(self, upc: str) -> Optional[ProductMatch]:
        """Barcode Lookup (https://www.barcodelookup.com/api) - first store has price and link"""
        data = await self._get_json(
            "barcodelookup",
            BARCODE_LOOKUP_URL,
            params={"barcode": upc, "key": self.api_keys["barcodeLookup"]},
        )
        products = (data or {}).get("products") or []
        if not products or not products[0].get("title"):
            return None

        product = products[0]
        stores = product.get("stores") or []
        store: Dict[str, Any] = stores[0] if stores else {}
        images = product.get("images") or []
        store_retailer = detect_store([store["name"]]) if store.get("name") else RetailerType.UNKNOWN

        return ProductMatch(
            title=product["title"],
            brand=product.get("brand"),
            price=parse_price(store.get("price")),
            product_url=store.get("link"),
            image_url=images[0] if images else None,
            matched_code=upc,
            retailer=store_retailer if store_retailer != RetailerType.UNKNOWN else None,
            source="barcodelookup",
        )

    async def lookup_upc_database(self, upc: str) -> Optional[ProductMatch]:
        """UPC Database (https://upcdatabase.org/) - no prices"""
        data = await self._get_json(
            "upcdatabase",
            UPC_DATABASE_URL.format(upc=upc),
            params={"apikey": self.api_keys["upcDatabase"]},
        )
        if not data or not data.get("title"):
            return None

        return ProductMatch(
            title=data["title"],
            brand=data.get("brand") or None,
            matched_code=upc,
            source="upcdatabase",
        )

    async def lookup_open_food_facts(self, upc: str) -> Optional[ProductMatch]:
        """Open Food Facts (https://world.openfoodfacts.org/) - no key, food only"""
        data = await self._get_json("openfoodfacts", OPEN_FOOD_FACTS_URL.format(upc=upc))
        if not data or data.get("status") != 1 or not data.get("product"):
            return None

        product = data["product"]
        return ProductMatch(
            title=product.get("product_name") or "Unknown",
            brand=product.get("brands"),
            image_url=product.get("image_url"),
            matched_code=upc,
            source="openfoodfacts",
        )

    async def lookup_walmart(self, upc: str) -> Optional[ProductMatch]:
        """Walmart affiliate API (https://developer.walmart.com/) - has prices"""
        data = await self._get_json(
            "walmart",
            WALMART_API_URL,
            params={"upc": upc},
            headers={"WM_SEC.KEY_VERSION": self.api_keys["walmart"], "Accept": "application/json"},
        )
        items = (data or {}).get("items") or []
        if not items or not items[0].get("name"):
            return None

        item = items[0]
        return ProductMatch(
            title=item["name"],
            brand=item.get("brandName"),
            price=parse_price(item.get("salePrice")),
            product_url=item.get("productUrl"),
            image_url=item.get("thumbnailImage"),
            matched_code=item.get("upc") or upc,
            retailer=RetailerType.WALMART,
            source="walmart",
        )
