"""
Apify Catalog Provider - Retailer catalog search through Apify scraper actors

Each lookup is one actor run:
1. POST  /acts/{actor}/runs           start the scraper on a search or product URL
2. GET   /actor-runs/{run_id}         poll until SUCCEEDED (every 2s, 60s budget)
3. GET   /datasets/{dataset_id}/items read the scraped products

The default actor (junglee/walmart-scraper) understands Walmart URLs; set
APIFY_ACTOR_ID to an actor that handles the other retailers' search pages.
Unknown stores are searched on Walmart.
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote_plus

import httpx
import structlog

from receipt_validator.common.config import Settings
from receipt_validator.common.schemas.receipt_scanned import RetailerType
from receipt_validator.domain.validation.providers.base import (
    ProductMatch,
    ProductQuery,
    ProviderAuthError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
    check_response,
    parse_price,
    send_request,
)
from receipt_validator.domain.validation.rate_limiter import RateLimiter
from receipt_validator.parsers.store_detector import detect_store

logger = structlog.get_logger()

# Retailer search pages the scraper is pointed at
SEARCH_URL_TEMPLATES: Dict[RetailerType, str] = {
    RetailerType.WALMART: "https://www.walmart.com/search?q={query}",
    RetailerType.TARGET: "https://www.target.com/s?searchTerm={query}",
    RetailerType.COSTCO: "https://www.costco.com/CatalogSearch?keyword={query}",
    RetailerType.HOME_DEPOT: "https://www.homedepot.com/s/{query}",
    RetailerType.LOWES: "https://www.lowes.com/search?searchTerm={query}",
    RetailerType.KROGER: "https://www.kroger.com/search?query={query}",
}

DEFAULT_SEARCH_RETAILER = RetailerType.WALMART

RUNNING_STATUSES = {"READY", "RUNNING"}
FAILED_STATUSES = {"FAILED", "ABORTED", "TIMED-OUT"}

# Dataset field names differ between actors; first present wins
TITLE_FIELDS = ("productName", "name", "title")
PRICE_FIELDS = ("currentPrice", "price", "salePrice")
URL_FIELDS = ("productUrl", "url")
CODE_FIELDS = ("upc", "gtin")


def _first_field(product: Dict[str, Any], fields) -> Optional[Any]:
    for field in fields:
        value = product.get(field)
        if value not in (None, ""):
            return value
    return None


class ApifyCatalogProvider:
    """
    Search a retailer's online catalog and read product pages via Apify.

    Requires APIFY_API_TOKEN.
    """

    name = "apify_catalog"

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.api_token = settings.apify_api_token
        self.actor_id = settings.apify_actor_id
        self.base_url = settings.apify_base_url.rstrip("/")
        self.client = client
        self.rate_limiter = rate_limiter or RateLimiter(settings.validation_delay, name=self.name)
        self._sleep = sleep
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    def supports(self, retailer: RetailerType) -> bool:
        return retailer in SEARCH_URL_TEMPLATES or retailer == RetailerType.UNKNOWN

    def search_url(self, term: str, retailer: RetailerType) -> str:
        template = SEARCH_URL_TEMPLATES.get(retailer, SEARCH_URL_TEMPLATES[DEFAULT_SEARCH_RETAILER])
        return template.format(query=quote_plus(term))

    async def lookup(self, query: ProductQuery) -> Optional[ProductMatch]:
        """
        Search the retailer catalog and return the first product.

        Searches by name when one is given, otherwise by product code.
        """
        term = query.name or query.product_code
        retailer = query.retailer if query.retailer in SEARCH_URL_TEMPLATES else DEFAULT_SEARCH_RETAILER
        url = self.search_url(term, retailer)

        logger.info("catalog_search_started",
                    retailer=retailer.value,
                    term=term,
                    url=url)

        products = await self.run_scraper(url)
        match = self._first_match(products, retailer)

        if match is None:
            logger.info("catalog_search_no_results", retailer=retailer.value, term=term)
        else:
            logger.info("catalog_search_success",
                        retailer=retailer.value,
                        title=match.title,
                        price=float(match.price) if match.price is not None else None)
        return match

    async def fetch_product_page(self, url: str) -> Optional[ProductMatch]:
        """Scrape one specific product page"""
        logger.info("product_page_scrape_started", url=url)
        products = await self.run_scraper(url)
        retailer = detect_store([url])
        return self._first_match(products, retailer if retailer != RetailerType.UNKNOWN else None)

    # Actor run lifecycle

    async def run_scraper(self, url: str) -> List[Dict[str, Any]]:
        """
        Start an actor run on `url`, wait for it and return the dataset items.

        Raises:
            ProviderAuthError: No token configured
            ProviderTimeoutError: Run didn't finish within provider_job_timeout
            ProviderError: Run failed/aborted or Apify returned an error
        """
        if not self.api_token:
            raise ProviderAuthError("APIFY_API_TOKEN is not configured", self.name)

        run_id = await self._start_run(url)
        dataset_id = await self._wait_for_run(run_id)
        return await self._fetch_dataset(dataset_id)

    async def _call(self, method: str, url: str, ok=(200,), **kwargs: Any) -> Optional[Any]:
        await self.rate_limiter.wait()
        params = {"token": self.api_token}
        response = await send_request(
            self.name, self.client, method, url, self.settings.network_timeout,
            params=params, **kwargs
        )
        return check_response(self.name, response, ok=ok)

    async def _start_run(self, url: str) -> str:
        actor_path = self.actor_id.replace("/", "~")
        payload = {
            "startUrls": [{"url": url}],
            "maxItems": 1,
            "proxyConfiguration": {"useApifyProxy": True},
        }
        data = await self._call(
            "POST", f"{self.base_url}/acts/{actor_path}/runs", ok=(201,), json=payload
        )
        try:
            run_id = data["data"]["id"]
        except (TypeError, KeyError) as e:
            raise ProviderResponseError("Apify run response missing data.id", self.name) from e

        logger.debug("apify_run_started", run_id=run_id, actor=self.actor_id)
        return run_id

    async def _wait_for_run(self, run_id: str) -> str:
        deadline = self._clock() + self.settings.provider_job_timeout
        url = f"{self.base_url}/actor-runs/{run_id}"

        while self._clock() < deadline:
            data = await self._call("GET", url)
            try:
                run = data["data"]
                status = run["status"]
                dataset_id = run["defaultDatasetId"] if status == "SUCCEEDED" else None
            except (TypeError, KeyError) as e:
                raise ProviderResponseError(
                    "Apify run response missing data.status or defaultDatasetId", self.name
                ) from e

            if status == "SUCCEEDED":
                logger.debug("apify_run_succeeded", run_id=run_id)
                return dataset_id
            if status in FAILED_STATUSES:
                raise ProviderError(f"Apify run {run_id} ended with status {status}", self.name)
            if status not in RUNNING_STATUSES:
                raise ProviderResponseError(f"Unknown Apify run status {status}", self.name)

            await self._sleep(self.settings.provider_poll_interval)

        raise ProviderTimeoutError(
            f"Apify run {run_id} did not finish within {self.settings.provider_job_timeout}s",
            self.name,
        )

    async def _fetch_dataset(self, dataset_id: str) -> List[Dict[str, Any]]:
        data = await self._call("GET", f"{self.base_url}/datasets/{dataset_id}/items")
        if data is None:
            return []
        if not isinstance(data, list):
            raise ProviderResponseError("Apify dataset items is not a list", self.name)
        return [item for item in data if isinstance(item, dict)]

    def _first_match(
        self,
        products: List[Dict[str, Any]],
        retailer: Optional[RetailerType],
    ) -> Optional[ProductMatch]:
        for product in products:
            title = _first_field(product, TITLE_FIELDS)
            if not title:
                continue
            code = _first_field(product, CODE_FIELDS)
            return ProductMatch(
                title=str(title),
                price=parse_price(_first_field(product, PRICE_FIELDS)),
                product_url=_first_field(product, URL_FIELDS),
                matched_code=str(code) if code is not None else None,
                retailer=retailer,
                source=self.name,
            )
        return None
