import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from receipt_validator.common.config import load_settings
from receipt_validator.common.schemas.receipt_scanned import RetailerType
from receipt_validator.domain.validation.providers import (
    ApifyCatalogProvider,
    ProductQuery,
    ProviderAuthError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
    UPCLookupProvider,
)
from receipt_validator.domain.validation.rate_limiter import RateLimiter

UPC = "001234567890"


def _settings(**overrides):
    values = dict(
        validation_delay=0,
        apify_api_token="",
        upc_item_db_key="",
        barcode_lookup_key="",
        upc_database_key="",
        walmart_api_key="",
        open_food_facts_enabled=False,
    )
    values.update(overrides)
    return load_settings(**values)


def _lookup_upc(settings, handler, retailer=RetailerType.UNKNOWN):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = UPCLookupProvider(settings, client=client, rate_limiter=RateLimiter(0))
            return await provider.lookup(ProductQuery(product_code=UPC, name="MILK", retailer=retailer))

    return asyncio.run(run())


def test_upc_item_db_lookup() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "api.upcitemdb.com"
        assert request.url.params["upc"] == UPC
        assert request.headers["user_key"] == "item-key"
        return httpx.Response(200, json={"items": [{"title": "Great Value Milk", "brand": "Great Value",
                                                    "images": ["https://img/1.jpg"]}]})

    match = _lookup_upc(_settings(upc_item_db_key="item-key"), handler)

    assert match.title == "Great Value Milk"
    assert match.brand == "Great Value"
    assert match.price is None
    assert match.matched_code == UPC
    assert match.source == "upcitemdb"


def test_hybrid_falls_through_rate_limited_service() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.upcitemdb.com":
            return httpx.Response(429)
        assert request.url.path == f"/api/v2/product/{UPC}.json"
        return httpx.Response(200, json={"status": 1, "product": {"product_name": "Whole Milk", "brands": "GV"}})

    match = _lookup_upc(_settings(upc_item_db_key="item-key", open_food_facts_enabled=True), handler)

    assert match.title == "Whole Milk"
    assert match.source == "openfoodfacts"


def test_walmart_api_is_tried_first_for_walmart_receipts() -> None:
    hosts = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        return httpx.Response(200, json={"items": [{"name": "Great Value Milk", "salePrice": 3.48,
                                                    "productUrl": "https://www.walmart.com/ip/1"}]})

    match = _lookup_upc(
        _settings(walmart_api_key="wm-key", upc_item_db_key="item-key"), handler, RetailerType.WALMART
    )

    assert hosts == ["developer.api.walmart.com"]
    assert match.price == Decimal("3.48")
    assert match.retailer == RetailerType.WALMART


def test_barcode_lookup_store_listing_has_price() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["key"] == "bl-key"
        return httpx.Response(200, json={"products": [{
            "title": "Great Value Milk",
            "stores": [{"name": "Target", "price": "3.79", "link": "https://www.target.com/p/1"}],
        }]})

    match = _lookup_upc(_settings(barcode_lookup_key="bl-key"), handler)

    assert match.price == Decimal("3.79")
    assert match.product_url == "https://www.target.com/p/1"
    assert match.retailer == RetailerType.TARGET


def test_unknown_code_is_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.upcitemdb.com":
            return httpx.Response(200, json={"items": []})
        return httpx.Response(404)

    settings = _settings(upc_item_db_key="item-key", upc_database_key="db-key", open_food_facts_enabled=True)

    assert _lookup_upc(settings, handler) is None


def test_all_services_failing_raises_last_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with pytest.raises(ProviderResponseError) as excinfo:
        _lookup_upc(_settings(upc_item_db_key="item-key", upc_database_key="db-key"), handler)

    assert excinfo.value.status_code == 500
    assert excinfo.value.provider == "upcdatabase"


def test_no_upc_services_configured() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ProviderAuthError):
        _lookup_upc(_settings(), handler)


def test_transport_timeout_becomes_provider_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProviderTimeoutError):
        _lookup_upc(_settings(upc_item_db_key="item-key"), handler)


class ApifyStub:
    """Mock Apify API: run -> poll statuses -> dataset"""

    def __init__(self, statuses, items=None, start_status=201, dataset_id="ds-1"):
        self.statuses = list(statuses)
        self.items = items if items is not None else []
        self.start_status = start_status
        self.dataset_id = dataset_id
        self.start_payloads = []
        self.tokens = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.tokens.add(request.url.params.get("token"))
        path = request.url.path

        if request.method == "POST" and path == "/v2/acts/junglee~walmart-scraper/runs":
            self.start_payloads.append(json.loads(request.content))
            return httpx.Response(self.start_status, json={"data": {"id": "run-1"}})
        if path == "/v2/actor-runs/run-1":
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            run = {"status": status}
            if self.dataset_id is not None:
                run["defaultDatasetId"] = self.dataset_id
            return httpx.Response(200, json={"data": run})
        if path == "/v2/datasets/ds-1/items":
            return httpx.Response(200, json=self.items)
        return httpx.Response(404)


def _run_catalog(stub, call, **overrides):
    now = [0.0]
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        now[0] += seconds

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(stub)) as client:
            provider = ApifyCatalogProvider(
                _settings(apify_api_token="apify-token", **overrides),
                client=client,
                rate_limiter=RateLimiter(0),
                sleep=fake_sleep,
                clock=lambda: now[0],
            )
            return await call(provider)

    return asyncio.run(run()), sleeps


WALMART_ITEM = {
    "productName": "Great Value Whole Milk, 1 gal",
    "currentPrice": 3.48,
    "upc": UPC,
    "itemId": "10450114",
    "productUrl": "https://www.walmart.com/ip/10450114",
    "availableOnline": True,
}


def test_catalog_search_runs_actor_and_reads_dataset() -> None:
    stub = ApifyStub(["READY", "RUNNING", "SUCCEEDED"], items=[WALMART_ITEM])
    query = ProductQuery(product_code=UPC, name="GREAT VALUE MILK", retailer=RetailerType.WALMART)

    match, sleeps = _run_catalog(stub, lambda p: p.lookup(query))

    assert match.title == "Great Value Whole Milk, 1 gal"
    assert match.price == Decimal("3.48")
    assert match.matched_code == UPC
    assert match.product_url == "https://www.walmart.com/ip/10450114"
    assert match.retailer == RetailerType.WALMART
    assert sleeps == [2.0, 2.0]
    assert stub.tokens == {"apify-token"}
    assert stub.start_payloads == [{
        "startUrls": [{"url": "https://www.walmart.com/search?q=GREAT+VALUE+MILK"}],
        "maxItems": 1,
        "proxyConfiguration": {"useApifyProxy": True},
    }]


def test_product_page_scrape() -> None:
    stub = ApifyStub(["SUCCEEDED"], items=[WALMART_ITEM])

    match, _ = _run_catalog(stub, lambda p: p.fetch_product_page("https://www.walmart.com/ip/10450114"))

    assert match.price == Decimal("3.48")
    assert stub.start_payloads[0]["startUrls"] == [{"url": "https://www.walmart.com/ip/10450114"}]


def test_empty_dataset_is_not_found() -> None:
    stub = ApifyStub(["SUCCEEDED"], items=[])
    query = ProductQuery(name="MYSTERY ITEM", retailer=RetailerType.TARGET)

    match, _ = _run_catalog(stub, lambda p: p.lookup(query))

    assert match is None
    assert stub.start_payloads[0]["startUrls"][0]["url"] == "https://www.target.com/s?searchTerm=MYSTERY+ITEM"


def test_failed_run_raises_provider_error() -> None:
    stub = ApifyStub(["RUNNING", "FAILED"])

    with pytest.raises(ProviderError, match="FAILED"):
        _run_catalog(stub, lambda p: p.lookup(ProductQuery(name="MILK")))


def test_run_that_never_finishes_times_out() -> None:
    stub = ApifyStub(["RUNNING"])

    with pytest.raises(ProviderTimeoutError):
        _run_catalog(stub, lambda p: p.lookup(ProductQuery(name="MILK")),
                     provider_job_timeout=6, provider_poll_interval=2)


def test_rejected_token_is_auth_error() -> None:
    stub = ApifyStub(["SUCCEEDED"], start_status=401)

    with pytest.raises(ProviderAuthError):
        _run_catalog(stub, lambda p: p.lookup(ProductQuery(name="MILK")))


def test_missing_token_fails_before_any_request() -> None:
    provider = ApifyCatalogProvider(_settings())

    assert not provider.is_configured
    with pytest.raises(ProviderAuthError):
        asyncio.run(provider.run_scraper("https://www.walmart.com/search?q=milk"))


def test_unknown_retailer_searches_default_catalog() -> None:
    provider = ApifyCatalogProvider(_settings(apify_api_token="t"))

    assert provider.supports(RetailerType.UNKNOWN)
    assert not provider.supports(RetailerType.SAFEWAY)
    assert provider.search_url("milk 2%", RetailerType.LOWES) == "https://www.lowes.com/search?searchTerm=milk+2%25"


def test_code_only_query_searches_by_product_code() -> None:
    stub = ApifyStub(["SUCCEEDED"], items=[WALMART_ITEM])
    query = ProductQuery(product_code=UPC, retailer=RetailerType.WALMART)

    match, _ = _run_catalog(stub, lambda p: p.lookup(query))

    assert match.matched_code == UPC
    assert stub.start_payloads[0]["startUrls"] == [{"url": f"https://www.walmart.com/search?q={UPC}"}]


def test_succeeded_run_without_dataset_is_response_error() -> None:
    stub = ApifyStub(["SUCCEEDED"], dataset_id=None)

    with pytest.raises(ProviderResponseError, match="defaultDatasetId"):
        _run_catalog(stub, lambda p: p.lookup(ProductQuery(name="MILK")))
