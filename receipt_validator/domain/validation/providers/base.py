"""
Product data provider contract

Every external product-data source is used through the same shape:
given a product code and/or a free-text name, return a ProductMatch,
None for "not found", or raise a ProviderError. The validation engine is
written against this contract only.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from receipt_validator.common.schemas.receipt_scanned import RetailerType, to_cents


class ProviderError(Exception):
    """Transport or provider-level failure; the engine falls through on it"""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    """Request or provider job exceeded its time budget"""


class RateLimitExceededError(ProviderError):
    """Provider answered HTTP 429"""


class ProviderAuthError(ProviderError):
    """Missing or rejected credentials (HTTP 401/403)"""


class ProviderResponseError(ProviderError):
    """Unexpected status code or malformed body"""

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, provider)
        self.status_code = status_code


class ProductQuery(BaseModel):
    """What we know about the receipt item we're looking for"""
    model_config = ConfigDict(frozen=True)

    product_code: Optional[str] = Field(None, description="UPC/SKU digits from the receipt")
    name: Optional[str] = Field(None, description="Free-text product name")
    retailer: RetailerType = Field(default=RetailerType.UNKNOWN)

    @model_validator(mode="after")
    def require_code_or_name(self):
        if not self.product_code and not self.name:
            raise ValueError("ProductQuery needs a product_code or a name")
        return self


class ProductMatch(BaseModel):
    """A product found by a provider"""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Product title as listed online")
    price: Optional[Decimal] = Field(None, gt=0, description="Current online price")
    product_url: Optional[str] = Field(None, description="Product page")
    matched_code: Optional[str] = Field(None, description="Product code of the listing")
    brand: Optional[str] = None
    image_url: Optional[str] = None
    retailer: Optional[RetailerType] = None
    source: str = Field(default="", description="Provider/service that produced the match")

    @field_validator("price")
    @classmethod
    def round_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return to_cents(v) if v is not None else None


@runtime_checkable
class ProductDataProvider(Protocol):
    """Interface every product data source implements"""

    name: str

    def supports(self, retailer: RetailerType) -> bool:
        """True if this provider can answer for the retailer"""
        ...

    async def lookup(self, query: ProductQuery) -> Optional[ProductMatch]:
        """
        Find the product.

        Returns:
            ProductMatch, or None if the provider has no such product

        Raises:
            ProviderError: transport, auth, rate-limit, timeout or bad response
        """
        ...


@runtime_checkable
class CatalogProvider(ProductDataProvider, Protocol):
    """Provider that can also read a specific product page"""

    async def fetch_product_page(self, url: str) -> Optional[ProductMatch]:
        ...


def parse_price(value: Any) -> Optional[Decimal]:
    """Positive price from a JSON number/string, else None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value).replace("$", "").replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return None
    return price if price > 0 else None


def check_response(provider: str, response: httpx.Response, ok: Iterable[int] = (200,)) -> Optional[Any]:
    """
    Map an HTTP response onto the provider error taxonomy.

    Returns:
        Decoded JSON body, or None for 404 (product not found)

    Raises:
        RateLimitExceededError: 429
        ProviderAuthError: 401/403
        ProviderResponseError: any other unexpected status, or a body that isn't JSON
    """
    status = response.status_code

    if status in ok:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderResponseError(
                f"{provider} returned malformed JSON", provider, status
            ) from e

    if status == 404:
        return None
    if status == 429:
        raise RateLimitExceededError(f"{provider} rate limit exceeded", provider)
    if status in (401, 403):
        raise ProviderAuthError(f"{provider} rejected credentials (HTTP {status})", provider)

    raise ProviderResponseError(f"{provider} request failed (HTTP {status})", provider, status)


async def send_request(
    provider: str,
    client: Optional[httpx.AsyncClient],
    method: str,
    url: str,
    timeout: float,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send one request, translating transport failures into ProviderErrors.

    Uses the shared client when one is injected, otherwise a short-lived one.
    """
    try:
        if client is not None:
            return await client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as session:
            return await session.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        raise ProviderTimeoutError(f"{provider} timed out after {timeout}s", provider) from e
    except httpx.HTTPError as e:
        raise ProviderError(f"{provider} request failed: {e}", provider) from e
