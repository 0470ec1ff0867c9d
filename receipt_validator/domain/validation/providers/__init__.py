"""
Product data providers

All providers follow the ProductDataProvider protocol: lookup(query) returns a
ProductMatch, None (not found), or raises a ProviderError.
"""

from receipt_validator.domain.validation.providers.base import (
    CatalogProvider,
    ProductDataProvider,
    ProductMatch,
    ProductQuery,
    ProviderAuthError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
    RateLimitExceededError,
)
from receipt_validator.domain.validation.providers.upc_lookup import UPCLookupProvider
from receipt_validator.domain.validation.providers.apify_catalog import ApifyCatalogProvider

__all__ = [
    'CatalogProvider',
    'ProductDataProvider',
    'ProductMatch',
    'ProductQuery',
    'ProviderAuthError',
    'ProviderError',
    'ProviderResponseError',
    'ProviderTimeoutError',
    'RateLimitExceededError',
    'UPCLookupProvider',
    'ApifyCatalogProvider',
]
