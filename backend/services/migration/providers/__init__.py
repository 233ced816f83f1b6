# CRM platform providers used as migration source and destination

from typing import Callable

from ..domain import AccountCredentials
from .base import BaseCRMProvider, LocationInfo, Page
from .highlevel_provider import CATEGORY_ENDPOINTS, HighLevelProvider

ProviderFactory = Callable[[AccountCredentials], BaseCRMProvider]


def default_provider_factory(credentials: AccountCredentials) -> BaseCRMProvider:
    """Build a provider for live platform credentials"""
    return HighLevelProvider(credentials)


__all__ = [
    "BaseCRMProvider",
    "LocationInfo",
    "Page",
    "HighLevelProvider",
    "CATEGORY_ENDPOINTS",
    "ProviderFactory",
    "default_provider_factory",
]
