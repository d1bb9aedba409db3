"""
Store Registry — Lookup stores by name.

The store name is the variant tag: it prefixes the store's annotations
on the secret and selects the implementation here.

`default_registry` registers every provider in STORE_TYPES. In mock mode
each one is replaced by a MemoryStore with the same name and requirements.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Type

import httpx

from ..config.loader import SyncSettings
from ..errors import ConfigurationError
from .base import Store
from .cloudflare import CloudflareStore
from .digitalocean import DigitalOceanStore
from .memory import MemoryStore

logger = logging.getLogger(__name__)

# Provider name -> implementation
STORE_TYPES: Dict[str, Type[Store]] = {
    "cloudflare": CloudflareStore,
    "digitalocean": DigitalOceanStore,
}


class StoreRegistry:
    """Registry for store lookup by name."""

    def __init__(self, stores: Optional[Iterable[Store]] = None):
        self.stores: Dict[str, Store] = {}
        for store in stores or ():
            self.register(store)

    def register(self, store: Store) -> None:
        """Register a store."""
        self.stores[store.name] = store
        logger.debug(f"Registered store: {store.name}")

    def get(self, name: str) -> Store:
        """Get a store by name."""
        store = self.stores.get(name)
        if store is None:
            raise ConfigurationError(f"unknown store '{name}'", store=name)
        return store

    def names(self) -> List[str]:
        return sorted(self.stores)

    def __contains__(self, name: object) -> bool:
        return name in self.stores


def _api_url(settings: SyncSettings, name: str) -> str:
    return getattr(settings, f"{name}_api_url")


def default_registry(http_client: httpx.Client, settings: SyncSettings) -> StoreRegistry:
    """Register every provider, or memory stand-ins in mock mode."""
    registry = StoreRegistry()
    for name, store_type in STORE_TYPES.items():
        store = store_type(http_client, api_url=_api_url(settings, name))
        if settings.mock_mode:
            store = MemoryStore.like(store)
        registry.register(store)
    if settings.mock_mode:
        logger.warning("Mock mode: stores are in-memory")
    return registry
