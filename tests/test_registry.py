"""
Tests for the Store Registry and Memory Store.
"""

import httpx
import pytest

from certsync.config.loader import SyncSettings
from certsync.engine.certificate import parse_certificate
from certsync.errors import ConfigurationError, RemoteNotFoundError, RemoteTransientError
from certsync.models.secret import Credentials, StoreConfig
from certsync.stores.cloudflare import CloudflareStore
from certsync.stores.digitalocean import DigitalOceanStore
from certsync.stores.memory import MemoryStore
from certsync.stores.registry import StoreRegistry, default_registry


@pytest.fixture
def http_client():
    return httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(500)))


@pytest.fixture
def cert(make_secret):
    return parse_certificate(make_secret())


CREDS = Credentials(store="memory", namespace="default", name="creds")
CONFIG = StoreConfig(store="memory")


class TestStoreRegistry:
    """Tests for StoreRegistry."""

    def test_default_registry(self, http_client):
        """Test real stores are registered by name."""
        registry = default_registry(http_client, SyncSettings())

        assert registry.names() == ["cloudflare", "digitalocean"]
        assert isinstance(registry.get("cloudflare"), CloudflareStore)
        assert isinstance(registry.get("digitalocean"), DigitalOceanStore)

    def test_mock_mode(self, http_client):
        """Test mock mode swaps in memory stores with the same requirements."""
        registry = default_registry(http_client, SyncSettings(mock_mode=True))

        cloudflare = registry.get("cloudflare")
        assert isinstance(cloudflare, MemoryStore)
        assert cloudflare.name == "cloudflare"
        assert cloudflare.scope_key == "zone-id"
        assert cloudflare.credential_fields == ("api_key", "email")

    def test_unknown_store(self):
        """Test unknown names raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="unknown store"):
            StoreRegistry().get("akamai")

    def test_register_and_contains(self):
        """Test registering a store."""
        registry = StoreRegistry()
        registry.register(MemoryStore("acme"))

        assert "acme" in registry
        assert "other" not in registry


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_create_then_update(self, cert):
        """Test update keeps the id and bumps the revision."""
        store = MemoryStore()
        cert_id = store.upsert("s", "", cert, CREDS, CONFIG)

        assert store.upsert("s", cert_id, cert, CREDS, CONFIG) == cert_id
        assert store.objects[cert_id].revision == 2
        assert store.calls == [("create", "s", ""), ("update", "s", cert_id)]

    def test_update_unknown(self, cert):
        """Test updating an unknown id raises RemoteNotFoundError."""
        with pytest.raises(RemoteNotFoundError):
            MemoryStore().upsert("s", "nope", cert, CREDS, CONFIG)

    def test_update_wrong_scope(self, cert):
        """Test an id is only found in its own scope."""
        store = MemoryStore()
        cert_id = store.upsert("a", "", cert, CREDS, CONFIG)

        with pytest.raises(RemoteNotFoundError):
            store.upsert("b", cert_id, cert, CREDS, CONFIG)

    def test_reissue_on_change(self, cert, make_secret, tls_material):
        """Test reissuing stores hand out a new id for new material."""
        store = MemoryStore(reissue_on_update=True)
        first = store.upsert("", "", cert, CREDS, CONFIG)
        renewed = parse_certificate(make_secret(data={
            "tls.crt": tls_material["other_leaf"],
            "tls.key": tls_material["other_key"],
        }))

        assert store.upsert("", first, cert, CREDS, CONFIG) == first
        assert store.upsert("", first, renewed, CREDS, CONFIG) != first

    def test_fail_with_is_one_shot(self, cert):
        """Test fail_with raises once."""
        store = MemoryStore()
        store.fail_with = RemoteTransientError("down", store="memory")

        with pytest.raises(RemoteTransientError):
            store.upsert("", "", cert, CREDS, CONFIG)
        assert store.upsert("", "", cert, CREDS, CONFIG)
