import pytest

from api.v1.communications.providers import MockDeliveryProvider
from api.v1.core.registries import (
    DeliveryProviderRegistry,
    Registry,
    provider_registry,
)


def test_registry_basic_operations():
    """Test basic registry register, get, list operations."""
    registry = Registry[str]("Test")

    assert registry.list() == []

    registry.register("test_impl", "test_value")
    assert registry.get("test_impl") == "test_value"
    assert registry.list() == ["test_impl"]

    with pytest.raises(KeyError, match="No test implementation registered"):
        registry.get("nonexistent")


def test_registry_overwrite():
    registry = Registry[str]("Test")
    registry.register("impl", "first")
    registry.register("impl", "second")

    assert registry.get("impl") == "second"
    assert registry.list() == ["impl"]


def test_registry_freeze():
    """Frozen registries reject new registrations but still resolve."""
    registry = DeliveryProviderRegistry()
    registry.register("mock", MockDeliveryProvider())
    registry.freeze()

    assert registry.is_frozen()
    assert isinstance(registry.get("mock"), MockDeliveryProvider)
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register("other", MockDeliveryProvider())


def test_provider_registry_has_mock_registered():
    from api.v1.communications import registry_init  # noqa: F401

    assert "mock" in provider_registry
    assert isinstance(provider_registry.get("mock"), MockDeliveryProvider)


def test_unknown_provider_message():
    registry = DeliveryProviderRegistry()

    with pytest.raises(KeyError, match="No deliveryprovider implementation"):
        registry.get("carrier-pigeon")
