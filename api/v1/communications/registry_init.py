"""
Delivery provider registry initialization.

Registers the built-in providers with the global provider registry.
"""

from api.config.logging import get_logger
from api.v1.communications.providers import MockDeliveryProvider
from api.v1.core.registries import provider_registry

logger = get_logger(__name__)


def register_delivery_providers() -> None:
    """Register all delivery providers with the provider registry."""
    provider_registry.register(MockDeliveryProvider.name, MockDeliveryProvider())

    logger.info(
        "Delivery providers registered",
        registered_providers=provider_registry.list(),
    )


# Auto-register providers when module is imported
if MockDeliveryProvider.name not in provider_registry:
    register_delivery_providers()
