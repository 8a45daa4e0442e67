import pytest

from api.config.settings import DeliveryMode, Settings
from api.v1.communications.providers import (
    MISSING_EMAIL_ERROR,
    UNKNOWN_DELIVERY_ERROR,
    MockDeliveryProvider,
    deliver_message,
    get_delivery_config,
)
from api.v1.communications.schemas import (
    Delivered,
    DeliveryRecipient,
    DeliveryRequest,
    ProviderError,
)
from api.v1.core.registries import DeliveryProviderRegistry


class RaisingProvider:
    def __init__(self, exc: Exception):
        self.exc = exc

    async def deliver(self, request):
        raise self.exc


class BlankErrorProvider:
    async def deliver(self, request):
        return ProviderError(message="")


def _request(provider: str = "mock", recipients=None) -> DeliveryRequest:
    return DeliveryRequest(
        provider=provider,
        subject="Parish picnic",
        body="Bring a dish to share.",
        recipients=recipients
        or [DeliveryRecipient(clerk_user_id="user_a", email="a@example.org")],
    )


def test_delivery_config_disabled():
    settings = Settings(
        _env_file=None, parish_communications_delivery_mode=DeliveryMode.DISABLED
    )

    config = get_delivery_config(settings)

    assert config.enabled is False
    assert config.provider is None


def test_delivery_config_mock():
    settings = Settings(
        _env_file=None, parish_communications_delivery_mode=DeliveryMode.MOCK
    )

    config = get_delivery_config(settings)

    assert config.enabled is True
    assert config.provider == "mock"


@pytest.mark.asyncio
async def test_mock_provider_fails_recipients_without_email():
    """Mock provider sends to everyone with an email on file."""
    request = _request(
        recipients=[
            DeliveryRecipient(clerk_user_id="user_a", email="a@example.org"),
            DeliveryRecipient(clerk_user_id="user_b", email=None),
        ]
    )

    outcome = await MockDeliveryProvider().deliver(request)

    assert isinstance(outcome, Delivered)
    assert outcome.sent == ["user_a"]
    assert [(f.clerk_user_id, f.error) for f in outcome.failed] == [
        ("user_b", MISSING_EMAIL_ERROR)
    ]


@pytest.mark.asyncio
async def test_deliver_message_unknown_provider():
    registry = DeliveryProviderRegistry()

    outcome = await deliver_message(_request(provider="carrier-pigeon"), registry)

    assert outcome == ProviderError(
        message="Unsupported parish delivery provider: carrier-pigeon"
    )


@pytest.mark.asyncio
async def test_deliver_message_converts_exceptions():
    registry = DeliveryProviderRegistry()
    registry.register("flaky", RaisingProvider(ConnectionError("SMTP timeout")))

    outcome = await deliver_message(_request(provider="flaky"), registry)

    assert outcome == ProviderError(message="SMTP timeout")


@pytest.mark.asyncio
async def test_deliver_message_messageless_exception():
    """An exception without a message maps to the generic error text."""
    registry = DeliveryProviderRegistry()
    registry.register("flaky", RaisingProvider(RuntimeError()))

    outcome = await deliver_message(_request(provider="flaky"), registry)

    assert outcome == ProviderError(message=UNKNOWN_DELIVERY_ERROR)


@pytest.mark.asyncio
async def test_deliver_message_normalizes_blank_provider_error():
    registry = DeliveryProviderRegistry()
    registry.register("blank", BlankErrorProvider())

    outcome = await deliver_message(_request(provider="blank"), registry)

    assert outcome.message == UNKNOWN_DELIVERY_ERROR


@pytest.mark.asyncio
async def test_deliver_message_uses_global_registry_mock():
    """The built-in mock provider is registered on import."""
    from api.v1.communications import registry_init  # noqa: F401

    outcome = await deliver_message(_request())

    assert isinstance(outcome, Delivered)
    assert outcome.sent == ["user_a"]
