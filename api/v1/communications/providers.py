"""
Delivery providers and the provider selection used by the job processor.
"""

from api.config.logging import get_logger
from api.config.settings import DeliveryMode, Settings
from api.v1.communications.schemas import (
    Delivered,
    DeliveryConfig,
    DeliveryFailure,
    DeliveryOutcome,
    DeliveryRequest,
    ProviderError,
)
from api.v1.core.registries import DeliveryProviderRegistry, provider_registry

logger = get_logger(__name__)

UNKNOWN_DELIVERY_ERROR = "Unknown delivery error."
MISSING_EMAIL_ERROR = "Recipient has no email on file."


class MockDeliveryProvider:
    """
    Provider that pretends to send.

    Every recipient with an email counts as sent; recipients without one fail.
    """

    name = DeliveryMode.MOCK.value

    async def deliver(self, request: DeliveryRequest) -> DeliveryOutcome:
        sent: list[str] = []
        failed: list[DeliveryFailure] = []

        for recipient in request.recipients:
            if not recipient.email:
                failed.append(
                    DeliveryFailure(
                        clerk_user_id=recipient.clerk_user_id,
                        error=MISSING_EMAIL_ERROR,
                    )
                )
                continue
            sent.append(recipient.clerk_user_id)

        return Delivered(sent=sent, failed=failed)


def get_delivery_config(settings: Settings) -> DeliveryConfig:
    """Resolve PARISH_COMMUNICATIONS_DELIVERY_MODE into an enabled provider."""
    mode = settings.parish_communications_delivery_mode
    if mode == DeliveryMode.DISABLED:
        return DeliveryConfig(enabled=False, provider=None)
    return DeliveryConfig(enabled=True, provider=mode.value)


async def deliver_message(
    request: DeliveryRequest,
    registry: DeliveryProviderRegistry = provider_registry,
) -> DeliveryOutcome:
    """
    Run the provider named in the request and normalize its result.

    Anything the provider raises becomes a ProviderError so callers only
    ever match on the two outcome variants.
    """
    try:
        provider = registry.get(request.provider)
    except KeyError:
        return ProviderError(
            message=f"Unsupported parish delivery provider: {request.provider}"
        )

    try:
        outcome = await provider.deliver(request)
    except Exception as e:
        logger.warning(
            "Delivery provider raised",
            provider=request.provider,
            exception=e.__class__.__name__,
            error=str(e),
        )
        return ProviderError(message=str(e) or UNKNOWN_DELIVERY_ERROR)

    if isinstance(outcome, ProviderError) and not outcome.message:
        return ProviderError(message=UNKNOWN_DELIVERY_ERROR)
    return outcome
