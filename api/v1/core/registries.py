from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def __contains__(self, name: object) -> bool:
        return name in self._implementations

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Delivery Provider Registry - outbound transports keyed by job.provider
class DeliveryProvider(Protocol):
    """Protocol for outbound message transports."""

    async def deliver(self, request: Any) -> Any:
        """
        Attempt delivery of one message to a list of recipients.

        Receives a DeliveryRequest and returns a DeliveryOutcome:
        either Delivered(sent=[clerk_user_id, ...],
        failed=[DeliveryFailure(clerk_user_id, error), ...]) or
        ProviderError(message) when the transport as a whole failed.
        Implementations may also raise; the caller converts that into
        a ProviderError.
        """
        ...


class DeliveryProviderRegistry(Registry[DeliveryProvider]):
    """Registry for delivery providers (mock, ...)."""

    def __init__(self):
        super().__init__("DeliveryProvider")


# Global registry instances
provider_registry = DeliveryProviderRegistry()
