import hmac

from fastapi import Depends, Header

from api.config.settings import Settings, get_settings
from api.v1.core.exceptions import ConfigurationError, UnauthorizedError


def get_bearer_token(value: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not value:
        return None
    parts = value.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


async def require_worker_token(
    x_parish_worker_token: str | None = Header(None, alias="X-Parish-Worker-Token"),
    authorization: str | None = Header(None, alias="Authorization"),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Dependency guarding the internal worker endpoints.

    The shared secret comes from PARISH_COMMUNICATIONS_WORKER_TOKEN and may be
    supplied either as X-Parish-Worker-Token or as a bearer token. The
    dedicated header wins when both are present.
    """
    expected = settings.parish_communications_worker_token
    if not expected:
        raise ConfigurationError(
            "PARISH_COMMUNICATIONS_WORKER_TOKEN is not configured."
        )

    supplied = x_parish_worker_token or get_bearer_token(authorization)
    if supplied is None or not hmac.compare_digest(
        supplied.encode(), expected.encode()
    ):
        raise UnauthorizedError()

    return supplied


# Convenience type alias for dependency injection
WorkerTokenDep = Depends(require_worker_token)
