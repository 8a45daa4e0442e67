from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings, SettingsDep
from api.infra.database import SessionDep
from api.v1.communications.models import DeliveryJobStatus
from api.v1.communications.providers import get_delivery_config
from api.v1.communications.service import DeliveryJobService
from api.v1.core.exceptions import create_success_response

logger = get_logger(__name__)
router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class DeliveryQueueHealth(BaseModel):
    """Delivery queue status."""

    enabled: bool
    provider: str | None = None
    pending: int = 0
    processing: int = 0
    due_now: int = 0
    stale_locks: int = 0


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, session: AsyncSession = SessionDep
):
    """Health check with database and delivery queue status."""

    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    queue_health = None
    if db_health.connected:
        try:
            queue_health = await _check_delivery_queue(session, settings)
        except Exception:
            # Queue stats are informational and never fail the health check
            logger.warning("Delivery queue health check failed", exc_info=True)

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": timestamp,
        "database": db_health.model_dump(),
        "delivery": queue_health.model_dump() if queue_health else None,
    }

    return create_success_response(data=health_data)


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        response_time_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_delivery_queue(
    session: AsyncSession, settings: Settings
) -> DeliveryQueueHealth:
    config = get_delivery_config(settings)
    stats = await DeliveryJobService(settings).get_job_stats(session)

    return DeliveryQueueHealth(
        enabled=config.enabled,
        provider=config.provider,
        pending=stats.by_status.get(DeliveryJobStatus.PENDING.value, 0),
        processing=stats.by_status.get(DeliveryJobStatus.PROCESSING.value, 0),
        due_now=stats.due_now,
        stale_locks=stats.stale_locks,
    )
