"""
Internal delivery endpoints: the worker trigger and operator views of jobs
and sends.

All endpoints require the shared worker token.
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings, SettingsDep
from api.infra.database import SessionDep
from api.v1.communications.models import DeliveryJobStatus
from api.v1.communications.processor import process_pending_jobs
from api.v1.communications.schemas import (
    DeliveryJobListResponse,
    DeliveryJobResponse,
    ProcessJobsRequest,
)
from api.v1.communications.service import DeliveryJobService
from api.v1.core.exceptions import NotFoundError, create_success_response
from api.v1.core.security import WorkerTokenDep

logger = get_logger(__name__)
router = APIRouter(
    prefix="/internal/communications",
    tags=["communications"],
    dependencies=[WorkerTokenDep],
)


async def _parse_process_request(request: Request) -> ProcessJobsRequest:
    """Read the optional body; anything unreadable means "use the default"."""
    try:
        raw = await request.json()
    except ValueError:
        return ProcessJobsRequest()

    if raw is None:
        return ProcessJobsRequest()

    try:
        return ProcessJobsRequest.model_validate(raw)
    except PydanticValidationError:
        logger.warning("Ignoring invalid delivery trigger body")
        return ProcessJobsRequest()


@router.post("/deliver", response_model=dict)
async def deliver_pending_messages(
    request: Request,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Process due delivery jobs; called by cron or another scheduler."""
    body = await _parse_process_request(request)

    summary = await process_pending_jobs(session, settings, limit=body.limit)

    return create_success_response(data=summary.model_dump())


@router.get("/jobs", response_model=dict)
async def list_delivery_jobs(
    status: list[DeliveryJobStatus] | None = Query(
        default=None, description="Filter by status"
    ),
    send_id: UUID | None = Query(default=None, description="Filter by message send"),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """List delivery jobs, oldest first."""
    jobs, total = await DeliveryJobService(settings).list_jobs(
        session, statuses=status, send_id=send_id, limit=limit, offset=offset
    )

    response_data = DeliveryJobListResponse(
        jobs=[DeliveryJobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )
    return create_success_response(data=response_data.model_dump(mode="json"))


@router.get("/jobs/stats", response_model=dict)
async def get_delivery_job_stats(
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    stats = await DeliveryJobService(settings).get_job_stats(session)
    return create_success_response(data=stats.model_dump())


@router.get("/jobs/{job_id}", response_model=dict)
async def get_delivery_job(
    job_id: UUID,
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    job = await DeliveryJobService(settings).get_job_by_id(session, job_id)
    if not job:
        raise NotFoundError("Delivery job not found", details={"job_id": str(job_id)})

    return create_success_response(
        data=DeliveryJobResponse.model_validate(job).model_dump(mode="json")
    )


@router.get("/sends/{send_id}", response_model=dict)
async def get_message_send(
    send_id: UUID,
    parish_id: UUID | None = Query(default=None, description="Restrict to one parish"),
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """A send with per-recipient delivery status, errors and contact email."""
    detail = await DeliveryJobService(settings).get_send_detail(
        session, send_id, parish_id=parish_id
    )
    if detail is None:
        raise NotFoundError("Message send not found", details={"send_id": str(send_id)})

    return create_success_response(data=detail.model_dump(mode="json"))
