"""API Endpoint Wrappers - Type-safe API calls"""

from typing import Any

from .base import APIClient, ParishDeliveryError
from ..utils.config_manager import config

__all__ = ["ParishDeliveryClient", "ParishDeliveryError"]

COMMUNICATIONS_PATH = "/internal/communications"


class ParishDeliveryClient:
    """High-level client with typed endpoint methods"""

    def __init__(self, base_url: str | None = None, worker_token: str | None = None):
        api_config = config.load_config().get("api", {})

        self.api = APIClient(
            base_url=base_url or api_config.get("base_url", "http://localhost:8000"),
            timeout=int(api_config.get("timeout", 30)),
            worker_token=worker_token or api_config.get("worker_token"),
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    # Delivery Endpoints
    def deliver(self, limit: int | None = None) -> dict[str, Any]:
        """Run one delivery batch"""
        body = {"limit": limit} if limit is not None else {}
        return self.api.post(f"{COMMUNICATIONS_PATH}/deliver", body)

    def list_jobs(
        self,
        status: list[str] | None = None,
        send_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List delivery jobs with filters"""
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if status:
            params["status"] = status
        if send_id:
            params["send_id"] = send_id
        return self.api.get(f"{COMMUNICATIONS_PATH}/jobs", params)

    def get_job(self, job_id: str) -> dict[str, Any]:
        """Get a delivery job by ID"""
        return self.api.get(f"{COMMUNICATIONS_PATH}/jobs/{job_id}")

    def get_stats(self) -> dict[str, Any]:
        """Get delivery queue statistics"""
        return self.api.get(f"{COMMUNICATIONS_PATH}/jobs/stats")

    def get_send(self, send_id: str, parish_id: str | None = None) -> dict[str, Any]:
        """Get a message send with per-recipient delivery status"""
        params = {"parish_id": parish_id} if parish_id else None
        return self.api.get(f"{COMMUNICATIONS_PATH}/sends/{send_id}", params)
