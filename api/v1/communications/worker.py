"""
Polling worker that runs delivery batches on a fixed interval.

This stands in for the external scheduler (cron hitting the deliver
endpoint) when running the service on its own:

    python -m api.v1.communications.worker
"""

import asyncio

from api.config.logging import bind_worker_context, get_logger, setup_logging
from api.config.settings import Settings, settings as default_settings
from api.infra.database import Database
from api.v1.communications import registry_init  # noqa: F401
from api.v1.communications.processor import DeliveryJobProcessor, default_worker_id
from api.v1.communications.schemas import ProcessJobsSummary

logger = get_logger(__name__)

ERROR_BACKOFF_S = 5


class DeliveryWorker:
    """
    Repeatedly runs the batch runner with a fresh session per tick.

    A failed tick (for example the database being unreachable) is logged and
    retried after a short back off; it never stops the loop.
    """

    def __init__(self, settings: Settings, database: Database | None = None):
        self.settings = settings
        self.database = database or Database(settings)
        self.worker_id = f"worker:{default_worker_id()}"
        self.running = False

    async def run_once(self) -> ProcessJobsSummary:
        """Run a single batch."""
        bind_worker_context(self.worker_id)
        async with self.database.session() as session:
            processor = DeliveryJobProcessor(
                session, self.settings, worker_id=self.worker_id
            )
            return await processor.process_pending_jobs()

    async def start(self) -> None:
        """Start the polling loop."""
        if self.running:
            raise RuntimeError("Worker is already running")

        self.running = True
        logger.info(
            "Starting delivery worker",
            worker_id=self.worker_id,
            poll_interval_s=self.settings.delivery_poll_interval_s,
            batch_size=self.settings.delivery_default_batch_size,
        )

        try:
            while self.running:
                try:
                    await self.run_once()
                except Exception:
                    logger.exception(
                        "Error in delivery worker loop", worker_id=self.worker_id
                    )
                    await asyncio.sleep(ERROR_BACKOFF_S)
                    continue

                await asyncio.sleep(self.settings.delivery_poll_interval_s)
        finally:
            self.running = False

    def stop(self) -> None:
        """Ask the loop to exit after the current tick."""
        logger.info("Stopping delivery worker", worker_id=self.worker_id)
        self.running = False


async def run_worker(settings: Settings = default_settings) -> None:
    worker = DeliveryWorker(settings)
    try:
        await worker.start()
    finally:
        await worker.database.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging()
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("Delivery worker interrupted")


if __name__ == "__main__":
    main()
