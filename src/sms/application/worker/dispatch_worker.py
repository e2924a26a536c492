"""Dispatch worker: polls the queue and runs ``send-sms`` jobs."""

import asyncio
import signal
from typing import Optional

from src.config import get_settings
from src.shared.infrastructure.observability.logger import bound_context, configure_logging, get_logger
from src.sms.application.worker.dispatch_processor import DispatchOutcome, SmsDispatchProcessor
from src.sms.domain.exceptions import ProviderError
from src.sms.domain.value_objects.dispatch import SEND_SMS_JOB, DispatchJob
from src.sms.infrastructure.dependencies import build_container
from src.sms.infrastructure.queue.outbox_queue import OutboxDispatchQueue, QueuedJob

logger = get_logger(__name__)


class DispatchWorker:
    """Worker for processing dispatch jobs."""

    def __init__(
        self,
        queue: OutboxDispatchQueue,
        processor: SmsDispatchProcessor,
        poll_interval: float = 5,
        batch_size: int = 10,
        stale_after_seconds: float = 300,
    ):
        self.queue = queue
        self.processor = processor
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.stale_after_seconds = stale_after_seconds
        self.running = False
        self.tasks: set[asyncio.Task] = set()

    async def start(self):
        """Poll until stopped."""
        logger.info("Starting dispatch worker...", batch_size=self.batch_size)
        self.running = True

        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

        while self.running:
            try:
                processed = await self.run_once()
                if not processed:
                    await asyncio.sleep(self.poll_interval)
            except Exception as e:
                logger.error("Worker error", error=str(e))
                await asyncio.sleep(self.poll_interval)

    async def run_once(self) -> int:
        """Claim one batch and process it concurrently; returns the batch size."""
        await self.queue.release_stale(self.stale_after_seconds)
        jobs = await self.queue.claim(limit=self.batch_size)
        if not jobs:
            return 0

        logger.info("Processing dispatch jobs", count=len(jobs))
        tasks = []
        for job in jobs:
            task = asyncio.create_task(self._process_job(job))
            tasks.append(task)
            self.tasks.add(task)
            task.add_done_callback(self.tasks.discard)

        await asyncio.gather(*tasks, return_exceptions=True)
        return len(jobs)

    async def _process_job(self, job: QueuedJob) -> None:
        with bound_context(job_id=str(job.id), attempt=job.attempts_made + 1):
            if job.job_name != SEND_SMS_JOB:
                logger.warning("Unknown job type", job_name=job.job_name)
                await self.queue.fail(job.id, f"Unknown job type: {job.job_name}", retryable=False)
                return

            try:
                dispatch_job = DispatchJob.from_payload(job.payload, retry_attempt=job.attempts_made)
            except (KeyError, TypeError, ValueError) as e:
                logger.error("Invalid dispatch job payload", error=str(e))
                await self.queue.fail(job.id, f"Invalid payload: {e}", retryable=False)
                return

            try:
                outcome = await self.processor.handle(dispatch_job)
            except ProviderError as e:
                await self.queue.fail(job.id, e.message, retryable=e.retryable)
                return
            except Exception as e:
                logger.exception("Dispatch job raised")
                await self.queue.fail(job.id, str(e) or e.__class__.__name__, retryable=True)
                return

            if outcome is DispatchOutcome.FAILED:
                await self.queue.fail(job.id, "Provider rejected message", retryable=False)
            else:
                await self.queue.complete(job.id)

    def _handle_signal(self, signum, frame):
        logger.info("Received signal, shutting down...", signum=signum)
        self.running = False

    async def stop(self):
        """Stop the worker gracefully."""
        logger.info("Stopping dispatch worker...")
        self.running = False

        if self.tasks:
            logger.info("Waiting for in-flight jobs", count=len(self.tasks))
            await asyncio.gather(*self.tasks, return_exceptions=True)

        logger.info("Dispatch worker stopped")


async def main(poll_interval: Optional[float] = None):
    """Main entry point for the dispatch worker."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    container = build_container(settings)
    worker = DispatchWorker(
        queue=container.queue,
        processor=container.dispatch_processor,
        poll_interval=poll_interval or settings.DISPATCH_POLL_INTERVAL_SECONDS,
        batch_size=settings.DISPATCH_BATCH_SIZE,
        stale_after_seconds=settings.DISPATCH_STALE_AFTER_SECONDS,
    )

    try:
        await worker.start()
    finally:
        await worker.stop()
        await container.close()


if __name__ == "__main__":
    asyncio.run(main())
