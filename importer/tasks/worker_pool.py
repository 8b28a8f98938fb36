"""Bounded pool of worker threads consuming a lease queue.

Each thread owns one job at a time: lease, process every row in file order,
finalize, then ack. Jobs run in parallel up to the pool size.

Run standalone against the Redis queue with:
    importer-worker --concurrency 3
"""
import argparse
import logging
import threading
import time
from typing import Optional

from importer.tasks.queue import JobQueue, NackResult

logger = logging.getLogger(__name__)


class WorkerPool:
    """Fixed-size set of threads that lease and process import jobs."""

    def __init__(
        self,
        queue: JobQueue,
        processor,
        concurrency: int = 3,
        poll_interval: float = 1.0,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.queue = queue
        self.processor = processor
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._run, name=f"import-worker-{i}", daemon=True)
            for i in range(self.concurrency)
        ]
        for thread in self._threads:
            thread.start()
        logger.info(f"👷 Worker pool started with {self.concurrency} workers")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop leasing new jobs and wait for in-flight jobs to finish."""
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        logger.info("🛑 Worker pool stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                lease = self.queue.lease(timeout=self.poll_interval)
            except Exception:
                logger.exception("💥 Failed to lease from queue")
                self._stop.wait(self.poll_interval)
                continue
            if lease is not None:
                self.run_once(lease)

    def run_once(self, lease) -> None:
        """Process one leased message and settle the lease."""
        job_id = lease.message.job_id
        try:
            self.processor.process(lease.message)
        except Exception as e:
            logger.error(
                f"💥 Job {job_id} failed on attempt {lease.attempt}: {e}", exc_info=True
            )
            result = self.queue.nack(lease, error=str(e))
            if result == NackResult.DEAD_LETTER:
                self.processor.fail_job(
                    job_id, f"Job failed after {lease.attempt} attempts: {e}"
                )
            elif result == NackResult.STALE:
                # The message was redelivered; the job belongs to that delivery now
                logger.warning(f"⏰ Lease on job {job_id} expired before nack, leaving job as is")
            return
        self.queue.ack(lease)
        logger.info(f"✅ Job {job_id} acknowledged")


def main(argv: Optional[list[str]] = None) -> None:
    """Run a worker pool in the foreground until interrupted."""
    from importer.config import get_settings
    from importer.database import Base, SessionLocal, engine
    from importer.models import ImportJob  # noqa: F401 - Import to register models
    from importer.services.import_processor import ImportProcessor
    from importer.services.progress import RedisProgressPublisher
    from importer.tasks.queue import create_queue

    settings = get_settings()
    parser = argparse.ArgumentParser(description="Bulk import worker pool")
    parser.add_argument("--concurrency", type=int, default=settings.worker_concurrency)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    queue = create_queue(settings)
    if not isinstance(queue, JobQueue):
        parser.error(f"queue backend '{settings.queue_backend}' is consumed by its own workers")

    Base.metadata.create_all(bind=engine)
    processor = ImportProcessor.from_settings(
        settings, SessionLocal, publisher=RedisProgressPublisher(settings.redis_url)
    )
    pool = WorkerPool(
        queue, processor, concurrency=args.concurrency, poll_interval=settings.poll_interval_seconds
    )
    pool.start()
    try:
        while pool.running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Shutting down worker pool...")
    finally:
        pool.stop()


if __name__ == "__main__":
    main()
