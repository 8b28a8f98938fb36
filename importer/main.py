"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from importer.api.imports import router as imports_router
from importer.config import get_settings
from importer.database import Base, SessionLocal, engine
from importer.models import AuditTrail, Dealer, ImportJob, PayoutCase  # noqa: F401 - Import to register models
from importer.services.import_processor import ImportProcessor
from importer.services.progress import RedisProgressPublisher
from importer.tasks.queue import InMemoryJobQueue, create_queue
from importer.tasks.worker_pool import WorkerPool

settings = get_settings()

# Configure logging
handlers = [logging.StreamHandler()]
if settings.log_file:
    handlers.append(logging.FileHandler(settings.log_file))
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=handlers,
)

# Set specific log levels for noisy libraries
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the queue client; run in-process workers for the memory queue."""
    Base.metadata.create_all(bind=engine)
    app.state.job_publisher = create_queue(settings)

    pool = None
    if isinstance(app.state.job_publisher, InMemoryJobQueue):
        processor = ImportProcessor.from_settings(
            settings, SessionLocal, publisher=RedisProgressPublisher(settings.redis_url)
        )
        pool = WorkerPool(
            app.state.job_publisher,
            processor,
            concurrency=settings.worker_concurrency,
            poll_interval=settings.poll_interval_seconds,
        )
        pool.start()
    logger.info(f"🔌 Job queue ready: backend={settings.queue_backend}")

    yield

    if pool is not None:
        pool.stop(timeout=30)


app = FastAPI(
    title="Dealer & Payout Bulk Importer",
    description="Import dealer master and payout CSV files asynchronously",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(imports_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
