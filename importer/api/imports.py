"""Bulk import API endpoints."""
import asyncio
import json
import logging
from typing import Optional

import redis
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from importer.config import get_settings
from importer.database import get_db
from importer.exceptions import JobNotFoundError, SubmissionError
from importer.models.import_job import JobKind, JobStatus
from importer.schemas.upload import ImportJobResponse, ImportJobSummary, ImportSubmitResponse
from importer.services.gateway import SubmissionGateway
from importer.services.job_store import JobRecordStore
from importer.services.progress import progress_channel, progress_message

router = APIRouter(prefix="/api/imports", tags=["imports"])

settings = get_settings()
logger = logging.getLogger(__name__)


def get_job_publisher(request: Request):
    """Dependency for the queue client built at startup."""
    publisher = getattr(request.app.state, "job_publisher", None)
    if publisher is None:
        raise HTTPException(status_code=503, detail="Job queue is not available")
    return publisher


async def read_upload(file: UploadFile) -> bytes:
    """Read a CSV upload, enforcing the extension and size limit."""
    if not file.filename or not file.filename.lower().endswith(".csv"):
        logger.warning(f"❌ Invalid file type: {file.filename}")
        raise HTTPException(status_code=400, detail="Only CSV files are allowed")

    chunks = []
    size = 0
    content = await file.read(8192)
    while content:
        size += len(content)
        if size > settings.max_upload_bytes:
            logger.warning(f"❌ File too large: {file.filename}")
            raise HTTPException(status_code=413, detail="File too large")
        chunks.append(content)
        content = await file.read(8192)

    logger.info(f"✅ Upload read: filename={file.filename}, {size} bytes")
    return b"".join(chunks)


def _submit(
    db: Session,
    publisher,
    kind: JobKind,
    filename: str,
    content: bytes,
    submitted_by: int,
    cycle_id: Optional[int] = None,
) -> ImportSubmitResponse:
    gateway = SubmissionGateway(db, publisher)
    try:
        job_id = gateway.submit_job(kind, filename, content, submitted_by, cycle_id=cycle_id)
    except SubmissionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"💥 Upload failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to queue upload")
    return ImportSubmitResponse(job_id=job_id, status=JobStatus.QUEUED)


@router.post("/dealers", response_model=ImportSubmitResponse, status_code=202)
async def upload_dealers(
    file: UploadFile = File(...),
    submitted_by: int = Form(...),
    db: Session = Depends(get_db),
    publisher=Depends(get_job_publisher),
):
    """Queue a dealer master CSV for background import."""
    content = await read_upload(file)
    return _submit(db, publisher, JobKind.DEALER_IMPORT, file.filename, content, submitted_by)


@router.post("/payouts", response_model=ImportSubmitResponse, status_code=202)
async def upload_payouts(
    file: UploadFile = File(...),
    submitted_by: int = Form(...),
    cycle_id: int = Form(...),
    db: Session = Depends(get_db),
    publisher=Depends(get_job_publisher),
):
    """Queue a payout data CSV for a payout cycle."""
    content = await read_upload(file)
    return _submit(
        db,
        publisher,
        JobKind.PAYOUT_IMPORT,
        file.filename,
        content,
        submitted_by,
        cycle_id=cycle_id,
    )


@router.get("", response_model=list[ImportJobSummary])
def list_imports(
    kind: Optional[JobKind] = Query(None, description="Filter by job kind"),
    limit: int = Query(50, ge=1, le=200, description="Maximum jobs to return"),
    db: Session = Depends(get_db),
):
    """Upload history, newest first."""
    return JobRecordStore(db).list_jobs(kind=kind, limit=limit)


@router.get("/{job_id}", response_model=ImportJobResponse)
def get_import(job_id: str, db: Session = Depends(get_db)):
    """
    Get import job status, counts and captured row errors.

    Used for polling-based progress tracking when the SSE stream is not
    available.
    """
    try:
        return JobRecordStore(db).get(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


@router.get("/{job_id}/stream")
async def stream_progress(job_id: str, db: Session = Depends(get_db)):
    """
    Server-Sent Events endpoint for real-time progress streaming.

    Sends the current snapshot first, then the snapshots workers publish to
    Redis until the job reaches a terminal status. A job that is already
    terminal gets its snapshot and the stream ends.
    """
    try:
        job = JobRecordStore(db).get(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")

    snapshot = progress_message(job)
    terminal = {status.value for status in JobStatus if status.is_terminal}

    async def event_generator():
        yield f"data: {json.dumps(snapshot)}\n\n"
        if snapshot["status"] in terminal:
            return

        redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        pubsub = redis_client.pubsub()
        pubsub.subscribe(progress_channel(job_id))

        try:
            while True:
                message = pubsub.get_message(timeout=1.0)

                if message and message["type"] == "message":
                    data = json.loads(message["data"])
                    yield f"data: {json.dumps(data)}\n\n"

                    if data.get("status") in terminal:
                        break

                await asyncio.sleep(0.1)

        except redis.RedisError as e:
            logger.warning(f"SSE stream error for job {job_id}: {e}")
            yield f"data: {json.dumps({'status': 'error', 'error': 'Stream error'})}\n\n"

        finally:
            pubsub.unsubscribe(progress_channel(job_id))
            redis_client.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
