"""Import submission and job status schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from importer.models.import_job import JobKind, JobStatus


class RowError(BaseModel):
    """Rejection reasons captured for one row."""

    row: Optional[int] = None
    errors: list[str]


class ImportSubmitResponse(BaseModel):
    """Response after a file has been accepted for background processing."""

    job_id: str
    status: JobStatus
    message: str = "File uploaded successfully, processing in background"


class ImportJobSummary(BaseModel):
    """Import job row for history listings."""

    id: str
    kind: JobKind
    filename: str
    submitted_by: int
    status: JobStatus
    total_records: int
    success_count: int
    failure_count: int
    progress_percentage: float
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ImportJobResponse(ImportJobSummary):
    """Full import job status including captured row errors."""

    cycle_id: Optional[int] = None
    processed_records: int
    attempts: int
    errors: list[RowError]
    started_at: Optional[datetime] = None
