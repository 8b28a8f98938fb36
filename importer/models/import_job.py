"""Import job model for tracking bulk upload processing."""
import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, Float, Integer, JSON, String
from sqlalchemy.sql import func

from importer.database import Base


class JobKind(str, enum.Enum):
    DEALER_IMPORT = "DealerImport"
    PAYOUT_IMPORT = "PayoutImport"


class JobStatus(str, enum.Enum):
    QUEUED = "Queued"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    PARTIALLY_COMPLETED = "PartiallyCompleted"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.PARTIALLY_COMPLETED}
)


def enum_column(enum_cls, **kwargs) -> Column:
    """String-backed enum column that stores the member value."""
    return Column(
        Enum(
            enum_cls,
            native_enum=False,
            length=32,
            values_callable=lambda members: [m.value for m in members],
        ),
        **kwargs,
    )


class ImportJob(Base):
    """Model for tracking bulk import jobs from submission to a terminal status."""

    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = enum_column(JobKind, nullable=False, index=True)
    filename = Column(String(500), nullable=False)
    submitted_by = Column(Integer, nullable=False)
    cycle_id = Column(Integer, nullable=True)
    status = enum_column(JobStatus, nullable=False, default=JobStatus.QUEUED, index=True)
    total_records = Column(Integer, default=0, nullable=False)
    processed_records = Column(Integer, default=0, nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    failure_count = Column(Integer, default=0, nullable=False)
    progress_percentage = Column(Float, default=0.0, nullable=False)
    errors = Column(JSON, default=list, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<ImportJob(id='{self.id}', kind={self.kind}, status={self.status})>"
