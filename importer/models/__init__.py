"""Database models."""
from importer.models.audit import AuditTrail, ServiceRequest
from importer.models.dealer import Dealer, DealerStatus
from importer.models.import_job import ImportJob, JobKind, JobStatus
from importer.models.payout import PayoutCase, PayoutCycle, PayoutCycleStatus

__all__ = [
    "AuditTrail",
    "Dealer",
    "DealerStatus",
    "ImportJob",
    "JobKind",
    "JobStatus",
    "PayoutCase",
    "PayoutCycle",
    "PayoutCycleStatus",
    "ServiceRequest",
]
