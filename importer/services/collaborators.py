"""Audit and approval side effects of a successful import row.

Both are fire-and-forget: a failure is logged and never fails the row.
Each write runs in its own SAVEPOINT so a failed insert does not discard the
domain record it describes.
"""
import logging
import uuid
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from importer.models.audit import AuditTrail, ServiceRequest

logger = logging.getLogger(__name__)

WORKER_USER_AGENT = "Bulk Upload Worker"


class AuditTrailRecorder:
    """Writes CREATE events to the audit trail."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        entity_type: str,
        entity_id: int,
        new_values: dict[str, Any],
        performed_by: int,
        action: str = "CREATE",
        remarks: Optional[str] = None,
    ) -> None:
        try:
            with self.db.begin_nested():
                self.db.add(
                    AuditTrail(
                        entity_type=entity_type,
                        entity_id=entity_id,
                        action=action,
                        new_values=new_values,
                        remarks=remarks,
                        user_agent=WORKER_USER_AGENT,
                        performed_by=performed_by,
                    )
                )
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Failed to log audit trail for {entity_type} {entity_id}: {e}")


class ApprovalRequester:
    """Opens a checker approval request for newly imported dealers."""

    def __init__(self, db: Session):
        self.db = db

    def request_dealer_approval(self, dealer_id: int, requested_by: int) -> None:
        request_number = f"DLR-BULK-{dealer_id}-{uuid.uuid4().hex[:8].upper()}"
        try:
            with self.db.begin_nested():
                self.db.add(
                    ServiceRequest(
                        request_number=request_number,
                        request_type="DealerApproval",
                        entity_type="Dealer",
                        entity_id=dealer_id,
                        current_stage="Created",
                        next_stage="CheckerApproval",
                        status="Pending",
                        assigned_role="Checker",
                        created_by=requested_by,
                    )
                )
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Failed to create approval request for dealer {dealer_id}: {e}")
