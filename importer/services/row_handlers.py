"""Per-kind row pipelines: validate, duplicate check, calculate, persist.

A handler turns one raw row into a RowOutcome. Nothing it does raises past
the handler: validation failures, duplicate or precondition failures and
storage errors on the insert all come back as a rejected outcome.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from importer.models.dealer import Dealer, DealerStatus
from importer.models.import_job import JobKind
from importer.models.payout import PayoutCase
from importer.schemas.rows import DealerRecord, PayoutRecord
from importer.services.calculator import calculate_payout
from importer.services.collaborators import ApprovalRequester, AuditTrailRecorder
from importer.services.csv_reader import RawRow
from importer.services.duplicate_guard import DealerDuplicateGuard, PayoutDuplicateGuard
from importer.services.validators import validate_dealer_row, validate_payout_row

logger = logging.getLogger(__name__)


@dataclass
class RowOutcome:
    row: int
    data: dict[str, Optional[str]]
    success: bool
    reasons: list[str] = field(default_factory=list)
    entity_id: Optional[int] = None

    @classmethod
    def rejected(cls, raw: RawRow, reasons: list[str]) -> "RowOutcome":
        return cls(row=raw.row, data=raw.data, success=False, reasons=reasons)

    @classmethod
    def accepted(cls, raw: RawRow, entity_id: int) -> "RowOutcome":
        return cls(row=raw.row, data=raw.data, success=True, entity_id=entity_id)


class RowHandler:
    """Base row pipeline. Subclasses supply the kind-specific steps."""

    def __init__(self, db: Session, submitted_by: int):
        self.db = db
        self.submitted_by = submitted_by
        self.audit = AuditTrailRecorder(db)

    def handle(self, raw: RawRow) -> RowOutcome:
        try:
            return self._handle(raw)
        except IntegrityError as e:
            logger.info(f"Row {raw.row} lost a natural-key race at insert: {e.orig}")
            return RowOutcome.rejected(raw, [self.integrity_reason()])
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Row {raw.row} could not be persisted: {e}")
            # Earlier rows are already committed by the job store
            self.db.rollback()
            return RowOutcome.rejected(raw, [f"Failed to save row: {e.__class__.__name__}"])

    def _handle(self, raw: RawRow) -> RowOutcome:
        raise NotImplementedError

    def integrity_reason(self) -> str:
        raise NotImplementedError


class DealerRowHandler(RowHandler):
    def __init__(self, db: Session, submitted_by: int):
        super().__init__(db, submitted_by)
        self.guard = DealerDuplicateGuard(db)
        self.approvals = ApprovalRequester(db)

    def _handle(self, raw: RawRow) -> RowOutcome:
        validation = validate_dealer_row(raw.data)
        if not validation.ok:
            return RowOutcome.rejected(raw, validation.reasons)
        record: DealerRecord = validation.record

        guard = self.guard.check(record)
        if not guard.ok:
            return RowOutcome.rejected(raw, guard.reasons)

        dealer = Dealer(
            **record.model_dump(),
            status=DealerStatus.PENDING,
            created_by=self.submitted_by,
        )
        with self.db.begin_nested():
            self.db.add(dealer)
            self.db.flush()

        self.audit.record(
            entity_type="Dealer",
            entity_id=dealer.id,
            new_values=record.model_dump(
                include={"dealer_code", "dealer_name", "gst_number", "pan_number", "state"}
            ),
            performed_by=self.submitted_by,
        )
        self.approvals.request_dealer_approval(dealer.id, self.submitted_by)
        return RowOutcome.accepted(raw, dealer.id)

    def integrity_reason(self) -> str:
        return "Duplicate dealer_code, GST number, or PAN number"


class PayoutRowHandler(RowHandler):
    def __init__(
        self,
        db: Session,
        submitted_by: int,
        cycle_id: int,
        strict_optional_amounts: bool = False,
    ):
        super().__init__(db, submitted_by)
        self.cycle_id = cycle_id
        self.strict_optional_amounts = strict_optional_amounts
        self.guard = PayoutDuplicateGuard(db, cycle_id)

    def _handle(self, raw: RawRow) -> RowOutcome:
        validation = validate_payout_row(
            raw.data, strict_optional_amounts=self.strict_optional_amounts
        )
        if not validation.ok:
            return RowOutcome.rejected(raw, validation.reasons)
        record: PayoutRecord = validation.record

        guard = self.guard.check(record)
        if not guard.ok:
            return RowOutcome.rejected(raw, guard.reasons)

        calculation = calculate_payout(
            record.base_amount,
            record.incentive_amount,
            record.deduction_amount,
            record.recovery_amount,
        )
        case = PayoutCase(
            case_number=f"CASE-{self.cycle_id}-{uuid.uuid4().hex[:12].upper()}",
            cycle_id=self.cycle_id,
            dealer_id=guard.dealer_id,
            payout_type=record.payout_type,
            base_amount=calculation.base_amount,
            incentive_amount=calculation.incentive_amount,
            deduction_amount=calculation.deduction_amount,
            recovery_amount=calculation.recovery_amount,
            net_amount=calculation.net_amount,
            status="PayoutGenerated",
            bre_calculation=calculation.trace,
            raw_data=raw.data,
        )
        with self.db.begin_nested():
            self.db.add(case)
            self.db.flush()

        self.audit.record(
            entity_type="PayoutCase",
            entity_id=case.id,
            new_values={
                "case_number": case.case_number,
                "cycle_id": self.cycle_id,
                "dealer_code": record.dealer_code,
                "net_amount": str(calculation.net_amount),
            },
            performed_by=self.submitted_by,
        )
        return RowOutcome.accepted(raw, case.id)

    def integrity_reason(self) -> str:
        return "Payout case already exists for this dealer in this cycle"


def build_row_handler(
    kind: JobKind,
    db: Session,
    submitted_by: int,
    cycle_id: Optional[int] = None,
    strict_optional_amounts: bool = False,
) -> RowHandler:
    if kind == JobKind.DEALER_IMPORT:
        return DealerRowHandler(db, submitted_by)
    if kind == JobKind.PAYOUT_IMPORT:
        if cycle_id is None:
            raise ValueError("Payout imports require a cycle_id")
        return PayoutRowHandler(
            db, submitted_by, cycle_id, strict_optional_amounts=strict_optional_amounts
        )
    raise ValueError(f"Unsupported job kind: {kind}")
