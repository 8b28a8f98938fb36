"""Natural-key duplicate checks against persisted domain records.

These are read-then-write checks with no lock on the key. Two workers
importing overlapping files can both pass the check; the unique constraints
on the tables catch that race at insert time.
"""
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from importer.models.dealer import Dealer, DealerStatus
from importer.models.payout import PayoutCase
from importer.schemas.rows import DealerRecord, PayoutRecord

KEY_LABELS = {
    "dealer_code": "Dealer code",
    "gst_number": "GST number",
    "pan_number": "PAN number",
}


@dataclass
class GuardResult:
    reasons: list[str] = field(default_factory=list)
    dealer_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return not self.reasons


class DealerDuplicateGuard:
    """Rejects a dealer whose code, GST or PAN is already on file."""

    def __init__(self, db: Session):
        self.db = db

    def check(self, record: DealerRecord) -> GuardResult:
        existing = (
            self.db.query(Dealer)
            .filter(
                or_(
                    Dealer.dealer_code == record.dealer_code,
                    Dealer.gst_number == record.gst_number,
                    Dealer.pan_number == record.pan_number,
                )
            )
            .all()
        )
        reasons = []
        for column, value in record.natural_keys().items():
            if any(getattr(dealer, column) == value for dealer in existing):
                reasons.append(f"{KEY_LABELS[column]} {value} already exists")
        return GuardResult(reasons=reasons)


class PayoutDuplicateGuard:
    """
    Resolves the payout's dealer and rejects a second case for the same
    (cycle, dealer) pair.

    The dealer must exist and be Approved.
    """

    def __init__(self, db: Session, cycle_id: int):
        self.db = db
        self.cycle_id = cycle_id

    def check(self, record: PayoutRecord) -> GuardResult:
        dealer = (
            self.db.query(Dealer)
            .filter(Dealer.dealer_code == record.dealer_code)
            .first()
        )
        if dealer is None or dealer.status != DealerStatus.APPROVED:
            return GuardResult(
                reasons=[f"Dealer {record.dealer_code} not found or not approved"]
            )

        existing = (
            self.db.query(PayoutCase.id)
            .filter(PayoutCase.cycle_id == self.cycle_id, PayoutCase.dealer_id == dealer.id)
            .first()
        )
        if existing is not None:
            return GuardResult(
                reasons=[
                    f"Payout case already exists for dealer {record.dealer_code} in this cycle"
                ],
                dealer_id=dealer.id,
            )
        return GuardResult(dealer_id=dealer.id)
