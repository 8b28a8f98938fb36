"""Payout cycle and payout case models."""
import enum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from importer.database import Base
from importer.models.import_job import enum_column


class PayoutCycleStatus(str, enum.Enum):
    DRAFT = "Draft"
    ACTIVE = "Active"
    CLOSED = "Closed"


class PayoutCycle(Base):
    """A payout period that payout cases are generated against."""

    __tablename__ = "payout_cycles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    status = enum_column(PayoutCycleStatus, nullable=False, default=PayoutCycleStatus.DRAFT)
    total_cases = Column(Integer, default=0, nullable=False)
    total_amount = Column(Numeric(16, 2), default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class PayoutCase(Base):
    """One dealer's computed payout within a cycle."""

    __tablename__ = "payout_cases"

    id = Column(Integer, primary_key=True, index=True)
    case_number = Column(String(100), nullable=False, unique=True)
    cycle_id = Column(Integer, ForeignKey("payout_cycles.id"), nullable=False)
    dealer_id = Column(Integer, ForeignKey("dealers.id"), nullable=False)
    payout_type = Column(String(100), nullable=False)
    base_amount = Column(Numeric(14, 2), nullable=False)
    incentive_amount = Column(Numeric(14, 2), nullable=False)
    deduction_amount = Column(Numeric(14, 2), nullable=False, default=0)
    recovery_amount = Column(Numeric(14, 2), nullable=False, default=0)
    net_amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String(50), nullable=False, default="PayoutGenerated")
    bre_calculation = Column(JSON, nullable=False)
    raw_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("cycle_id", "dealer_id", name="uq_payout_cases_cycle_dealer"),
    )

    def __repr__(self):
        return f"<PayoutCase(id={self.id}, case_number='{self.case_number}')>"
