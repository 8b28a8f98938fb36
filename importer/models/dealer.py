"""Dealer master record model."""
import enum

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from importer.database import Base
from importer.models.import_job import enum_column


class DealerStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Dealer(Base):
    """A dealer. Dealer code, GST and PAN are each unique natural keys."""

    __tablename__ = "dealers"

    id = Column(Integer, primary_key=True, index=True)
    dealer_code = Column(String(50), nullable=False, unique=True)
    dealer_name = Column(String(255), nullable=False)
    gst_number = Column(String(15), nullable=False, unique=True)
    pan_number = Column(String(10), nullable=False, unique=True)
    state = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    mobile = Column(String(10), nullable=False)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    pincode = Column(String(10), nullable=True)
    bank_name = Column(String(255), nullable=True)
    account_number = Column(String(50), nullable=True)
    ifsc_code = Column(String(20), nullable=True)
    branch = Column(String(255), nullable=True)
    status = enum_column(DealerStatus, nullable=False, default=DealerStatus.PENDING)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Dealer(id={self.id}, dealer_code='{self.dealer_code}', status={self.status})>"
