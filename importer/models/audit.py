"""Audit trail and approval service request models."""
from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from importer.database import Base


class AuditTrail(Base):
    """Model for entity change events."""

    __tablename__ = "audit_trail"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=False, index=True)
    action = Column(String(20), nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    remarks = Column(Text, nullable=True)
    user_agent = Column(String(255), nullable=True)
    performed_by = Column(Integer, nullable=False)
    performed_at = Column(DateTime, server_default=func.now(), nullable=False)


class ServiceRequest(Base):
    """Model for workflow requests such as dealer approval."""

    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_number = Column(String(100), nullable=False, unique=True)
    request_type = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False, index=True)
    current_stage = Column(String(50), nullable=False)
    next_stage = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="Pending")
    assigned_role = Column(String(50), nullable=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
