"""
Alert Model — Operator follow-up items raised against employees or payments.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Text

from fuelpos.database import Base


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=True)

    type = Column(String(32), nullable=False)
    # Types: suspicious_activity, excessive_cancellations, unusual_amount, failed_payments
    title = Column(String(128), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="active")  # active | resolved | dismissed
    alert_metadata = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String(36), ForeignKey("employees.id"), nullable=True)
