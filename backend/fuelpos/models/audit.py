"""
Audit Log Model — Append-only, tamper-evident audit trail.
Every entry is SHA-256 hashed and chained to its predecessor.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey

from fuelpos.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=True, index=True)

    action = Column(String(32), nullable=False)
    # Actions: login, logout, transaction_created, transaction_cancelled,
    #          payment_processed, alert_created

    details = Column(JSON, default=dict)

    payload_hash = Column(String(64))       # Chain hash of this entry
    previous_hash = Column(String(64))      # Hash of the preceding entry

    ip_address = Column(String(45))
    user_agent = Column(String(256))

    created_at = Column(DateTime, default=datetime.utcnow)
