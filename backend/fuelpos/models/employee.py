"""
Employee Model — Station staff who sign in with a PIN.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean

from fuelpos.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    pin_hash = Column(String(64), nullable=False, unique=True, index=True)  # SHA-256 of the PIN
    rfid_code = Column(String(64))
    full_name = Column(String(128), nullable=False)
    role = Column(String(16), nullable=False, default="cashier")  # cashier | manager | admin
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
