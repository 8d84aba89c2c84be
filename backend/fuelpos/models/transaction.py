"""
Gas Transaction Model — One recorded fuel sale.
Totals are always computed server-side from the fuel catalog.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, Text

from fuelpos.database import Base


class GasTransaction(Base):
    __tablename__ = "gas_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=False, index=True)
    fuel_type_id = Column(String(36), ForeignKey("fuel_types.id"), nullable=False)

    fuel_amount = Column(Numeric(10, 2), nullable=False)       # liters
    price_per_liter = Column(Numeric(10, 2), nullable=False)   # catalog price at record time
    total_amount = Column(Numeric(10, 2), nullable=False)

    payment_method = Column(String(16), nullable=False)  # cash | card | qr_code | promptpay
    status = Column(String(16), nullable=False, default="completed")  # pending | completed | cancelled | failed
    receipt_number = Column(String(32), unique=True, nullable=False)
    external_transaction_id = Column(String(64))
    payment_session_id = Column(String(36), index=True)  # QR payment session, when any
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
