"""
Fuel Type Model — The authoritative price catalog.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Numeric

from fuelpos.database import Base


class FuelType(Base):
    __tablename__ = "fuel_types"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String(64), nullable=False, unique=True)
    type = Column(String(16), nullable=False)  # gasoline | diesel | premium | super | ethanol
    price_per_liter = Column(Numeric(10, 2), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
