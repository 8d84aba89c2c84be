"""
Fuel Routes — Read-only access to the fuel price catalog.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fuelpos.database import get_db
from fuelpos.schemas.schemas import FuelTypeOut
from fuelpos.services.storage import Storage

router = APIRouter(prefix="/api/fuel-types", tags=["Fuel"])


@router.get("", response_model=list[FuelTypeOut])
def list_fuel_types(db: Session = Depends(get_db)):
    """Fuel types currently on sale, ordered by name."""
    return Storage(db).get_available_fuel_types()


@router.get("/{fuel_type_id}", response_model=FuelTypeOut)
def get_fuel_type(fuel_type_id: str, db: Session = Depends(get_db)):
    fuel_type = Storage(db).get_fuel_type(fuel_type_id)
    if not fuel_type:
        raise HTTPException(status_code=404, detail="Fuel type not found")
    return fuel_type
