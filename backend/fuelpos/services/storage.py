"""
Storage — the persistence collaborator for fuel sales.

Wraps a SQLAlchemy session. Every write commits on its own; a failed write
is rolled back and surfaced as StorageError so callers never see a
half-written row. Failed reads surface as StorageError too.
"""
from functools import wraps
from typing import Optional, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fuelpos.models.employee import Employee
from fuelpos.models.fuel import FuelType
from fuelpos.models.transaction import GasTransaction
from fuelpos.models.alert import Alert
from fuelpos.models.audit import AuditLog
from fuelpos.services.audit_service import AuditService
from fuelpos.utils.hashing import hash_pin


class StorageError(Exception):
    """Raised when a persistence operation fails."""


def _read(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"{method.__name__} failed: {exc}") from exc
    return wrapper


class Storage:
    def __init__(self, db: Session):
        self.db = db

    # --- Employees ---

    @_read
    def get_employee(self, employee_id: str) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.id == employee_id).first()

    @_read
    def get_employee_by_pin(self, pin: str) -> Optional[Employee]:
        return self.db.query(Employee).filter(
            Employee.pin_hash == hash_pin(pin),
            Employee.is_active.is_(True),
        ).first()

    # --- Fuel catalog ---

    @_read
    def get_fuel_type(self, fuel_type_id: str) -> Optional[FuelType]:
        return self.db.query(FuelType).filter(FuelType.id == fuel_type_id).first()

    @_read
    def get_available_fuel_types(self) -> list[FuelType]:
        return self.db.query(FuelType).filter(FuelType.is_available.is_(True)).order_by(FuelType.name).all()

    # --- Transactions ---

    def create_transaction(self, record: Dict) -> GasTransaction:
        transaction = GasTransaction(**record)
        try:
            self.db.add(transaction)
            self.db.commit()
            self.db.refresh(transaction)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Transaction write failed: {exc}") from exc
        return transaction

    @_read
    def get_transaction(self, transaction_id: str) -> Optional[GasTransaction]:
        return self.db.query(GasTransaction).filter(GasTransaction.id == transaction_id).first()

    @_read
    def get_employee_transactions(self, employee_id: str) -> list[GasTransaction]:
        return (
            self.db.query(GasTransaction)
            .filter(GasTransaction.employee_id == employee_id)
            .order_by(GasTransaction.created_at.asc())
            .all()
        )

    @_read
    def receipt_exists(self, receipt_number: str) -> bool:
        return self.db.query(GasTransaction.id).filter(
            GasTransaction.receipt_number == receipt_number
        ).first() is not None

    # --- Alerts ---

    def create_alert(self, entry: Dict) -> Alert:
        alert = Alert(**entry)
        try:
            self.db.add(alert)
            self.db.commit()
            self.db.refresh(alert)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Alert write failed: {exc}") from exc
        return alert

    # --- Audit ---

    def create_audit_log(self, entry: Dict) -> AuditLog:
        try:
            return AuditService.log(self.db, **entry)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Audit write failed: {exc}") from exc
