"""
Transaction Recorder — persists a completed fuel sale and its audit entry.

The transaction write and the audit write are sequenced: the audit entry is
only attempted once the transaction is committed. A failed audit write does
not undo the sale (the money is already captured); it is logged for operator
follow-up instead.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.orm import Session

from fuelpos.schemas.schemas import TransactionRecord
from fuelpos.services.audit_service import ACTION_PAYMENT_PROCESSED, ACTION_ALERT_CREATED
from fuelpos.services.storage import Storage, StorageError
from fuelpos.utils.logger import get_logger
from fuelpos.utils.validators import to_money

logger = get_logger("recorder")

PAYMENT_METHODS = ("cash", "card", "qr_code", "promptpay")
RECEIPT_ATTEMPTS = 5


class TransactionRejected(ValueError):
    """The sale cannot be recorded as requested (bad fuel type, amount or method)."""


@dataclass(frozen=True)
class SaleDraft:
    """Everything needed to record a sale, except the price, which comes from the catalog."""

    employee_id: str
    fuel_type_id: str
    fuel_amount: Decimal
    payment_method: str
    notes: Optional[str] = None
    external_transaction_id: Optional[str] = None
    payment_session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def generate_receipt_number(prefix: str = "GS", now: Optional[datetime] = None) -> str:
    """``GS`` + UTC timestamp to the second + 4 random digits, e.g. GS25061914302207."""
    now = now or datetime.utcnow()
    return f"{prefix}{now:%y%m%d%H%M%S}{secrets.randbelow(10000):04d}"


class TransactionRecorder:
    """Records sales through a fresh Storage per call.

    ``session_factory`` is a SQLAlchemy ``sessionmaker`` (or any callable
    returning a Session).
    """

    def __init__(self, session_factory: Callable[[], Session], receipt_prefix: str = "GS"):
        self.session_factory = session_factory
        self.receipt_prefix = receipt_prefix

    def _unique_receipt(self, storage: Storage) -> str:
        for _ in range(RECEIPT_ATTEMPTS):
            receipt = generate_receipt_number(self.receipt_prefix)
            if not storage.receipt_exists(receipt):
                return receipt
        raise StorageError("Could not allocate a unique receipt number")

    def record(self, draft: SaleDraft) -> TransactionRecord:
        """Persist ``draft`` and return the stored record.

        Raises:
            TransactionRejected: unknown or unavailable fuel type, bad amount or method.
            StorageError: the transaction itself could not be written.
        """
        if draft.payment_method not in PAYMENT_METHODS:
            raise TransactionRejected(f"Unknown payment method: {draft.payment_method}")
        try:
            fuel_amount = to_money(draft.fuel_amount)
        except ValueError as exc:
            raise TransactionRejected(str(exc))
        if fuel_amount <= 0:
            raise TransactionRejected("Fuel amount must be positive")

        db = self.session_factory()
        try:
            storage = Storage(db)
            if storage.get_employee(draft.employee_id) is None:
                raise TransactionRejected(f"Employee not found: {draft.employee_id}")
            fuel_type = storage.get_fuel_type(draft.fuel_type_id)
            if fuel_type is None:
                raise TransactionRejected(f"Fuel type not found: {draft.fuel_type_id}")
            if not fuel_type.is_available:
                raise TransactionRejected(f"Fuel type not available: {fuel_type.name}")

            price_per_liter = to_money(fuel_type.price_per_liter)
            total_amount = to_money(fuel_amount * price_per_liter)
            receipt_number = self._unique_receipt(storage)

            transaction = storage.create_transaction({
                "employee_id": draft.employee_id,
                "fuel_type_id": fuel_type.id,
                "fuel_amount": fuel_amount,
                "price_per_liter": price_per_liter,
                "total_amount": total_amount,
                "payment_method": draft.payment_method,
                "status": "completed",
                "receipt_number": receipt_number,
                "external_transaction_id": draft.external_transaction_id,
                "payment_session_id": draft.payment_session_id,
                "notes": draft.notes,
            })
            record = TransactionRecord.model_validate(transaction)
            logger.info(
                "Recorded %s sale %s: %s L x %s = %s",
                record.payment_method, record.receipt_number,
                record.fuel_amount, record.price_per_liter, record.total_amount,
            )

            try:
                storage.create_audit_log({
                    "action": ACTION_PAYMENT_PROCESSED,
                    "employee_id": draft.employee_id,
                    "details": {
                        "success": True,
                        "transaction_id": record.id,
                        "amount": str(record.total_amount),
                        "payment_method": record.payment_method,
                        "receipt_number": record.receipt_number,
                        "external_transaction_id": record.external_transaction_id,
                        "payment_session_id": record.payment_session_id,
                    },
                    "ip_address": draft.ip_address,
                    "user_agent": draft.user_agent,
                })
            except StorageError as exc:
                logger.error(
                    "Audit entry missing for transaction %s (receipt %s): %s",
                    record.id, record.receipt_number, exc,
                )

            return record
        finally:
            db.close()

    def raise_reconciliation_alert(self, draft: SaleDraft, amount: Decimal, error: str) -> None:
        """Flag a captured payment that has no transaction row. Best effort."""
        db = self.session_factory()
        try:
            storage = Storage(db)
            alert = storage.create_alert({
                "employee_id": draft.employee_id,
                "type": "failed_payments",
                "title": "Captured payment not recorded",
                "description": (
                    f"Payment {draft.external_transaction_id} for {amount} THB was confirmed "
                    f"by the bank but the sale could not be recorded: {error}"
                ),
                "alert_metadata": {
                    "payment_session_id": draft.payment_session_id,
                    "external_transaction_id": draft.external_transaction_id,
                    "amount": str(amount),
                    "payment_method": draft.payment_method,
                },
            })
            storage.create_audit_log({
                "action": ACTION_ALERT_CREATED,
                "employee_id": draft.employee_id,
                "details": {"alert_id": alert.id, "type": alert.type},
            })
        except StorageError as exc:
            logger.error("Could not raise reconciliation alert for %s: %s", draft.payment_session_id, exc)
        finally:
            db.close()
