"""
Transaction Routes — Direct (cash / card) sales and transaction lookup.
QR-based methods go through /api/payments/qr instead.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from fuelpos.database import get_db
from fuelpos.dependencies import get_recorder
from fuelpos.schemas.schemas import TransactionCreateRequest, TransactionRecord
from fuelpos.services.audit_service import AuditService, ACTION_PAYMENT_PROCESSED
from fuelpos.services.storage import Storage, StorageError
from fuelpos.services.transaction_recorder import SaleDraft, TransactionRecorder, TransactionRejected
from fuelpos.utils.logger import get_logger

logger = get_logger("transactions")

router = APIRouter(tags=["Transactions"])

DIRECT_METHODS = ("cash", "card")


@router.post("/api/transactions", response_model=TransactionRecord)
def create_transaction(
    payload: TransactionCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    recorder: TransactionRecorder = Depends(get_recorder),
):
    """Record a cash or card sale. The total is always computed from the catalog price."""
    if payload.payment_method not in DIRECT_METHODS:
        raise HTTPException(
            status_code=400,
            detail="QR payments must be captured through /api/payments/qr/sessions",
        )

    ip_address = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent", "")[:256]

    if payload.total_amount is not None:
        logger.debug("Ignoring client-supplied total %s", payload.total_amount)

    draft = SaleDraft(
        employee_id=payload.employee_id,
        fuel_type_id=payload.fuel_type_id,
        fuel_amount=payload.fuel_amount,
        payment_method=payload.payment_method,
        notes=payload.notes,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    try:
        return recorder.record(draft)
    except TransactionRejected as exc:
        failure = {"success": False, "error": str(exc), "payment_method": payload.payment_method}
        employee = Storage(db).get_employee(payload.employee_id)
        AuditService.log(
            db, ACTION_PAYMENT_PROCESSED,
            employee_id=employee.id if employee else None,
            details=failure,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageError as exc:
        logger.error("Transaction write failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to create transaction")


@router.get("/api/transactions/{transaction_id}", response_model=TransactionRecord)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    transaction = Storage(db).get_transaction(transaction_id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


@router.get("/api/employees/{employee_id}/transactions", response_model=list[TransactionRecord])
def get_employee_transactions(employee_id: str, db: Session = Depends(get_db)):
    """All sales recorded by one employee, oldest first."""
    return Storage(db).get_employee_transactions(employee_id)
