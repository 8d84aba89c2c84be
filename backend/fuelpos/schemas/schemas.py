"""
Pydantic Schemas — Request & Response models for API validation.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Literal
from pydantic import BaseModel, Field


PaymentMethod = Literal["cash", "card", "qr_code", "promptpay"]
QRPaymentMethod = Literal["qr_code", "promptpay"]


# ──────────────── Auth ────────────────

class LoginRequest(BaseModel):
    pin: str = Field(..., min_length=1, description="Employee PIN")


class EmployeeOut(BaseModel):
    id: str
    full_name: str
    role: str
    is_active: bool

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    success: bool = True
    employee: EmployeeOut


class LogoutRequest(BaseModel):
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None


# ──────────────── Fuel ────────────────

class FuelTypeOut(BaseModel):
    id: str
    name: str
    type: str
    price_per_liter: Decimal
    is_available: bool

    class Config:
        from_attributes = True


# ──────────────── Transactions ────────────────

class TransactionCreateRequest(BaseModel):
    employee_id: str
    fuel_type_id: str
    fuel_amount: Decimal = Field(..., gt=0, description="Liters dispensed")
    payment_method: PaymentMethod
    notes: Optional[str] = None
    # Accepted for compatibility with older terminals; never trusted.
    total_amount: Optional[Decimal] = None


class TransactionRecord(BaseModel):
    id: str
    employee_id: str
    fuel_type_id: str
    fuel_amount: Decimal
    price_per_liter: Decimal
    total_amount: Decimal
    payment_method: str
    status: str
    receipt_number: str
    external_transaction_id: Optional[str] = None
    payment_session_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ──────────────── QR Payments ────────────────

class QRSessionStartRequest(BaseModel):
    employee_id: str
    fuel_type_id: str
    fuel_amount: Decimal = Field(..., gt=0, description="Liters dispensed")
    payment_method: QRPaymentMethod = "promptpay"
    notes: Optional[str] = None


class QRSessionResponse(BaseModel):
    session_id: str
    state: str
    amount: Decimal
    payment_method: str
    merchant_ref: str
    transaction_ref: Optional[str] = None
    qr_payload: Optional[str] = None
    qr_image: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    remaining_seconds: int = 0
    external_transaction_id: Optional[str] = None
    failure: Optional[Dict] = None
    transaction: Optional[TransactionRecord] = None
    superseded_by: Optional[str] = None


class SimulatedStatusRequest(BaseModel):
    status: Literal["pending", "success", "failed"] = "success"
    external_transaction_id: Optional[str] = None


# ──────────────── Admin / Audit ────────────────

class AuditLogEntry(BaseModel):
    id: int
    employee_id: Optional[str] = None
    action: str
    details: Optional[Dict] = None
    payload_hash: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditChainStatus(BaseModel):
    valid: bool
    total_entries: int
    broken_at: Optional[int] = None
    message: Optional[str] = None


class AlertOut(BaseModel):
    id: str
    employee_id: Optional[str] = None
    type: str
    title: str
    description: str
    status: str
    alert_metadata: Optional[Dict] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    class Config:
        from_attributes = True


class AlertUpdateRequest(BaseModel):
    status: Literal["active", "resolved", "dismissed"]
    resolved_by: Optional[str] = None


# ──────────────── Generic ────────────────

class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None

