"""
Auth Routes — Employee PIN login and logout.
Every attempt, successful or not, lands in the audit trail.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from fuelpos.config import get_settings
from fuelpos.database import get_db
from fuelpos.schemas.schemas import LoginRequest, LoginResponse, LogoutRequest, EmployeeOut
from fuelpos.services.audit_service import AuditService, ACTION_LOGIN, ACTION_LOGOUT
from fuelpos.services.storage import Storage
from fuelpos.utils.rate_limiter import rate_limit
from fuelpos.utils.validators import validate_pin

settings = get_settings()

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _client(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent", "")[:256],
    }


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    _throttle: bool = Depends(rate_limit(requests=settings.LOGIN_RATE_LIMIT, window=settings.LOGIN_RATE_WINDOW_SECONDS)),
):
    """Sign an employee in with their PIN."""
    employee = Storage(db).get_employee_by_pin(payload.pin) if validate_pin(payload.pin) else None

    if not employee:
        # The attempted PIN is never written to the audit trail
        AuditService.log(
            db, ACTION_LOGIN,
            details={"success": False, "reason": "invalid_pin"},
            **_client(request),
        )
        raise HTTPException(status_code=401, detail="Invalid PIN or inactive employee")

    AuditService.log(
        db, ACTION_LOGIN,
        employee_id=employee.id,
        details={"success": True, "employee_name": employee.full_name},
        **_client(request),
    )

    return LoginResponse(employee=EmployeeOut.model_validate(employee))


@router.post("/logout")
def logout(
    payload: LogoutRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Record an employee sign-out."""
    if payload.employee_id:
        if not Storage(db).get_employee(payload.employee_id):
            raise HTTPException(status_code=404, detail="Employee not found")
        AuditService.log(
            db, ACTION_LOGOUT,
            employee_id=payload.employee_id,
            details={"employee_name": payload.employee_name},
            **_client(request),
        )

    return {"success": True}
