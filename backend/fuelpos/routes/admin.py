"""
Admin Routes — Audit trail access and alert handling for managers.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fuelpos.database import get_db
from fuelpos.models.alert import Alert
from fuelpos.schemas.schemas import AuditLogEntry, AuditChainStatus, AlertOut, AlertUpdateRequest
from fuelpos.services.audit_service import AuditService

router = APIRouter(prefix="/api", tags=["Admin"])


@router.get("/audit-logs", response_model=list[AuditLogEntry])
def get_audit_logs(employee_id: Optional[str] = None, limit: int = 500, db: Session = Depends(get_db)):
    """Audit trail, oldest first, optionally for a single employee."""
    return AuditService.get_logs(db, employee_id=employee_id, limit=limit)


@router.get("/audit-logs/verify", response_model=AuditChainStatus)
def verify_audit_chain(db: Session = Depends(get_db)):
    """Verify the integrity of the audit hash chain."""
    return AuditService.verify_chain(db)


@router.get("/alerts", response_model=list[AlertOut])
def list_alerts(status: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Alert)
    if status:
        query = query.filter(Alert.status == status)
    return query.order_by(Alert.created_at.asc()).all()


@router.patch("/alerts/{alert_id}", response_model=AlertOut)
def update_alert(alert_id: str, payload: AlertUpdateRequest, db: Session = Depends(get_db)):
    """Resolve, dismiss or reopen an alert."""
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")

    alert.status = payload.status
    if payload.status == "active":
        alert.resolved_at = None
        alert.resolved_by = None
    else:
        alert.resolved_at = datetime.utcnow()
        alert.resolved_by = payload.resolved_by
    db.commit()
    db.refresh(alert)
    return alert
