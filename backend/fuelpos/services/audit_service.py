"""
Audit Service — Manages the append-only, hash-chained audit trail.
"""
from datetime import datetime
from typing import Optional, Dict

from sqlalchemy.orm import Session

from fuelpos.models.audit import AuditLog
from fuelpos.utils.hashing import chain_hash

ACTION_LOGIN = "login"
ACTION_LOGOUT = "logout"
ACTION_PAYMENT_PROCESSED = "payment_processed"
ACTION_ALERT_CREATED = "alert_created"


class AuditService:
    """Creates tamper-evident audit log entries with hash chaining."""

    @staticmethod
    def log(
        db: Session,
        action: str,
        employee_id: Optional[str] = None,
        details: Optional[Dict] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Append an audit log entry linked to the previous one.

        Args:
            db: Database session.
            action: Action identifier (e.g. login, payment_processed).
            employee_id: Acting employee; None for pre-auth events.
            details: Structured payload stored with the entry and hashed.
            ip_address: Client IP.
            user_agent: Client user agent.

        Returns:
            The created AuditLog entry.
        """
        last_entry = db.query(AuditLog).order_by(AuditLog.id.desc()).first()
        previous_hash = last_entry.payload_hash if last_entry else ""

        details = details or {}
        created_at = datetime.utcnow()
        entry_hash = chain_hash(
            {"action": action, "employee_id": employee_id, "details": details},
            previous_hash,
        )

        entry = AuditLog(
            employee_id=employee_id,
            action=action,
            details=details,
            payload_hash=entry_hash,
            previous_hash=previous_hash,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:256] or None,
            created_at=created_at,
        )

        db.add(entry)
        db.commit()
        db.refresh(entry)

        return entry

    @staticmethod
    def get_logs(db: Session, employee_id: Optional[str] = None, limit: int = 500) -> list[AuditLog]:
        """Audit entries, oldest first, optionally for one employee."""
        query = db.query(AuditLog)
        if employee_id:
            query = query.filter(AuditLog.employee_id == employee_id)
        return query.order_by(AuditLog.id.asc()).limit(limit).all()

    @staticmethod
    def verify_chain(db: Session) -> dict:
        """Verify the integrity of the whole audit chain.

        Returns:
            dict with 'valid' (bool), 'total_entries', and 'broken_at' (if invalid).
        """
        entries = db.query(AuditLog).order_by(AuditLog.id.asc()).all()

        if not entries:
            return {"valid": True, "total_entries": 0, "broken_at": None}

        previous_hash = ""
        for entry in entries:
            expected = chain_hash(
                {"action": entry.action, "employee_id": entry.employee_id, "details": entry.details or {}},
                previous_hash,
            )
            if entry.previous_hash != previous_hash or entry.payload_hash != expected:
                return {
                    "valid": False,
                    "total_entries": len(entries),
                    "broken_at": entry.id,
                    "message": f"Chain broken at entry {entry.id} ({entry.action})",
                }
            previous_hash = entry.payload_hash

        return {"valid": True, "total_entries": len(entries), "broken_at": None}
