"""
Async helpers and test doubles for payment session tests.
"""
import asyncio
import time
from datetime import datetime
from decimal import Decimal

from fuelpos.schemas.schemas import TransactionRecord
from fuelpos.services.status_client import StatusResult, PollTransientError


async def wait_for_state(manager, session_id, *states, timeout=3.0):
    """Poll the manager until the session reaches one of ``states``."""
    wanted = {getattr(s, "value", s) for s in states}
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        session = manager.get_session(session_id)
        if session.state.value in wanted:
            return session
        await asyncio.sleep(0.005)
    session = manager.get_session(session_id)
    raise AssertionError(f"Session {session_id} stuck in {session.state.value}, expected {sorted(wanted)}")


class ScriptedStatusClient:
    """Answers from a per-call script; the last answer repeats. Records every call."""

    def __init__(self, *answers):
        self.answers = list(answers) or [StatusResult("pending")]
        self.calls = []

    async def check_status(self, transaction_ref):
        self.calls.append(transaction_ref)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


class BlockingStatusClient:
    """Holds every check open until ``release`` is set, then reports success."""

    def __init__(self):
        self.release = asyncio.Event()
        self.calls = []

    async def check_status(self, transaction_ref):
        self.calls.append(transaction_ref)
        await self.release.wait()
        return StatusResult("success", "TH-LATE")


class RecordingRecorder:
    """Stands in for TransactionRecorder; counts calls, optionally fails."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self.alerts = []

    def record(self, draft):
        self.calls.append(draft)
        if self.error is not None:
            raise self.error
        return TransactionRecord(
            id=f"tx-{len(self.calls)}",
            employee_id=draft.employee_id,
            fuel_type_id=draft.fuel_type_id,
            fuel_amount=draft.fuel_amount,
            price_per_liter=Decimal("25.00"),
            total_amount=draft.fuel_amount * Decimal("25.00"),
            payment_method=draft.payment_method,
            status="completed",
            receipt_number=f"GS{len(self.calls):010d}",
            external_transaction_id=draft.external_transaction_id,
            payment_session_id=draft.payment_session_id,
            created_at=datetime.utcnow(),
        )

    def raise_reconciliation_alert(self, draft, amount, error):
        self.alerts.append((draft.payment_session_id, amount, error))


TRANSIENT = PollTransientError("gateway unreachable")

CASHIER_PIN = "4321"
