"""
Payment Session Manager — drives one QR payment attempt from QR generation to
a terminal state.

    generating -> waiting -> succeeded | failed | timed_out
    failed | timed_out -> (retry: new session) | cancelled
    generating | waiting -> cancelled

While waiting, two tasks run against the same monotonic deadline: the
poller, which owns the timeout transition, and a countdown that publishes
the remaining seconds for display. Both carry the session token; any result
arriving with a stale token, or for a session no longer waiting, is dropped.

All methods must be called from the event loop that runs the session tasks.
"""
import asyncio
import math
import time
import uuid
import secrets
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional

from fuelpos.schemas.schemas import TransactionRecord
from fuelpos.services.poller import PaymentPoller, PollOutcome, OUTCOME_SUCCESS, OUTCOME_FAILED
from fuelpos.services.qr_payload import EncodingError, build_promptpay_payload, build_qr30_payload
from fuelpos.services.qr_renderer import render_image
from fuelpos.services.storage import StorageError
from fuelpos.services.transaction_recorder import SaleDraft, TransactionRecorder, TransactionRejected
from fuelpos.utils.logger import get_logger

logger = get_logger("payments")


class SessionState(str, Enum):
    GENERATING = "generating"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


TRANSITIONS = {
    SessionState.GENERATING: {SessionState.WAITING, SessionState.FAILED, SessionState.CANCELLED},
    SessionState.WAITING: {SessionState.SUCCEEDED, SessionState.FAILED, SessionState.TIMED_OUT,
                           SessionState.CANCELLED},
    SessionState.FAILED: {SessionState.CANCELLED},
    SessionState.TIMED_OUT: {SessionState.CANCELLED},
    SessionState.SUCCEEDED: set(),
    SessionState.CANCELLED: set(),
}
RETRYABLE = {SessionState.FAILED, SessionState.TIMED_OUT}

EVENT_TRANSITION = "transition"
EVENT_COUNTDOWN = "countdown"


class SessionNotFound(KeyError):
    """No active or recent session with this id."""


class InvalidSessionTransition(ValueError):
    """The requested operation is not allowed in the session's current state."""


@dataclass(frozen=True)
class MerchantInfo:
    name: str
    promptpay_id: str = ""
    merchant_id: str = ""
    terminal_id: str = ""

    @property
    def reference(self) -> str:
        return self.promptpay_id or self.merchant_id


@dataclass(frozen=True)
class SessionEvent:
    session_id: str
    state: str
    payload: dict
    kind: str = EVENT_TRANSITION


@dataclass
class PaymentSession:
    session_id: str
    amount: Decimal
    merchant: MerchantInfo
    order: SaleDraft
    created_at: datetime
    expires_at: Optional[datetime] = None
    state: SessionState = SessionState.GENERATING
    external_transaction_id: Optional[str] = None
    transaction_ref: Optional[str] = None
    qr_payload: Optional[str] = None
    qr_image: Optional[str] = None
    deadline: Optional[float] = None
    failure: Optional[dict] = None
    transaction: Optional[TransactionRecord] = None
    superseded_by: Optional[str] = None
    token: Optional[str] = field(default=None, repr=False)

    @property
    def merchant_ref(self) -> str:
        return self.merchant.reference

    @property
    def payment_method(self) -> str:
        return self.order.payment_method


class SessionStore:
    """Active sessions keyed by id, plus a bounded history of closed ones."""

    def __init__(self, history: int = 100):
        self.history = history
        self._active: Dict[str, PaymentSession] = {}
        self._closed: "OrderedDict[str, PaymentSession]" = OrderedDict()

    def add(self, session: PaymentSession) -> None:
        self._active[session.session_id] = session

    def active(self, session_id: str) -> Optional[PaymentSession]:
        return self._active.get(session_id)

    def get(self, session_id: str) -> Optional[PaymentSession]:
        return self._active.get(session_id) or self._closed.get(session_id)

    def close(self, session_id: str) -> None:
        session = self._active.pop(session_id, None)
        if session is None:
            return
        self._closed[session_id] = session
        while len(self._closed) > self.history:
            self._closed.popitem(last=False)

    def active_ids(self) -> List[str]:
        return list(self._active)


def new_transaction_ref(payment_method: str) -> str:
    prefix = "QR30" if payment_method == "qr_code" else "TXN"
    return f"{prefix}{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


class PaymentSessionManager:
    def __init__(
        self,
        status_client,
        recorder: TransactionRecorder,
        timeout: float = 300.0,
        poll_interval: float = 3.0,
        tick_interval: float = 1.0,
        history: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.status_client = status_client
        self.recorder = recorder
        self.timeout = timeout
        self.tick_interval = tick_interval
        self.clock = clock
        self.poller = PaymentPoller(status_client, interval=poll_interval, clock=clock)
        self.store = SessionStore(history)
        self._tasks: Dict[str, List[asyncio.Task]] = {}
        self._listeners: List[Callable[[SessionEvent], None]] = []

    # ─── Subscriptions ──────────────────────────────────────────────

    def subscribe(self, listener: Callable[[SessionEvent], None]) -> Callable[[], None]:
        """Register ``listener`` for every session event. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, session: PaymentSession, payload: dict, kind: str = EVENT_TRANSITION) -> None:
        event = SessionEvent(session.session_id, session.state.value, payload, kind)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed on %s event for %s", event.state, event.session_id)

    # ─── Public surface ─────────────────────────────────────────────

    def start_session(self, amount: Decimal, merchant: MerchantInfo, order: SaleDraft) -> str:
        """Create a session, generate its QR and start waiting for payment."""
        session = PaymentSession(
            session_id=str(uuid.uuid4()),
            amount=amount,
            merchant=merchant,
            order=order,
            created_at=datetime.utcnow(),
        )
        self.store.add(session)
        logger.info("Payment session %s started: %s THB via %s", session.session_id, amount, order.payment_method)
        self._emit(session, {"amount": str(amount), "payment_method": order.payment_method})
        self._generate(session)
        return session.session_id

    def get_session(self, session_id: str) -> PaymentSession:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def remaining_seconds(self, session: PaymentSession) -> int:
        if session.state is not SessionState.WAITING or session.deadline is None:
            return 0
        return max(0, math.ceil(session.deadline - self.clock()))

    def cancel_session(self, session_id: str) -> PaymentSession:
        session = self._require_active(session_id)
        self._transition(session, SessionState.CANCELLED)
        self._stop_tasks(session)
        self._emit(session, {})
        self.store.close(session_id)
        logger.info("Payment session %s cancelled", session_id)
        return session

    def retry_session(self, session_id: str) -> str:
        """Abandon a failed or timed-out session and start a fresh one for the same sale."""
        session = self._require_active(session_id)
        if session.state not in RETRYABLE:
            raise InvalidSessionTransition(f"Cannot retry a session that is {session.state.value}")
        self._stop_tasks(session)
        new_id = self.start_session(session.amount, session.merchant, session.order)
        session.superseded_by = new_id
        self.store.close(session_id)
        logger.info("Payment session %s retried as %s", session_id, new_id)
        return new_id

    async def close(self) -> None:
        """Stop every running session task (application shutdown)."""
        tasks = [task for tasks in self._tasks.values() for task in tasks]
        for session_id in list(self._tasks):
            session = self.store.get(session_id)
            if session is not None:
                session.token = None
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ─── Internals ──────────────────────────────────────────────────

    def _require_active(self, session_id: str) -> PaymentSession:
        session = self.store.active(session_id)
        if session is None:
            if self.store.get(session_id) is not None:
                raise InvalidSessionTransition(f"Session {session_id} is already closed")
            raise SessionNotFound(session_id)
        return session

    def _transition(self, session: PaymentSession, target: SessionState) -> None:
        if target not in TRANSITIONS[session.state]:
            raise InvalidSessionTransition(f"{session.state.value} -> {target.value} is not allowed")
        logger.debug("Session %s: %s -> %s", session.session_id, session.state.value, target.value)
        session.state = target

    def _build_payload(self, session: PaymentSession) -> str:
        merchant = session.merchant
        if session.payment_method == "qr_code":
            return build_qr30_payload(
                merchant.merchant_id, merchant.terminal_id, session.amount, session.transaction_ref,
            )
        return build_promptpay_payload(merchant.promptpay_id, session.amount, session.transaction_ref)

    def _generate(self, session: PaymentSession) -> None:
        session.transaction_ref = new_transaction_ref(session.payment_method)
        try:
            session.qr_payload = self._build_payload(session)
            session.qr_image = render_image(session.qr_payload)
        except EncodingError as exc:
            logger.warning("QR generation failed for session %s: %s", session.session_id, exc)
            session.failure = {"reason": "encoding_error", "message": str(exc), "retryable": True}
            self._transition(session, SessionState.FAILED)
            self._emit(session, dict(session.failure))
            return

        session.deadline = self.clock() + self.timeout
        session.expires_at = session.created_at + timedelta(seconds=self.timeout)
        session.token = uuid.uuid4().hex
        self._transition(session, SessionState.WAITING)
        self._emit(session, {
            "transaction_ref": session.transaction_ref,
            "qr_payload": session.qr_payload,
            "qr_image": session.qr_image,
            "expires_at": session.expires_at.isoformat(),
            "remaining_seconds": self.remaining_seconds(session),
        })

        loop = asyncio.get_running_loop()
        self._tasks[session.session_id] = [
            loop.create_task(self._watch(session.session_id, session.token)),
            loop.create_task(self._countdown(session.session_id, session.token)),
        ]

    def _stop_tasks(self, session: PaymentSession) -> None:
        """Invalidate the token and cancel both tasks, except the one calling us."""
        session.token = None
        current = asyncio.current_task()
        for task in self._tasks.pop(session.session_id, []):
            if task is not current:
                task.cancel()

    def _live(self, session_id: str, token: str) -> Optional[PaymentSession]:
        session = self.store.active(session_id)
        if session is None or session.token is None or session.token != token:
            return None
        if session.state is not SessionState.WAITING:
            return None
        return session

    async def _countdown(self, session_id: str, token: str) -> None:
        while True:
            session = self._live(session_id, token)
            if session is None:
                return
            remaining = session.deadline - self.clock()
            if remaining <= 0:
                return  # the poller reports the timeout
            await asyncio.sleep(min(self.tick_interval, remaining))
            session = self._live(session_id, token)
            if session is None:
                return
            seconds = self.remaining_seconds(session)
            if seconds > 0:
                self._emit(session, {"remaining_seconds": seconds}, kind=EVENT_COUNTDOWN)

    async def _watch(self, session_id: str, token: str) -> None:
        session = self._live(session_id, token)
        if session is None:
            return
        try:
            outcome = await self.poller.poll(session.transaction_ref, session.deadline)
        except Exception as exc:
            logger.exception("Polling crashed for session %s", session_id)
            session = self._live(session_id, token)
            if session is None:
                return
            self._stop_tasks(session)
            session.failure = {"reason": "poll_error", "message": str(exc), "retryable": True}
            self._transition(session, SessionState.FAILED)
            self._emit(session, dict(session.failure))
            return
        await self._settle(session_id, token, outcome)

    async def _settle(self, session_id: str, token: str, outcome: PollOutcome) -> None:
        session = self._live(session_id, token)
        if session is None:
            logger.info("Discarding %s result for superseded session %s", outcome.status, session_id)
            return

        self._stop_tasks(session)

        if outcome.status == OUTCOME_SUCCESS:
            session.external_transaction_id = outcome.external_transaction_id
            self._transition(session, SessionState.SUCCEEDED)
            payload = {"external_transaction_id": session.external_transaction_id, "recorded": False}
            try:
                payload = await self._record(session)
            finally:
                self._emit(session, payload)
                self.store.close(session_id)
        elif outcome.status == OUTCOME_FAILED:
            session.failure = {"reason": "declined", "message": "Payment declined by the bank", "retryable": True}
            self._transition(session, SessionState.FAILED)
            self._emit(session, dict(session.failure))
        else:
            session.failure = {"reason": "timeout", "message": "No payment before the deadline", "retryable": True}
            self._transition(session, SessionState.TIMED_OUT)
            self._emit(session, {**session.failure, "remaining_seconds": 0})

    async def _record(self, session: PaymentSession) -> dict:
        """Run the recorder once for a session that just succeeded."""
        draft = replace(
            session.order,
            external_transaction_id=session.external_transaction_id,
            payment_session_id=session.session_id,
        )
        payload = {"external_transaction_id": session.external_transaction_id}
        try:
            session.transaction = await asyncio.to_thread(self.recorder.record, draft)
        except (StorageError, TransactionRejected) as exc:
            logger.error(
                "Payment %s captured (%s) but the sale was not recorded: %s",
                session.session_id, session.external_transaction_id, exc,
            )
            error = exc
        except Exception as exc:
            logger.exception(
                "Payment %s captured (%s) but recording crashed",
                session.session_id, session.external_transaction_id,
            )
            error = exc
        else:
            payload.update(recorded=True, transaction=session.transaction.model_dump(mode="json"))
            return payload

        session.failure = {"reason": "storage_error", "message": str(error), "requires_reconciliation": True}
        try:
            await asyncio.to_thread(self.recorder.raise_reconciliation_alert, draft, session.amount, str(error))
        except Exception:
            logger.exception("Reconciliation alert for payment %s was not raised", session.session_id)
        payload.update(recorded=False, **session.failure)
        return payload
