"""
QR Payment Routes — PromptPay / Thai QR30 payment sessions.
Handles: session start, status, cancel, retry, live events, simulated bank callback.
"""
import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from fuelpos.config import get_settings
from fuelpos.database import get_db
from fuelpos.dependencies import get_payment_manager
from fuelpos.schemas.schemas import QRSessionStartRequest, QRSessionResponse, SimulatedStatusRequest
from fuelpos.services.payment_session import (
    PaymentSession, PaymentSessionManager, MerchantInfo, SessionEvent,
    SessionNotFound, InvalidSessionTransition,
)
from fuelpos.services.status_client import SimulatedStatusClient
from fuelpos.services.storage import Storage
from fuelpos.services.transaction_recorder import SaleDraft
from fuelpos.utils.validators import to_money

settings = get_settings()

router = APIRouter(prefix="/api/payments/qr", tags=["QR Payments"])

LIVE_STATES = ("generating", "waiting")


def station_merchant() -> MerchantInfo:
    return MerchantInfo(
        name=settings.MERCHANT_NAME,
        promptpay_id=settings.PROMPTPAY_ID,
        merchant_id=settings.QR30_MERCHANT_ID,
        terminal_id=settings.QR30_TERMINAL_ID,
    )


def _to_response(manager: PaymentSessionManager, session: PaymentSession) -> QRSessionResponse:
    return QRSessionResponse(
        session_id=session.session_id,
        state=session.state.value,
        amount=session.amount,
        payment_method=session.payment_method,
        merchant_ref=session.merchant_ref,
        transaction_ref=session.transaction_ref,
        qr_payload=session.qr_payload,
        qr_image=session.qr_image,
        created_at=session.created_at,
        expires_at=session.expires_at,
        remaining_seconds=manager.remaining_seconds(session),
        external_transaction_id=session.external_transaction_id,
        failure=session.failure,
        transaction=session.transaction,
        superseded_by=session.superseded_by,
    )


def _lookup(manager: PaymentSessionManager, session_id: str) -> PaymentSession:
    try:
        return manager.get_session(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Payment session not found")


@router.post("/sessions", response_model=QRSessionResponse)
async def start_qr_session(
    payload: QRSessionStartRequest,
    request: Request,
    db: Session = Depends(get_db),
    manager: PaymentSessionManager = Depends(get_payment_manager),
):
    """Price the sale from the catalog, generate its QR and start waiting for payment."""
    storage = Storage(db)
    if not storage.get_employee(payload.employee_id):
        raise HTTPException(status_code=404, detail="Employee not found")
    fuel_type = storage.get_fuel_type(payload.fuel_type_id)
    if not fuel_type or not fuel_type.is_available:
        raise HTTPException(status_code=400, detail="Fuel type not available")

    fuel_amount = to_money(payload.fuel_amount)
    amount = to_money(fuel_amount * to_money(fuel_type.price_per_liter))

    order = SaleDraft(
        employee_id=payload.employee_id,
        fuel_type_id=fuel_type.id,
        fuel_amount=fuel_amount,
        payment_method=payload.payment_method,
        notes=payload.notes,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent", "")[:256],
    )
    session_id = manager.start_session(amount, station_merchant(), order)
    return _to_response(manager, manager.get_session(session_id))


@router.get("/sessions/{session_id}", response_model=QRSessionResponse)
async def get_qr_session(session_id: str, manager: PaymentSessionManager = Depends(get_payment_manager)):
    return _to_response(manager, _lookup(manager, session_id))


@router.post("/sessions/{session_id}/cancel", response_model=QRSessionResponse)
async def cancel_qr_session(session_id: str, manager: PaymentSessionManager = Depends(get_payment_manager)):
    try:
        session = manager.cancel_session(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Payment session not found")
    except InvalidSessionTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _to_response(manager, session)


@router.post("/sessions/{session_id}/retry", response_model=QRSessionResponse)
async def retry_qr_session(session_id: str, manager: PaymentSessionManager = Depends(get_payment_manager)):
    """Replace a failed or timed-out session with a fresh QR and deadline."""
    try:
        new_id = manager.retry_session(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Payment session not found")
    except InvalidSessionTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _to_response(manager, manager.get_session(new_id))


async def _wait_for_disconnect(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Discard client messages; wake the sender once the client disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            queue.put_nowait(None)
            return


@router.websocket("/sessions/{session_id}/events")
async def qr_session_events(
    websocket: WebSocket,
    session_id: str,
    manager: PaymentSessionManager = Depends(get_payment_manager),
):
    """Stream transition and countdown events for one session until it closes."""
    await websocket.accept()
    try:
        session = manager.get_session(session_id)
    except SessionNotFound:
        await websocket.close(code=4404)
        return

    # None in the queue means the client went away
    queue: asyncio.Queue = asyncio.Queue()

    def on_event(event: SessionEvent):
        if event.session_id == session_id:
            queue.put_nowait(event)

    unsubscribe = manager.subscribe(on_event)
    reader = asyncio.get_running_loop().create_task(_wait_for_disconnect(websocket, queue))
    client_left = False
    try:
        await websocket.send_json({
            "kind": "snapshot",
            "session_id": session_id,
            "state": session.state.value,
            "payload": {"remaining_seconds": manager.remaining_seconds(session)},
        })
        live = session.state.value in LIVE_STATES
        while live:
            event = await queue.get()
            if event is None:
                client_left = True
                break
            await websocket.send_json({
                "kind": event.kind,
                "session_id": event.session_id,
                "state": event.state,
                "payload": event.payload,
            })
            live = event.kind != "transition" or event.state in LIVE_STATES
    except WebSocketDisconnect:
        client_left = True
    finally:
        unsubscribe()
        reader.cancel()

    if not client_left:
        await websocket.close()


@router.post("/simulate/{transaction_ref}")
async def simulate_bank_status(
    transaction_ref: str,
    payload: SimulatedStatusRequest,
    manager: PaymentSessionManager = Depends(get_payment_manager),
):
    """Development hook: decide what the simulated bank answers for a transaction ref."""
    client = manager.status_client
    if not isinstance(client, SimulatedStatusClient):
        raise HTTPException(status_code=409, detail="Bank status simulation is disabled")
    result = client.resolve(transaction_ref, payload.status, payload.external_transaction_id)
    return {"transaction_ref": transaction_ref, "status": result.status,
            "external_transaction_id": result.external_transaction_id}
