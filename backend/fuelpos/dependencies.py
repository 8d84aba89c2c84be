"""
Shared FastAPI dependencies for application-scoped services.
Both are created on startup and live on ``app.state``.
"""
from fastapi.requests import HTTPConnection

from fuelpos.services.payment_session import PaymentSessionManager
from fuelpos.services.transaction_recorder import TransactionRecorder


def get_recorder(conn: HTTPConnection) -> TransactionRecorder:
    return conn.app.state.recorder


def get_payment_manager(conn: HTTPConnection) -> PaymentSessionManager:
    return conn.app.state.payments
