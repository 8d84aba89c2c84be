"""
Pytest fixtures for the FuelPOS backend tests.

Provides an in-memory database per test, a seeded fuel catalog and cashier,
and a TestClient wired to the same database.
"""
import os
import tempfile
from decimal import Decimal

# Must be set before fuelpos is imported: settings are cached on first use.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="fuelpos-logs-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fuelpos.database import Base, get_db
from fuelpos.dependencies import get_payment_manager, get_recorder
from fuelpos.main import app
from fuelpos.models import Employee, FuelType
from fuelpos.services.payment_session import PaymentSessionManager
from fuelpos.services.status_client import SimulatedStatusClient
from fuelpos.services.transaction_recorder import TransactionRecorder
from fuelpos.utils.hashing import hash_pin
from fuelpos.utils.rate_limiter import reset_rate_limits

from tests.helpers import CASHIER_PIN


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture(scope="function")
def employee(db_session):
    cashier = Employee(pin_hash=hash_pin(CASHIER_PIN), full_name="Somchai Jaidee", role="cashier")
    db_session.add(cashier)
    db_session.commit()
    db_session.refresh(cashier)
    return cashier


@pytest.fixture(scope="function")
def fuel_type(db_session):
    fuel = FuelType(name="Gasohol 95", type="gasoline", price_per_liter=Decimal("25.00"))
    db_session.add(fuel)
    db_session.commit()
    db_session.refresh(fuel)
    return fuel


@pytest.fixture(scope="function")
def unavailable_fuel(db_session):
    fuel = FuelType(name="Diesel B20", type="diesel", price_per_liter=Decimal("31.00"), is_available=False)
    db_session.add(fuel)
    db_session.commit()
    db_session.refresh(fuel)
    return fuel


@pytest.fixture(scope="function")
def recorder(session_factory):
    return TransactionRecorder(session_factory)


@pytest.fixture(scope="function")
def bank():
    """Simulated bank that never approves on its own."""
    return SimulatedStatusClient(success_rate=0.0)


@pytest.fixture(scope="function")
def api_manager(bank, recorder):
    return PaymentSessionManager(bank, recorder, timeout=5.0, poll_interval=0.02, tick_interval=10.0)


@pytest.fixture(scope="function")
def client(session_factory, recorder, api_manager):
    """TestClient whose routes use the per-test database and payment manager."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    reset_rate_limits()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_recorder] = lambda: recorder
    app.dependency_overrides[get_payment_manager] = lambda: api_manager
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(api_manager.close)
    app.dependency_overrides.clear()
