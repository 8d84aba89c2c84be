"""
Database Engine & Session Management
SQLAlchemy setup with dependency injection for FastAPI.
"""
import os
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool

from fuelpos.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    options = {"echo": settings.DEBUG}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}  # Required for SQLite
        if ":memory:" in url:
            # One shared connection, otherwise every checkout sees an empty database
            options["poolclass"] = StaticPool
        else:
            db_dir = os.path.dirname(url.replace("sqlite:///", ""))
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
    return options


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a database session, auto-closes on finish."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


DEFAULT_FUEL_TYPES = [
    ("Gasohol 95", "gasoline", Decimal("35.35")),
    ("Gasohol 91", "ethanol", Decimal("35.08")),
    ("Diesel B7", "diesel", Decimal("32.94")),
    ("Super Power 95", "premium", Decimal("45.84")),
]


def seed_defaults(db: Session) -> None:
    """Populate an empty database with a fuel catalog and an admin employee."""
    from fuelpos.models.employee import Employee
    from fuelpos.models.fuel import FuelType
    from fuelpos.utils.hashing import hash_pin

    if db.query(FuelType).count() == 0:
        for name, fuel_type, price in DEFAULT_FUEL_TYPES:
            db.add(FuelType(name=name, type=fuel_type, price_per_liter=price))

    if db.query(Employee).count() == 0:
        db.add(Employee(
            pin_hash=hash_pin(settings.DEFAULT_ADMIN_PIN),
            full_name=settings.DEFAULT_ADMIN_NAME,
            role="admin",
        ))

    db.commit()


def init_db(bind=None):
    """Create all tables and seed defaults. Called once at application startup."""
    from fuelpos.models import employee as _employee_model          # noqa: F401
    from fuelpos.models import fuel as _fuel_model                  # noqa: F401
    from fuelpos.models import transaction as _transaction_model    # noqa: F401
    from fuelpos.models import audit as _audit_model                # noqa: F401
    from fuelpos.models import alert as _alert_model                # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    db = Session(bind=bind)
    try:
        seed_defaults(db)
    finally:
        db.close()
