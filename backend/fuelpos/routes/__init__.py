from fuelpos.routes.auth import router as auth_router
from fuelpos.routes.fuel import router as fuel_router
from fuelpos.routes.transactions import router as transactions_router
from fuelpos.routes.payments import router as payments_router
from fuelpos.routes.admin import router as admin_router

__all__ = ["auth_router", "fuel_router", "transactions_router", "payments_router", "admin_router"]
