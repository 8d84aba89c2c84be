from fuelpos.models.employee import Employee
from fuelpos.models.fuel import FuelType
from fuelpos.models.transaction import GasTransaction
from fuelpos.models.audit import AuditLog
from fuelpos.models.alert import Alert

__all__ = ["Employee", "FuelType", "GasTransaction", "AuditLog", "Alert"]
