from fuelpos.services.audit_service import AuditService
from fuelpos.services.storage import Storage, StorageError
from fuelpos.services.transaction_recorder import TransactionRecorder, TransactionRejected, SaleDraft
from fuelpos.services.payment_session import PaymentSessionManager, MerchantInfo, SessionState

__all__ = [
    "AuditService", "Storage", "StorageError",
    "TransactionRecorder", "TransactionRejected", "SaleDraft",
    "PaymentSessionManager", "MerchantInfo", "SessionState",
]
