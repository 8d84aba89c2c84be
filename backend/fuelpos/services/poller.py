"""
Payment Confirmation Poller — asks the status gateway until the payment
settles or the session deadline passes.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fuelpos.services.status_client import PollTransientError, STATUS_SUCCESS, STATUS_FAILED
from fuelpos.utils.logger import get_logger

logger = get_logger("poller")

OUTCOME_SUCCESS = "success"
OUTCOME_FAILED = "failed"
OUTCOME_TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollOutcome:
    status: str
    external_transaction_id: Optional[str] = None
    checks: int = 0


class PaymentPoller:
    """Polls ``client.check_status`` every ``interval`` seconds.

    ``deadline`` is an absolute value on ``clock`` (monotonic seconds). The
    timeout outcome is returned only once ``clock() >= deadline``, and no
    check is started after that point.
    """

    def __init__(self, client, interval: float = 3.0, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.interval = interval
        self.clock = clock

    async def poll(self, transaction_ref: str, deadline: float) -> PollOutcome:
        checks = 0
        while True:
            remaining = deadline - self.clock()
            if remaining <= 0:
                logger.info("Payment %s timed out after %d checks", transaction_ref, checks)
                return PollOutcome(OUTCOME_TIMED_OUT, checks=checks)

            await asyncio.sleep(min(self.interval, remaining))

            remaining = deadline - self.clock()
            if remaining <= 0:
                continue

            checks += 1
            try:
                result = await asyncio.wait_for(self.client.check_status(transaction_ref), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning("Status check for %s did not answer before the deadline", transaction_ref)
                continue
            except PollTransientError as exc:
                logger.warning("Transient status error for %s: %s", transaction_ref, exc)
                continue
            except Exception as exc:
                # Treated as pending; only the deadline ends polling
                logger.warning("Status check for %s failed (%s): %s", transaction_ref, type(exc).__name__, exc)
                continue

            if result.status == STATUS_SUCCESS:
                logger.info("Payment %s confirmed (%s)", transaction_ref, result.external_transaction_id)
                return PollOutcome(OUTCOME_SUCCESS, result.external_transaction_id, checks)
            if result.status == STATUS_FAILED:
                logger.info("Payment %s declined by the bank", transaction_ref)
                return PollOutcome(OUTCOME_FAILED, checks=checks)
