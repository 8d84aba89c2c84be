"""
Bank Status Gateway — answers "has this QR payment been paid yet?".

Two implementations share the ``check_status(transaction_ref)`` coroutine:
a simulator for development stations, and a thin HTTP client for a status
gateway that fronts the bank.
"""
import random
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from fuelpos.config import Settings
from fuelpos.utils.logger import get_logger

logger = get_logger("status_client")

STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

VALID_STATUSES = (STATUS_PENDING, STATUS_SUCCESS, STATUS_FAILED)


class PollTransientError(Exception):
    """A status check could not be completed; the payment is still considered pending."""


@dataclass(frozen=True)
class StatusResult:
    status: str
    external_transaction_id: Optional[str] = None


class SimulatedStatusClient:
    """Random-approval gateway used when no bank status URL is configured."""

    def __init__(self, success_rate: float = 0.2, rng: Optional[random.Random] = None):
        self.success_rate = success_rate
        self._rng = rng or random.Random()
        self._resolved: Dict[str, StatusResult] = {}

    def resolve(self, transaction_ref: str, status: str, external_transaction_id: Optional[str] = None) -> StatusResult:
        """Force the answer for ``transaction_ref`` (simulated bank callback)."""
        if status not in VALID_STATUSES:
            raise ValueError(f"Unknown status: {status}")
        if status == STATUS_SUCCESS and not external_transaction_id:
            external_transaction_id = f"TH{int(time.time() * 1000)}"
        result = StatusResult(status, external_transaction_id)
        self._resolved[transaction_ref] = result
        return result

    async def check_status(self, transaction_ref: str) -> StatusResult:
        if transaction_ref in self._resolved:
            return self._resolved[transaction_ref]
        if self._rng.random() < self.success_rate:
            return StatusResult(STATUS_SUCCESS, f"TH{int(time.time() * 1000)}")
        return StatusResult(STATUS_PENDING)


class HttpStatusClient:
    """Queries ``GET {base_url}/{transaction_ref}`` on a payment status gateway.

    Expected body: ``{"status": "pending|success|failed", "transactionId": "..."}``.
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 5.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def check_status(self, transaction_ref: str) -> StatusResult:
        try:
            response = await self._client.get(f"/{transaction_ref}")
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise PollTransientError(f"Status gateway error for {transaction_ref}: {exc}") from exc
        except ValueError as exc:
            raise PollTransientError(f"Status gateway returned invalid JSON for {transaction_ref}") from exc

        status = body.get("status") if isinstance(body, dict) else None
        if status not in VALID_STATUSES:
            raise PollTransientError(f"Unexpected status {status!r} for {transaction_ref}")
        return StatusResult(status, body.get("transactionId") or body.get("externalTransactionId"))

    async def aclose(self) -> None:
        await self._client.aclose()


def build_status_client(settings: Settings):
    """Pick the HTTP gateway when configured, the simulator otherwise."""
    if settings.BANK_STATUS_URL:
        logger.info("Using bank status gateway at %s", settings.BANK_STATUS_URL)
        return HttpStatusClient(
            settings.BANK_STATUS_URL,
            api_key=settings.BANK_STATUS_API_KEY,
            timeout=settings.BANK_STATUS_TIMEOUT_SECONDS,
        )
    logger.info("Using simulated bank status gateway (success rate %.2f)", settings.SIMULATED_SUCCESS_RATE)
    return SimulatedStatusClient(success_rate=settings.SIMULATED_SUCCESS_RATE)
