"""
Simple memory-based rate limiter for the PIN login endpoint.
Single-process only; a multi-worker deployment needs a shared store.
"""
import time
from fastapi import Request, HTTPException
from typing import Dict, Tuple

# In-memory storage: {(ip, path): (window_start, count)}
_rate_limit_store: Dict[Tuple[str, str], Tuple[float, int]] = {}


def rate_limit(requests: int, window: int):
    """
    Dependency for rate limiting, keyed by client IP and route path.
    Example: Depends(rate_limit(requests=5, window=60))
    """
    def limiter(request: Request):
        key = (request.client.host if request.client else "unknown", request.url.path)
        now = time.time()

        last_ts, count = _rate_limit_store.get(key, (now, 0))

        # Reset window if expired
        if now - last_ts > window:
            last_ts, count = now, 0

        if count >= requests:
            raise HTTPException(
                status_code=429,
                detail=f"Too many attempts. Try again in {int(window - (now - last_ts))} seconds."
            )

        _rate_limit_store[key] = (last_ts, count + 1)
        return True

    return limiter


def reset_rate_limits() -> None:
    _rate_limit_store.clear()
