"""Rate limiting utilities using SlowAPI."""

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from marketplace.core.config import settings

# Buckets are keyed by client address and endpoint, not by URL, so booking
# a different slot id counts against the same allowance.
limiter = Limiter(key_func=get_remote_address, key_style="endpoint")


def booking_rate() -> str:
    """Booking allowance, read per request so config changes apply live."""

    return settings.BOOKING_RATE


def init_rate_limiter(app: FastAPI) -> None:
    """Attach the rate limiter and exception handler to the FastAPI app."""

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    async def rate_limit_exceeded_handler(request, exc):  # type: ignore[unused-arg]
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests", "hint": "Slow down and retry shortly"},
        )

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
