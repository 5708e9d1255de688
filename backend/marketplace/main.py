"""Application entry point for the ad marketplace API service."""

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.routes.ad_slots import router as ad_slots_router
from marketplace.api.routes.campaigns import router as campaigns_router
from marketplace.api.routes.me import router as me_router
from marketplace.core.config import settings
from marketplace.core.db import get_session
from marketplace.core.errors import DatabaseUnavailable, register_exception_handlers
from marketplace.core.logging import setup_logging
from marketplace.core.middleware import BodySizeLimitMiddleware, RequestContextLogMiddleware
from marketplace.core.rate_limit import init_rate_limiter

setup_logging()

app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)

register_exception_handlers(app)
init_rate_limiter(app)

app.add_middleware(RequestContextLogMiddleware)


def _cors_origins() -> list[str]:
    if settings.ENV == "prod":
        if not settings.CORS_ALLOWED_ORIGINS:
            raise RuntimeError("CORS_ALLOWED_ORIGINS must be configured for prod")
        return settings.CORS_ALLOWED_ORIGINS
    return settings.CORS_ALLOWED_ORIGINS or ["http://localhost:3000"]


# Credentials are required: the session cookie travels with every call.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.get("/api/healthz", tags=["system"], summary="Liveness probe")
def healthz() -> dict[str, str]:
    """Simple liveness probe that load balancers and monitors can call."""

    return {"status": "ok"}


@app.get("/api/readyz", tags=["system"], summary="Readiness probe")
async def readyz(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise DatabaseUnavailable() from exc
    return {"ready": True}


app.include_router(me_router, prefix="/api")
app.include_router(campaigns_router, prefix="/api")
app.include_router(ad_slots_router, prefix="/api")
