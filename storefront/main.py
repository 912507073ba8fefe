"""
Storefront Orders - FastAPI Application Entry Point.

Checkout, guest-order reconciliation, order tracking and the admin order
workflow for the retail storefront.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.config import get_settings
from storefront.database import engine, get_db, Base
from storefront.errors import (
    ConflictError,
    NotFoundError,
    PromoCodeError,
    StoreUnavailableError,
    StorefrontError,
    ValidationError,
)
from storefront.routers import account, admin, orders


settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup: Create database tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    yield

    # Shutdown: Cleanup
    await engine.dispose()
    logger.info("Database connection closed")


app = FastAPI(
    title=settings.APP_NAME,
    description="Order lifecycle and guest-identity reconciliation for the storefront",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Middleware (for Next.js frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        settings.FRONTEND_URL,
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Force HTTPS in production
        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


app.add_middleware(SecurityHeadersMiddleware)


# Error taxonomy -> HTTP
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc), "fields": exc.fields})


@app.exception_handler(PromoCodeError)
async def promo_error_handler(request: Request, exc: PromoCodeError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc), "code": exc.code})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"success": False, "error": str(exc)})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Store unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": "Service temporarily unavailable", "retryable": True},
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})


# Include Routers
app.include_router(orders.router, prefix="/api", tags=["Checkout"])
app.include_router(account.router, prefix="/api", tags=["Account"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/health")
async def health_check(db=Depends(get_db)):
    """Deep Health Check: Verifies Database Connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        # Return 503 so load balancers know to stop sending traffic
        raise HTTPException(status_code=503, detail="Database disconnected")


@app.get("/")
async def root():
    """Root endpoint with system info."""
    return {
        "name": settings.APP_NAME,
        "status": "operational",
    }
