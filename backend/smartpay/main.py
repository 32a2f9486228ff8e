"""
Smart Pay Backend - FastAPI Application

Webhook and return endpoints for the processor integration.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pydantic import ValidationError
import logging

from . import __version__
from .config import settings
from .exceptions import SmartPayError
from .db.init_db import initialize_database
from .api.dependencies import close_http_client
from .api.notifications import router as notifications_router
from .api.payments import router as payments_router


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: Initialize database
    - Shutdown: Close the processor HTTP client
    """
    logger.info("Starting Smart Pay backend server...")
    logger.info(f"Environment: {settings.environment}, demo mode: {settings.demo_mode}")

    try:
        initialize_database()
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    logger.info("Server startup complete")

    yield

    logger.info("Shutting down Smart Pay backend server...")
    close_http_client()


app = FastAPI(
    title="Smart Pay API",
    description="Signed order announcement, notification and reconciliation endpoints",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(SmartPayError)
async def smartpay_error_handler(request: Request, exc: SmartPayError):
    """
    Handle integration errors with the standard error response format.

    Status code comes from the exception class.
    """
    logger.warning(
        f"Smart Pay error: {exc.error_code} - {exc.message}",
        extra={"details": exc.details}
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """
    Handle order payloads rejected by field format validation.
    """
    logger.warning(f"Validation error: {exc}")

    return JSONResponse(
        status_code=422,
        content={
            "error_code": "smartpay:order:invalid_field",
            "message": "Order does not match processor field formats",
            "details": {"errors": exc.errors(include_url=False, include_context=False, include_input=False)}
        }
    )


@app.get("/api/health")
def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Server status and version information
    """
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.environment,
        "demo_mode": settings.demo_mode,
    }


# Include API routers
app.include_router(notifications_router, prefix="/api", tags=["Notifications"])
app.include_router(payments_router, prefix="/api", tags=["Payments"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "smartpay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )
