# backend/borkin/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Response

from . import __version__
from .core.config import settings
from .database import init_db
from .errors import register_error_handlers
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import admin as admin_v1, bookings as bookings_v1, payments as payments_v1
from .schemas.main_responses import HealthResponse

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = "Borkin Payments API"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(
        "Borkin API starting up (environment=%s, stripe_mode=%s)",
        settings.environment,
        settings.payment_environment.value,
    )
    if not settings.stripe_secret_key.get_secret_value():
        logger.warning("STRIPE_SECRET_KEY is not set; payment endpoints will return 500")
    init_db()
    yield
    logger.info("Borkin API shutting down...")


app = FastAPI(
    title=API_TITLE,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Register unified error envelope handlers
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(payments_v1.router, prefix="/payments")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(admin_v1.router, prefix="/admin")
app.include_router(api_v1)


@app.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service="borkin-api",
        version=__version__,
        environment=settings.environment,
        payment_mode=settings.payment_environment.value,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
