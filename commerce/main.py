from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from commerce.config import settings
from commerce.api.v1.router import api_router
from commerce.database import Database
from commerce.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status
from commerce.services.errors import OrderError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Open the database (unless a test already attached one)
    - Create tables in debug mode (production uses Alembic migrations)
    - Start background scheduler
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database(settings.DATABASE_URL)
        if settings.DEBUG:
            await app.state.database.create_all()

    if settings.SCHEDULER_ENABLED:
        start_scheduler(app.state.database)

    yield

    # Shutdown
    shutdown_scheduler()
    if owns_database:
        await app.state.database.dispose()
        app.state.database = None
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Products", "description": "Catalog the order engine prices from"},
    {"name": "Orders", "description": "Order placement, updates and line items"},
    {"name": "Checkout", "description": "Hosted checkout and Razorpay webhooks"},
    {"name": "Health", "description": "Service health"},
]

API_DESCRIPTION = """
## Order Service API

Order placement and fulfillment for the storefront.

### Authentication

All endpoints except catalog reads and the payment webhook require a JWT:
`Authorization: Bearer <token>`

### Error Codes

Errors are returned as `{"error": code, "message": ..., "details": {...}}`.

| HTTP | Codes |
|------|-------|
| 400 | invalid_request, insufficient_stock, duplicate_item, order_locked, invalid_status_transition, invalid_signature |
| 401 | unauthenticated |
| 404 | not_found, product_not_found |
| 500 | internal_error |
"""


async def order_error_handler(request: Request, exc: OrderError):
    """Render service errors with their code and HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are invalid requests like any other."""
    errors = [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": "invalid_request",
            "message": "Request validation failed",
            "details": {"errors": errors},
        },
    )


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the application; tests pass their own database."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=API_DESCRIPTION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=OPENAPI_TAGS,
    )
    app.state.database = database

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(OrderError, order_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include API router
    app.include_router(api_router)

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint with database validation."""
        health_status = {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "database": "unknown"
            },
            "jobs": get_job_status(),
        }

        # Check database connectivity
        try:
            async with request.app.state.database.session() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()
                health_status["checks"]["database"] = "connected"
        except Exception as e:
            health_status["status"] = "unhealthy"
            health_status["checks"]["database"] = f"error: {str(e)}"

        # Return 503 if unhealthy
        if health_status["status"] == "unhealthy":
            return JSONResponse(status_code=503, content=health_status)

        return health_status

    return app


configure_logging()
app = create_app()
