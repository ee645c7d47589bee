"""
main.py
FastAPI application entry point.
Registers all routers, middleware, startup/shutdown events.

Production-ready features:
- Structured JSON logging
- Redis-backed rate limiting for unauthenticated clients
- Domain errors mapped to stable JSON error codes
- Prometheus metrics
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from decimal import Decimal
from logging import LogRecord

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from redis.exceptions import RedisError

from config.database import AsyncSessionLocal, close_db, init_db, ping_db
from config.redis_client import RedisCache, close_redis, init_redis
from config.settings import settings
from shared.utils.errors import RentalError

# Service routers
from services.admin.router import router as admin_router
from services.auth.router import router as auth_router
from services.booking.router import router as booking_router
from services.favorite.router import router as favorite_router
from services.review.router import router as review_router
from services.user.router import router as user_router
from services.vehicle.router import router as vehicle_router


# ── Logging ──────────────────────────────────────────────────

class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "instance": os.getenv("INSTANCE_NAME", "unknown"),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)


# ── Lifespan (startup/shutdown) ───────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle handler."""
    logger.info("Starting %s...", settings.APP_NAME)

    await init_db()
    logger.info("Database connected")

    await init_redis()
    logger.info("Redis connected")

    # Sample fleet, only in dev
    if settings.APP_ENV == "development" and settings.SEED_SAMPLE_DATA:
        await seed_sample_vehicles()

    logger.info("%s v%s is ready", settings.APP_NAME, settings.APP_VERSION)
    yield

    await close_redis()
    await close_db()
    logger.info("Server shutdown complete")


# ── App Factory ───────────────────────────────────────────────

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## Vehicle Rentals API

REST API for the vehicle rental app:
- **Auth**: email/password sign-up and login, JWT access tokens, logout deny-list
- **Vehicles**: catalogue search, featured vehicles, ratings and reviews
- **Bookings**: create, list upcoming/past, status and pickup/dropoff updates
- **Favorites**: saved vehicles per profile
- **Admin**: fleet management, dashboard, profile administration, audit log

### Authentication
All protected endpoints require `Authorization: Bearer <access_token>` header.
Get a token via `/auth/signup` or `/auth/login`.

### Admins
A profile is admin-capable if its admin flag is set or its email is listed in
`ADMIN_EMAILS`.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware (outermost first) ───────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # ── Custom Middleware ──────────────────────────────────────────

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add unique X-Request-ID to every request for tracing."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.middleware("http")
    async def process_time_middleware(request: Request, call_next):
        """Track and expose request processing time."""
        start = time.perf_counter()
        response = await call_next(request)
        process_time = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Process-Time"] = f"{process_time}ms"
        return response

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        """
        Per-IP fixed window limit for requests without a bearer token.
        Health, docs and metrics are never limited. Login and signup are always
        limited, since any string passes as a bearer header. Fails open if Redis is down.
        """
        skip_paths = {"/health", "/docs", "/redoc", "/openapi.json", "/metrics"}
        credential_paths = {"/auth/login", "/auth/signup"}
        path = request.url.path
        has_bearer = request.headers.get("Authorization", "").startswith("Bearer ")
        if path in skip_paths or (has_bearer and path not in credential_paths):
            return await call_next(request)

        from config.redis_client import redis_client
        if redis_client:
            client_ip = request.client.host if request.client else "unknown"
            try:
                allowed = await RedisCache(redis_client).check_rate_limit(
                    f"rate:unauth:{client_ip}", settings.RATE_LIMIT_UNAUTH_PER_MINUTE
                )
            except RedisError as e:
                logger.error("Rate limit check failed: %s", e)
                allowed = True

            if not allowed:
                logger.warning("Rate limit exceeded for IP %s", client_ip)
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Rate limit exceeded. Please slow down."},
                    headers={"Retry-After": "60"},
                )

        return await call_next(request)

    # ── Exception Handlers ─────────────────────────────────────────

    @app.exception_handler(RentalError)
    async def rental_error_handler(request: Request, exc: RentalError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler. Never expose stack traces in production."""
        request_id = getattr(request.state, "request_id", None)
        logger.error("[%s] Exception: %s", request_id, exc, exc_info=True)

        detail = str(exc) if settings.DEBUG else "An internal server error occurred"
        return JSONResponse(
            status_code=500,
            content={"detail": detail, "request_id": request_id},
        )

    # ── Routes ────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health_check():
        from config.redis_client import redis_client

        checks = {"status": "ok", "version": settings.APP_VERSION}

        try:
            await ping_db()
            checks["database"] = "ok"
        except Exception:
            logger.exception("Database health check failed")
            checks["database"] = "error"
            checks["status"] = "degraded"

        try:
            if redis_client:
                await redis_client.ping()
            checks["redis"] = "ok"
        except RedisError:
            logger.exception("Redis health check failed")
            checks["redis"] = "error"
            checks["status"] = "degraded"

        status_code = 200 if checks["status"] == "ok" else 503
        return JSONResponse(content=checks, status_code=status_code)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    # Register all service routers
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(vehicle_router)
    app.include_router(booking_router)
    app.include_router(favorite_router)
    app.include_router(review_router)
    app.include_router(admin_router)

    # ── Prometheus Metrics ─────────────────────────────────────────
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", tags=["Monitoring"])

    return app


# ── Dev Data Seeder ───────────────────────────────────────────

SAMPLE_VEHICLES = [
    {
        "name": "Toyota Camry 2024", "type": "Sedan", "brand": "Toyota", "model": "Camry", "year": 2024,
        "price_per_day": Decimal("45.00"), "passenger_capacity": 5, "fuel_type": "Gasoline", "transmission": "Automatic",
        "image_url": "https://images.pexels.com/photos/116675/pexels-photo-116675.jpeg",
        "description": "Comfortable and reliable sedan perfect for city driving and business trips",
        "features": ["Air Conditioning", "Bluetooth", "Backup Camera", "USB Ports", "Cruise Control"],
        "location": "Downtown",
    },
    {
        "name": "Honda CR-V 2023", "type": "SUV", "brand": "Honda", "model": "CR-V", "year": 2023,
        "price_per_day": Decimal("65.00"), "passenger_capacity": 5, "fuel_type": "Gasoline", "transmission": "Automatic",
        "image_url": "https://images.pexels.com/photos/1007410/pexels-photo-1007410.jpeg",
        "description": "Spacious SUV ideal for family trips and outdoor adventures",
        "features": ["All-Wheel Drive", "Sunroof", "Apple CarPlay", "Safety Features", "Roof Rails"],
        "location": "Airport",
    },
    {
        "name": "BMW 3 Series 2024", "type": "Luxury", "brand": "BMW", "model": "3 Series", "year": 2024,
        "price_per_day": Decimal("85.00"), "passenger_capacity": 5, "fuel_type": "Gasoline", "transmission": "Automatic",
        "image_url": "https://images.pexels.com/photos/244206/pexels-photo-244206.jpeg",
        "description": "Premium luxury sedan with exceptional performance and comfort",
        "features": ["Leather Seats", "Premium Sound", "Navigation", "Heated Seats", "Wireless Charging"],
        "location": "City Center",
    },
    {
        "name": "Ford F-150 2023", "type": "Truck", "brand": "Ford", "model": "F-150", "year": 2023,
        "price_per_day": Decimal("75.00"), "passenger_capacity": 5, "fuel_type": "Gasoline", "transmission": "Automatic",
        "image_url": "https://images.pexels.com/photos/1335077/pexels-photo-1335077.jpeg",
        "description": "Powerful pickup truck perfect for heavy-duty tasks and hauling",
        "features": ["4WD", "Towing Package", "Bed Liner", "Work Lights", "Trailer Assist"],
        "location": "Industrial District",
    },
    {
        "name": "Tesla Model 3 2024", "type": "Electric", "brand": "Tesla", "model": "Model 3", "year": 2024,
        "price_per_day": Decimal("95.00"), "passenger_capacity": 5, "fuel_type": "Electric", "transmission": "Automatic",
        "image_url": "https://images.pexels.com/photos/1592384/pexels-photo-1592384.jpeg",
        "description": "Cutting-edge electric sedan with autopilot and premium features",
        "features": ["Autopilot", "Supercharging", "Premium Interior", "Glass Roof", "Mobile Connector"],
        "location": "Tech District",
    },
    {
        "name": "Jeep Wrangler 2023", "type": "SUV", "brand": "Jeep", "model": "Wrangler", "year": 2023,
        "price_per_day": Decimal("70.00"), "passenger_capacity": 4, "fuel_type": "Gasoline", "transmission": "Manual",
        "image_url": "https://images.pexels.com/photos/1638459/pexels-photo-1638459.jpeg",
        "description": "Rugged off-road SUV perfect for adventure seekers",
        "features": ["4WD", "Removable Doors", "Fold-Down Windshield", "Rock Rails", "Skid Plates"],
        "location": "Adventure Center",
    },
]


async def seed_sample_vehicles(session_factory=AsyncSessionLocal) -> int:
    """Seed the sample fleet on first run (development only). Ratings start at zero."""
    from sqlalchemy import func, select

    from shared.models.models import Vehicle

    async with session_factory() as db:
        count = await db.scalar(select(func.count(Vehicle.id)))
        if count and count > 0:
            return 0  # Already seeded

        for v in SAMPLE_VEHICLES:
            db.add(Vehicle(**v))

        await db.commit()
        logger.info("Seeded %d sample vehicles", len(SAMPLE_VEHICLES))
        return len(SAMPLE_VEHICLES)


# ── Entry Point ───────────────────────────────────────────────

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True,
    )
