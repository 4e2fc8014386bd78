from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
import logging

from . import config
from .database import init_db, close_db, ping_db
from .errors import BookingRejected
from .ratelimit import rate_limiter
from .api.routes import bookings, promo_codes

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI(title="xParagliding Booking API", version="1.0.0")
api_router = APIRouter(prefix="/api")


@app.exception_handler(BookingRejected)
async def booking_rejected_handler(request: Request, exc: BookingRejected):
    logger.warning(f"Booking rejected on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, **exc.to_dict()}
    )


@api_router.get("/health")
async def health_check():
    """Health check endpoint"""
    try:
        database_ok = await ping_db()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_ok = False

    # Rate limiting fails open, so Redis being down does not degrade the service
    redis_status = "disabled"
    if config.RATE_LIMIT_ENABLED:
        try:
            redis_status = "ok" if await rate_limiter.ping() else "unavailable"
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            redis_status = "unavailable"

    return {
        "status": "ok" if database_ok else "degraded",
        "database": "ok" if database_ok else "unavailable",
        "redis": redis_status,
        "rate_limit_enabled": config.RATE_LIMIT_ENABLED
    }


# Include routers
app.include_router(api_router)
app.include_router(bookings.router)
app.include_router(promo_codes.router)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    await init_db()
    logger.info("Database ready")


@app.on_event("shutdown")
async def shutdown():
    await rate_limiter.close()
    await close_db()
    logger.info("Database and Redis disconnected")
