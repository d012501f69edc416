import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from src.config import settings
from src.database import SessionLocal, init_db
from src.exceptions import register_exception_handlers
from src.schedules import router as schedules_router
from src.seats import router as seats_router, seat_ledger
from src.bookings import router as bookings_router
from src.bookings.maintenance import LedgerMaintenance, restore_booked_seats
from src.bookings.notification_service import notification_service
from src.bookings.outbox import booking_outbox

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    booking_outbox.load()
    restore_booked_seats(seat_ledger, SessionLocal, outbox=booking_outbox)

    maintenance = LedgerMaintenance(
        ledger=seat_ledger,
        outbox=booking_outbox,
        session_factory=SessionLocal,
        hold_timeout_seconds=settings.SEAT_HOLD_TIMEOUT_SECONDS,
        interval_seconds=settings.LEDGER_SWEEP_INTERVAL_SECONDS
    )
    notification_service.start()
    maintenance.start()
    logger.info(f"{settings.PROJECT_NAME} started ({settings.ENVIRONMENT})")

    yield

    maintenance.stop()
    notification_service.stop()
    logger.info(f"{settings.PROJECT_NAME} stopped")

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Bus seat booking API for commuters",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(
    schedules_router,
    prefix=f"{settings.API_V1_STR}/commuters",
    tags=["Bus Search"]
)

app.include_router(
    seats_router,
    prefix=f"{settings.API_V1_STR}/commuters",
    tags=["Seat Availability"]
)

app.include_router(
    bookings_router,
    prefix=f"{settings.API_V1_STR}/commuters",
    tags=["Booking"]
)

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "Bus seat booking API",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "pending_outbox_bookings": len(booking_outbox)}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
