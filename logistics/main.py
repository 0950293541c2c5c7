# logistics/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from logistics.core.config import get_settings
from logistics.core.events import EventBus
from logistics.database import Database
from logistics.repositories.customer_repo import CustomerRepository
from logistics.repositories.order_repo import OrderRepository
from logistics.seed import seed_sample_data
from logistics.services.customer_service import CustomerService
from logistics.services.order_service import OrderService

# Routers
from logistics.routers.customers import router as customers_router
from logistics.routers.orders import router as orders_router
from logistics.routers.stats import router as stats_router

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("uvicorn")


def build_services(app: FastAPI, db: Database, events: EventBus) -> None:
    """Wire repositories and services onto app.state."""
    customer_repo = CustomerRepository(db, events)
    order_repo = OrderRepository(db, events)

    app.state.db = db
    app.state.events = events
    app.state.customer_service = CustomerService(customer_repo, order_repo, events)
    app.state.order_service = OrderService(order_repo, customer_repo, events)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Connect (primary engine, else the embedded fallback).
      - Create tables / indexes / sequence if missing.
      - Insert sample data into an empty database when enabled.

    Shutdown:
      - Close the single connection.
    """
    db = getattr(app.state, "db", None) or Database.from_settings(settings)

    logger.info("Startup: connecting to the database...")
    backend = db.connect()
    if not db.ensure_schema():
        db.close()
        raise RuntimeError(f"Schema bootstrap failed: {db.last_error}")
    logger.info("Startup: database ready (%s)", backend.name)

    if settings.SEED_SAMPLE_DATA:
        seed_sample_data(db)

    build_services(app, db, getattr(app.state, "events", None) or EventBus())
    try:
        yield
    finally:
        db.close()
        logger.info("Shutdown: database connection closed")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(customers_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)
app.include_router(stats_router, prefix=settings.API_V1_STR)


@app.get("/")
@app.get("/health")
def root():
    """Health check endpoint."""
    db: Database | None = getattr(app.state, "db", None)
    return {
        "status": "ok",
        "service": "logistics-backend",
        "database": db.backend.name if db is not None and db.backend else None,
    }
