# hunt_lifecycle/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hunt_lifecycle.api.v1.api import api_router
from hunt_lifecycle.core.config import settings
from hunt_lifecycle.db.base_class import Base
from hunt_lifecycle.db.session import engine
from hunt_lifecycle.scheduler import get_scheduler_status, init_scheduler, shutdown_scheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Runs once when the application starts up and once when it shuts down.
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine)
    if settings.SCHEDULER_ENABLED:
        init_scheduler()
    yield
    logger.info("Application shutting down...")
    shutdown_scheduler()


app = FastAPI(
    title="Hunt Lifecycle Service",
    version="1.0.0",
    description="""
        Participation lifecycle of capacity-limited aurora hunts.

        ## Features

        * **Joining**: confirmed, pending approval/payment, or waitlisted
        * **Owner decisions**: approve, reject, confirm payments
        * **Waitlist**: FIFO promotion when a slot frees up
        * **Cleanup**: expiry of stale requests, waitlist purge before start

        ## Authentication

        Endpoints require JWT authentication via the `Authorization: Bearer <token>` header.
        """,
    lifespan=lifespan,
)

origins = [
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Hunt Lifecycle Service is running"}


@app.get("/scheduler/status")
def scheduler_status():
    return get_scheduler_status()
