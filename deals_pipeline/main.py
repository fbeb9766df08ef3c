import logging
import os

from fastapi import FastAPI

from deals_pipeline.config import settings
from deals_pipeline.db import init_db
from deals_pipeline.errors import SchedulerError, scheduler_error_handler
from deals_pipeline.routers import bookings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Deals Pipeline Booking API", version="0.1.0")

app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.add_exception_handler(SchedulerError, scheduler_error_handler)

@app.on_event("startup")
def on_startup():
    if os.getenv("SKIP_DB_INIT") == "1":
        return
    init_db()
    logger.info("Database initialized")

@app.get("/")
def root():
    return {"ok": True, "service": "deals-pipeline-bookings"}
