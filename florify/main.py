import logging

from fastapi import FastAPI

from florify.api.v1.router import router as v1_router
from florify.core.config import settings
from florify.core.telemetry import setup_telemetry

logging.basicConfig(level=settings.log_level)

app = FastAPI(title="Florify Admin API", version="0.1.0")

setup_telemetry(app)
app.include_router(v1_router)
