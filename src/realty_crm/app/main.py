"""ASGI entry point: recommendation and client-property APIs."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from realty_crm.app.config import get_settings
from realty_crm.app.error_handlers import register_error_handlers
from realty_crm.app.routes import client_properties, recommendations
from realty_crm.domain.schemas import HealthResponse
from realty_crm.infra.database import init_db

logger = logging.getLogger(__name__)

settings = get_settings()

logging.basicConfig(
    level=settings.effective_log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Tables ready on %s", settings.database_url.split("://", 1)[0])
    yield


app = FastAPI(title="Realty CRM Matching API", lifespan=lifespan, debug=settings.debug)

_origins = settings.allowed_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials="*" not in _origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(recommendations.client_router)
app.include_router(recommendations.router)
app.include_router(client_properties.client_router)
app.include_router(client_properties.router)


@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check():
    return {"status": "ok", "service": "realty-crm-matching"}


def run() -> None:
    """Console-script entry point."""
    uvicorn.run("realty_crm.app.main:app", host="0.0.0.0", port=8000, reload=settings.debug)


if __name__ == "__main__":
    run()
