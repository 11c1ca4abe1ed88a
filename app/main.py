"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.db.engine import engine, create_tables
from app.errors import CoreError
from app.api.router import api_router
from app.services.events import event_bus
from app.services.ws_manager import ws_manager

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    event_bus.subscribe(ws_manager.handle_event)
    yield
    event_bus.unsubscribe(ws_manager.handle_event)
    await engine.dispose()


app = FastAPI(
    title="Job Points",
    description="Installation job matching core: work order lifecycle, point ledger, and cancellation policy.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(CoreError)
async def core_error_handler(request: Request, exc: CoreError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content={"error": {"code": "service_unavailable", "message": "Storage is unavailable"}},
    )


# API routes
app.include_router(api_router)


@app.get("/health")
async def health():
    return {"ok": True}
