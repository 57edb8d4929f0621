"""Application factory and top-level wiring for the stock ledger service.

Configuration, logging, database setup, routers and error handling are all
joined here. ``app`` is what an ASGI server (``uvicorn stockledger.main:app``)
loads.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import http_exception_handler, ledger_exception_handler, validation_exception_handler
from .core.exceptions import LedgerError
from .core.logging import configure_logging
from .db.session import Base, engine
from .middlewares import RequestContextMiddleware

# Registers every table on Base.metadata before create_all runs.
from . import models as _models  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ``create_all`` is additive: it creates missing tables and leaves existing ones alone.
    Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(LedgerError, ledger_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    from .routers import api_stock as api_stock_router

    app.include_router(api_stock_router.router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    Instrumentator().instrument(app).expose(app, include_in_schema=False)
    return app


app = create_app()

__all__ = ["app", "create_app"]
