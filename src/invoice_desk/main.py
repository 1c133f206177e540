from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from invoice_desk import __version__
from invoice_desk.api.router import router as api_router
from invoice_desk.bootstrap import bootstrap
from invoice_desk.core.config import settings
from invoice_desk.core.logging import RequestContextMiddleware
from invoice_desk.errors import install_exception_handlers


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        bootstrap()
        yield

    app = FastAPI(title="Invoice Desk", version=__version__, lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-request-id"],
    )
    install_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    uvicorn.run("invoice_desk.main:app", host="0.0.0.0", port=settings.port)
