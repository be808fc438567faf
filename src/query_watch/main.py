from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from .api.middleware import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from .api.rendering import DashboardRenderer
from .api.routers import dashboard, health, queries
from .api.settings import MAX_BODY_BYTES
from .warehouse.failed_queries import FailedQueryRepository

_LOG = logging.getLogger("query_watch.main")


def create_app(
    repository: FailedQueryRepository,
    renderer: Optional[DashboardRenderer] = None,
    engine: Optional[Engine] = None,
    max_body_bytes: int = MAX_BODY_BYTES,
) -> FastAPI:
    """
    Build the dashboard application around an already connected repository.
    When ``engine`` is given it is disposed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            if engine is not None:
                engine.dispose()
                _LOG.info("Warehouse connection pool closed during shutdown")

    app = FastAPI(
        title="query-watch",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.repository = repository
    app.state.renderer = renderer or DashboardRenderer()

    # Starlette runs the last added middleware first.
    app.add_middleware(RequestSizeLimitMiddleware, max_body_bytes=max_body_bytes)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(dashboard.router)
    app.include_router(queries.router)
    app.include_router(health.router)
    return app


__all__ = ["create_app"]
