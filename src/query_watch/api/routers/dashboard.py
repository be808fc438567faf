from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse

from query_watch.api.dependencies import get_renderer, get_repository
from query_watch.api.http_errors import fetch_failed
from query_watch.api.rendering import DashboardRenderer
from query_watch.errors import QueryFetchError
from query_watch.warehouse.failed_queries import FailedQueryRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dashboard"])


@router.get("/", response_class=HTMLResponse, summary="Failed query dashboard")
async def dashboard(
    repository: FailedQueryRepository = Depends(get_repository),
    renderer: DashboardRenderer = Depends(get_renderer),
) -> HTMLResponse:
    try:
        queries = await run_in_threadpool(repository.fetch)
    except QueryFetchError as exc:
        logger.error("Error fetching queries: %s", exc)
        raise fetch_failed() from exc
    return HTMLResponse(renderer.render(queries))


__all__ = ["router"]
