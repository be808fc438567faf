from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from query_watch.api.dependencies import get_repository
from query_watch.api.http_errors import fetch_failed
from query_watch.errors import QueryFetchError
from query_watch.warehouse.failed_queries import FailedQuery, FailedQueryRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Queries"])


@router.get(
    "/queries",
    response_model=List[FailedQuery],
    summary="Failed queries from the last 24 hours",
)
async def list_failed_queries(
    repository: FailedQueryRepository = Depends(get_repository),
) -> List[FailedQuery]:
    try:
        return await run_in_threadpool(repository.fetch)
    except QueryFetchError as exc:
        logger.error("Error fetching queries: %s", exc)
        raise fetch_failed() from exc


__all__ = ["router"]
