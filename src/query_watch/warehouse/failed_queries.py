from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, field_validator
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from query_watch.errors import QueryFetchError

logger = logging.getLogger(__name__)

FAILED_QUERIES_SQL = text(
    """
    SELECT
        QUERY_ID,
        QUERY_TEXT,
        USER_NAME,
        ERROR_MESSAGE,
        START_TIME,
        END_TIME,
        TOTAL_ELAPSED_TIME / 1000.0 AS EXECUTION_TIME_SECONDS
    FROM SNOWFLAKE.ACCOUNT_USAGE.QUERY_HISTORY
    WHERE EXECUTION_STATUS = 'FAIL'
        AND START_TIME >= DATEADD(hour, -24, CURRENT_TIMESTAMP())
        AND QUERY_TEXT NOT ILIKE '%SHOW GRANTS OF DATABASE ROLE%'
        AND QUERY_TEXT NOT ILIKE '%IDENTIFIER(%SNOWFLAKE%'
    ORDER BY START_TIME DESC
    LIMIT 1000
    """
)


class FailedQuery(BaseModel):
    query_id: str
    query_text: str = ""
    user_name: str = ""
    error_message: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    execution_time_seconds: float = 0.0

    @field_validator("query_text", "user_name", "error_message", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("execution_time_seconds", mode="before")
    @classmethod
    def _null_to_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "FailedQuery":
        return cls(**{str(k).lower(): v for k, v in row.items()})


class FailedQueryRepository:
    """Runs the fixed failed-query lookup on a pooled connection."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def fetch(self) -> List[FailedQuery]:
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(FAILED_QUERIES_SQL).mappings().all()
        except SQLAlchemyError as exc:
            raise QueryFetchError(f"failed to query failed queries: {exc}") from exc

        try:
            queries = [FailedQuery.from_row(row) for row in rows]
        except ValueError as exc:
            raise QueryFetchError(f"failed to map query history row: {exc}") from exc
        logger.debug("Fetched %d failed queries", len(queries))
        return queries


__all__ = ["FailedQuery", "FailedQueryRepository", "FAILED_QUERIES_SQL"]
