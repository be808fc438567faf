from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from query_watch.errors import QueryFetchError
from query_watch.warehouse.failed_queries import (
    FAILED_QUERIES_SQL,
    FailedQuery,
    FailedQueryRepository,
)

STARTED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _engine_returning(rows):
    engine = MagicMock()
    conn = engine.connect.return_value.__enter__.return_value
    conn.execute.return_value.mappings.return_value.all.return_value = rows
    return engine, conn


def _row(**overrides):
    row = {
        "QUERY_ID": "01b2-0000",
        "QUERY_TEXT": "select * from missing_table",
        "USER_NAME": "ANALYST",
        "ERROR_MESSAGE": "Object 'MISSING_TABLE' does not exist",
        "START_TIME": STARTED,
        "END_TIME": STARTED,
        "EXECUTION_TIME_SECONDS": 0.42,
    }
    row.update(overrides)
    return row


def test_query_shape() -> None:
    sql = str(FAILED_QUERIES_SQL)
    assert "SNOWFLAKE.ACCOUNT_USAGE.QUERY_HISTORY" in sql
    assert "EXECUTION_STATUS = 'FAIL'" in sql
    assert "ORDER BY START_TIME DESC" in sql
    assert "LIMIT 1000" in sql


def test_fetch_maps_rows() -> None:
    engine, conn = _engine_returning([_row()])

    queries = FailedQueryRepository(engine).fetch()

    conn.execute.assert_called_once_with(FAILED_QUERIES_SQL)
    assert queries == [
        FailedQuery(
            query_id="01b2-0000",
            query_text="select * from missing_table",
            user_name="ANALYST",
            error_message="Object 'MISSING_TABLE' does not exist",
            start_time=STARTED,
            end_time=STARTED,
            execution_time_seconds=0.42,
        )
    ]


def test_null_columns_become_empty() -> None:
    engine, _ = _engine_returning(
        [_row(QUERY_TEXT=None, ERROR_MESSAGE=None, END_TIME=None, EXECUTION_TIME_SECONDS=None)]
    )
    (query,) = FailedQueryRepository(engine).fetch()

    assert query.query_text == ""
    assert query.error_message == ""
    assert query.end_time is None
    assert query.execution_time_seconds == 0.0


def test_json_field_names() -> None:
    engine, _ = _engine_returning([_row()])
    (query,) = FailedQueryRepository(engine).fetch()

    assert set(query.model_dump(mode="json")) == {
        "query_id",
        "query_text",
        "user_name",
        "error_message",
        "start_time",
        "end_time",
        "execution_time_seconds",
    }


def test_database_error_is_wrapped() -> None:
    engine = MagicMock()
    engine.connect.side_effect = OperationalError("SELECT", {}, Exception("timeout"))

    with pytest.raises(QueryFetchError):
        FailedQueryRepository(engine).fetch()


def test_unmappable_row_is_wrapped() -> None:
    engine, _ = _engine_returning([_row(QUERY_ID=None)])

    with pytest.raises(QueryFetchError):
        FailedQueryRepository(engine).fetch()
