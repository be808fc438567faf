from __future__ import annotations

from typing import Any, Dict
from fastapi import HTTPException, status

FETCH_FAILED = "FETCH_FAILED"
FETCH_FAILED_MESSAGE = "Internal server error - unable to fetch data"


def _payload(code: str, msg: str, **extra: Any) -> Dict[str, Any]:
    return {"code": code, "message": msg, **extra}


def http_500(code: str, msg: str, **extra: Any) -> HTTPException:
    return HTTPException(
        status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_payload(code, msg, **extra)
    )


def fetch_failed() -> HTTPException:
    return http_500(FETCH_FAILED, FETCH_FAILED_MESSAGE)
