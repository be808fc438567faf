from __future__ import annotations

from fastapi import APIRouter


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", summary="Service health status")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


__all__ = ["router"]
