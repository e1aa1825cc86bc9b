"""
guarduim.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) with DB connectivity and controller state.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from guarduim.api.deps import controller_dep, db_session
from guarduim.controller.manager import Controller

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    controller: Controller | None = Depends(controller_dep),
) -> dict[str, Any]:
    await session.execute(text("SELECT 1"))
    return {
        "status": "ready",
        "controller": "running" if controller is not None and controller.running else "disabled",
        "queue_depth": len(controller.queue) if controller is not None else 0,
    }
