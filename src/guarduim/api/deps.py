"""
guarduim.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Expose the objects built by `create_app` (settings, stores, controller) to routers.
- Encapsulate app.state access patterns.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guarduim.controller.manager import Controller
from guarduim.settings import Settings
from guarduim.store.sql import SqlStore


def settings_dep(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[attr-defined]


def store_dep(request: Request) -> SqlStore:
    return request.app.state.store  # type: ignore[attr-defined]


def controller_dep(request: Request) -> Controller | None:
    # None when the controller is disabled (e.g. API-only replicas).
    return getattr(request.app.state, "controller", None)


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session
