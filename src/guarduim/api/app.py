"""
guarduim.api.app

FastAPI app factory and composition root.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Build the store, signal source, enforcer, reconciler and controller from settings.
- Start the controller on startup and stop it (then dispose the DB engine) on shutdown.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI

from guarduim import __version__
from guarduim.api.routers.health import router as health_router
from guarduim.api.routers.identities import router as identities_router
from guarduim.controller.manager import Controller
from guarduim.controller.namespace import NamespaceResolver
from guarduim.controller.queue import WorkQueue
from guarduim.controller.reconciler import Reconciler
from guarduim.db.init_db import init_db
from guarduim.db.session import create_engine, create_sessionmaker
from guarduim.enforcement.access import AccessEnforcer
from guarduim.observability.context import RequestContextMiddleware
from guarduim.observability.logging import configure_logging, get_logger
from guarduim.settings import Settings
from guarduim.signals.base import FailureSignalSource
from guarduim.signals.exec import AuditLogCommandSource
from guarduim.signals.http import HttpFailureSignalSource
from guarduim.store.sql import SqlStore

log = get_logger(__name__)


def create_app(*, settings: Settings, signals: FailureSignalSource | None = None) -> FastAPI:
    """
    `signals` overrides the source selected by `settings.signal_source` (tests pass a fake).
    """

    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="guarduim",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(identities_router)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            await init_db(engine)

        store = SqlStore(app.state.sessionmaker)
        app.state.store = store

        app.state.http = None
        source = signals
        if source is None:
            source = _build_signal_source(settings, app)

        namespaces = None
        if not settings.all_namespaces:
            namespaces = NamespaceResolver(
                explicit=settings.watch_namespace, path=settings.namespace_file
            )

        reconciler = Reconciler(
            store=store,
            signals=source,
            enforcer=AccessEnforcer(objects=store, role_name=settings.deny_role_name),
            namespaces=namespaces,
            requeue_after=settings.requeue_after_seconds,
            call_timeout=settings.call_timeout_seconds,
        )
        app.state.controller = None
        if settings.controller_enabled:
            controller = Controller(
                reconciler=reconciler,
                store=store,
                queue=WorkQueue(
                    backoff_base=settings.backoff_base_seconds,
                    backoff_max=settings.backoff_max_seconds,
                ),
                namespaces=namespaces,
                workers=settings.workers,
                resync_interval=settings.resync_interval_seconds,
                cleanup_on_delete=settings.cleanup_bindings_on_delete,
            )
            await controller.start()
            app.state.controller = controller

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        controller = getattr(app.state, "controller", None)
        if controller is not None:
            await controller.stop()
        http = getattr(app.state, "http", None)
        if http is not None:
            await http.aclose()
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()
        log.info("shutdown")

    return app


def _build_signal_source(settings: Settings, app: FastAPI) -> FailureSignalSource:
    if settings.signal_source == "http":
        http = httpx.AsyncClient(
            base_url=settings.signal_api_base_url,
            timeout=settings.call_timeout_seconds,
        )
        # Closed in shutdown.
        app.state.http = http
        return HttpFailureSignalSource(http=http, path_template=settings.signal_api_path)
    return AuditLogCommandSource(
        command=settings.audit_log_command,
        timeout=settings.call_timeout_seconds,
    )
