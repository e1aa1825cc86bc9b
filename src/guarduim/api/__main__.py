"""
guarduim.api.__main__

Entrypoint for running the controller and operator API via `python -m guarduim.api`
(or the `guarduim` console script).

Responsibilities:
- Load settings and refuse to start production with the development JWT secret.
- Create the app (which starts the controller on startup).
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from guarduim.api.app import create_app
from guarduim.observability.logging import get_logger
from guarduim.settings import DEV_JWT_SECRET, get_settings

log = get_logger(__name__)


def main() -> None:
    settings = get_settings()
    if settings.env == "prod" and settings.jwt_secret == DEV_JWT_SECRET:
        raise SystemExit("GUARDUIM_JWT_SECRET must be set when GUARDUIM_ENV=prod")

    app = create_app(settings=settings)
    log.info(
        "serving",
        host=settings.api_host,
        port=settings.api_port,
        controller_enabled=settings.controller_enabled,
        signal_source=settings.signal_source,
        workers=settings.workers,
    )

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
