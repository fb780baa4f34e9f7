"""
Server entry point for Achievement Tracker.

``python -m achievement_tracker.main`` and ``achievement-tracker serve`` both
go through :func:`run`.
"""

from typing import Optional

import structlog
import uvicorn

from .api import app  # noqa: F401
from .config import get_settings

logger = structlog.get_logger()

APP_IMPORT_PATH = "achievement_tracker.main:app"


def run(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: Optional[bool] = None,
) -> None:
    """Serve the API, falling back to settings for anything not given.

    Reload mode always runs a single worker.
    """
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    reload = settings.debug if reload is None else reload
    workers = 1 if reload else settings.api_workers

    logger.info("server_starting", host=host, port=port, reload=reload, workers=workers)
    uvicorn.run(APP_IMPORT_PATH, host=host, port=port, reload=reload, workers=workers)


if __name__ == "__main__":
    run()
