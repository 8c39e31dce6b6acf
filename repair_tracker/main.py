from __future__ import annotations

import uvicorn

from repair_tracker import create_app
from repair_tracker.core.config import get_settings
from repair_tracker.core.logging import configure_logging

settings = get_settings()
configure_logging(settings.LOG_LEVEL, service=settings.APP_NAME)
app = create_app(settings, metrics=True)


def run() -> None:
    """Serve until SIGINT/SIGTERM; uvicorn drains and exits with status 0."""

    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
