"""CLI entrypoint for launching the FastAPI service with Uvicorn."""
from __future__ import annotations

import logging
import sys

import uvicorn

from .api import create_app
from .config import ConfigError, get_settings


def main() -> None:
    try:
        settings = get_settings()
    except ConfigError as exc:
        logging.basicConfig(level=logging.ERROR, format="%(asctime)s %(levelname)s %(message)s")
        logging.error("Invalid configuration: %s", exc)
        sys.exit(2)

    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(message)s")
    logging.info(
        "Starting host snapshot service on %s:%d (probe timeout %.1fs, upstream %s)",
        settings.host,
        settings.port,
        settings.probe_timeout,
        settings.upstream_url,
    )

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
