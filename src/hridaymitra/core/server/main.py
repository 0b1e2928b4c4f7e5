"""Console entry point: serve the health tools over Streamable HTTP."""

from __future__ import annotations

import logging

from hridaymitra.core.config.settings import get_settings
from hridaymitra.core.server.app import create_app

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def run() -> None:
    # Settings validation rejects a public bind before anything is opened
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.hm_log_level.upper(), logging.INFO),
        format=_LOG_FORMAT,
    )

    server = create_app()
    logging.getLogger(__name__).info(
        "HridayMitra Health listening on http://%s:%d (storage: %s)",
        settings.hm_host,
        settings.hm_port,
        settings.storage_backend,
    )
    server.run(transport="streamable-http", host=settings.hm_host, port=settings.hm_port)


if __name__ == "__main__":
    run()
