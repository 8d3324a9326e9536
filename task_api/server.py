"""Process entry point: ``task-api`` runs the API under uvicorn."""
import logging
import sys

import uvicorn

from .config import ConfigError, Settings
from .logging_setup import setup_logging
from .main import create_app

logger = logging.getLogger(__name__)


def main() -> int:
    try:
        settings = Settings.from_env()
    except ConfigError:
        logging.basicConfig()
        logger.exception("Failed to load configuration")
        return 1

    setup_logging(settings.log_level)
    logger.info("Server starting on %s:%s", settings.host, settings.port, extra={"env": settings.env})

    # uvicorn handles SIGINT/SIGTERM: it stops accepting connections, drains
    # in-flight requests and runs the lifespan shutdown (pool disposal).
    try:
        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.port,
            log_config=None,
        )
    except Exception:
        logger.exception("Failed to start application")
        return 1

    logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
