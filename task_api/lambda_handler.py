"""
AWS Lambda entry point.

API Gateway events are translated by Mangum into ASGI calls. Lifespan events
are off: Lambda containers are frozen between invocations, so the pool is
opened lazily on first use and migrations are run separately with
``task-api-migrate``.
"""
import logging

from mangum import Mangum

from .config import Settings
from .logging_setup import setup_logging
from .main import create_app

logger = logging.getLogger(__name__)

_handler = None


def handler(event, context):
    global _handler

    if _handler is None:
        settings = Settings.from_env()
        setup_logging(settings.log_level)
        _handler = Mangum(create_app(settings), lifespan="off")
        logger.info("Lambda handler initialised", extra={"env": settings.env})

    return _handler(event, context)
