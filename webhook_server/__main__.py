"""Command line entry point: ``python -m webhook_server``."""

import logging
import sys

import uvicorn

from webhook_server.core.exceptions import ConfigError
from webhook_server.core.logging_config import configure_logging
from webhook_server.core.routes_config import load_routes_document
from webhook_server.core.setting import settings

logger = logging.getLogger("webhook_server")


def main() -> int:
    configure_logging(settings.LOG_LEVEL)

    try:
        document = load_routes_document(settings.ROUTES_CONFIG_PATH)
    except ConfigError as e:
        logger.error("Failed to load configuration: %s", e)
        return 1

    # imported late so a broken config is reported before the app module builds itself
    from webhook_server.main import app

    host = document.server.host or settings.HOST
    port = document.server.port or settings.PORT
    logger.info("Starting webhook server on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level=settings.LOG_LEVEL.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
