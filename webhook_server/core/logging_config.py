"""Process-wide logging setup."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once.

    uvicorn installs its own handlers for its loggers; everything under
    ``webhook_server`` propagates to the root handler configured here.
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("webhook_server").setLevel(level.upper())
