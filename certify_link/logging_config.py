"""
Logging setup.

Every module logs through logging.getLogger(__name__); this module
only decides where those records go and at which level.
"""

import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a console handler on the root logger."""
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        },
        "loggers": {
            # httpx logs every request at INFO
            "httpx": {"level": "WARNING"},
        },
    })
    logging.getLogger(__name__).debug("Logging configured at %s", level)
