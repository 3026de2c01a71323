"""
Logger configuration.

One console handler for the whole process; modules log through
``logging.getLogger(__name__)``.
"""
import logging
import logging.config


def build_log_config(level: str = "INFO") -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "root": {"handlers": ["console"], "level": level.upper()},
        "loggers": {
            # request lines come from our own middleware
            "uvicorn.access": {"level": "WARNING"},
        },
    }


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        The ``app`` logger.
    """
    logging.config.dictConfig(build_log_config(level))
    logger = logging.getLogger("app")
    logger.debug("Logging configured at %s", level.upper())
    return logger
