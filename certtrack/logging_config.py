import logging
from logging.config import dictConfig
from typing import Optional

from .config import Settings, get_settings

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOGGER = "certtrack.telemetry"


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure process logging from the CERTTRACK_LOG_LEVEL / CERTTRACK_DEBUG_HTTP settings.

    Telemetry lines stay at INFO regardless of the root level.
    """
    settings = settings or get_settings()
    level = settings.log_level.upper()
    http_level = "DEBUG" if settings.debug_http else "WARNING"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": DEFAULT_LOG_FORMAT,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                TELEMETRY_LOGGER: {"level": "INFO"},
                "httpx": {"level": http_level},
                "httpcore": {"level": http_level},
                "uvicorn.access": {"level": "DEBUG" if settings.debug_http else level},
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )
    logging.getLogger(__name__).debug("Logging configured at %s (http debug=%s)", level, settings.debug_http)
