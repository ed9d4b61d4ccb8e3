# project_service/logging_conf.py
from __future__ import annotations
import logging
import logging.config
from typing import Any, Dict


class CorrelationIdFilter(logging.Filter):
    """Guarantees every record has a correlation_id attribute for the formatter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


def build_logging_config(level: str = "INFO") -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation": {"()": CorrelationIdFilter},
        },
        "formatters": {
            "basic": {
                "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(correlation_id)s | %(message)s",
            },
            "uvicorn": {
                "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "basic",
                "filters": ["correlation"],
                "level": level,
            },
            "uvicorn": {
                "class": "logging.StreamHandler",
                "formatter": "uvicorn",
                "level": "INFO",
            },
        },
        "loggers": {
            "": {"handlers": ["console"], "level": level},
            "uvicorn": {"handlers": ["uvicorn"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["uvicorn"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["uvicorn"], "level": "INFO", "propagate": False},
            "project_service": {"handlers": ["console"], "level": level, "propagate": False},
            "httpx": {"level": "WARNING"},
            "aio_pika": {"level": "WARNING"},
        },
    }


def setup_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(build_logging_config(level))
