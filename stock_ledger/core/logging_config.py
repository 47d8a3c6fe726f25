import logging
import logging.config
import os
from datetime import datetime
from stock_ledger.core.config import settings

MAX_LOG_BYTES = 10 * 1024 * 1024

def _rotating_handler(channel: str, level: str, stamp: str) -> dict:
    directory = os.path.join(settings.LOG_DIR, channel)
    os.makedirs(directory, exist_ok=True)
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": os.path.join(directory, f"{channel}-{stamp}.log"),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": 10,
        "encoding": "utf-8",
    }

def setup_logging():
    """Console plus daily-named rotating files for the app, errors and background workers"""
    stamp = datetime.now().strftime("%Y-%m-%d")

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "app_file": _rotating_handler("app", settings.LOG_LEVEL, stamp),
            "error_file": _rotating_handler("error", "ERROR", stamp),
            "celery_file": _rotating_handler("celery", "INFO", stamp),
        },
        "loggers": {
            "": {
                "level": settings.LOG_LEVEL,
                "handlers": ["console", "app_file", "error_file"],
            },
            # Background jobs log to their own file as well as the error file
            "stock_ledger.workers": {
                "level": "INFO",
                "handlers": ["console", "celery_file", "error_file"],
                "propagate": False,
            },
            "celery": {
                "level": "INFO",
                "handlers": ["console", "celery_file"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": "WARNING",
                "handlers": ["app_file"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger(__name__)
    logger.info(f"🚀 Stock ledger logging configured ({settings.ENVIRONMENT}, level {settings.LOG_LEVEL})")
