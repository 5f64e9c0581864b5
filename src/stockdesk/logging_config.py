import logging
import logging.config
import os

LOG_DIR = "logs"

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": "INFO",
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": os.path.join(LOG_DIR, "stockdesk.log"),
            "maxBytes": 5_242_880,
            "backupCount": 3,
            "formatter": "standard",
            "level": "DEBUG",
        },
    },
    "loggers": {
        # httpx logs every request at INFO
        "httpx": {"level": "WARNING"},
    },
    "root": {
        "level": "DEBUG",
        "handlers": ["console", "file"],
    },
}


def setup_logging(verbose: bool = False):
    os.makedirs(LOG_DIR, exist_ok=True)
    logging.config.dictConfig(LOGGING_CONFIG)
    if verbose:
        logging.getLogger().handlers[0].setLevel(logging.DEBUG)
