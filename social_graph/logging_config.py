from logging.config import dictConfig

from social_graph.config import settings
from social_graph.utils.logger import ActorAwareFormatter


# Central logging configuration
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "()": ActorAwareFormatter,
            "format": "%(asctime)s - %(name)s - %(levelname)s - [%(actor)s:%(operation)s] - %(message)s",
        },
        "simple": {
            "()": ActorAwareFormatter,
            "format": "%(asctime)s - %(levelname)s - [%(actor)s] - %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "root": {
        "level": "DEBUG" if settings.DEBUG else "INFO",
        "handlers": ["console"],
    },
    "loggers": {
        "social_graph": {
            "level": "DEBUG" if settings.DEBUG else "INFO",
            "handlers": ["console"],
            "propagate": False,
        },
        "uvicorn.error": {
            "level": "INFO",
            "handlers": ["console"],
            "propagate": False,
        },
        "uvicorn.access": {
            "level": "INFO",
            "handlers": ["console"],
            "propagate": False,
        },
        "sqlalchemy.engine": {
            "level": "INFO" if settings.DEBUG else "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
    },
}

def configure_logging():
    """Configure logging for the application."""
    dictConfig(LOGGING_CONFIG)
