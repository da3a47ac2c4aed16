"""Utility modules for the KermHost backend."""

from app.utils.logger import logger, setup_logger, get_logger
from app.utils.environment import is_production, is_staging, is_debug, get_environment
from app.utils.sentry_utils import configure_sentry, capture_exception, wrap_with_sentry
from app.utils.response_utils import error_response
from app.utils.constants import (
    API_VERSION,
    API_PREFIX,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
)

__all__ = [
    # Logger
    "logger",
    "setup_logger",
    "get_logger",
    # Environment
    "is_production",
    "is_staging",
    "is_debug",
    "get_environment",
    # Sentry
    "configure_sentry",
    "capture_exception",
    "wrap_with_sentry",
    # Response
    "error_response",
    # Constants
    "API_VERSION",
    "API_PREFIX",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
]
