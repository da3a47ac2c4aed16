"""Sentry error tracking utilities."""

import functools
import os
from typing import Any, Callable, TypeVar

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from app.utils.environment import get_environment, is_debug
from app.utils.logger import logger

F = TypeVar("F", bound=Callable[..., Any])

_sentry_initialized = False


def configure_sentry(dsn_env_var: str = "SENTRY_DSN") -> bool:
    """Initialize Sentry for staging/production.

    Skipped in local and test runs, and when no DSN is configured.

    Returns:
        True if Sentry is active after the call
    """
    global _sentry_initialized

    if _sentry_initialized:
        return True
    if is_debug():
        return False

    dsn = os.getenv(dsn_env_var)
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=get_environment(),
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.2")),
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        send_default_pii=False,
    )
    _sentry_initialized = True
    return True


def is_sentry_initialized() -> bool:
    return _sentry_initialized


def capture_exception(exception: BaseException) -> None:
    """Report an exception to Sentry when it is configured."""
    if _sentry_initialized:
        sentry_sdk.capture_exception(exception)


def capture_message(message: str, level: str = "info") -> None:
    if _sentry_initialized:
        sentry_sdk.capture_message(message, level=level)


def wrap_with_sentry(func: F) -> F:
    """Decorator for background coroutines: report, log, then re-raise."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Background task {func.__name__} failed: {e}", exc_info=True)
            capture_exception(e)
            raise

    return wrapper  # type: ignore


def set_user_context(user_id: int | str, email: str | None = None) -> None:
    if _sentry_initialized:
        sentry_sdk.set_user({"id": str(user_id), "email": email})
