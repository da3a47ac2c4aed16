"""Environment detection utilities."""

import os

_ALIASES = {
    "prod": "production",
    "stg": "staging",
    "dev": "local",
    "development": "local",
    "testing": "test",
}


def get_environment() -> str:
    """Get the normalized environment name.

    Returns:
        One of 'local', 'test', 'staging' or 'production'
    """
    env = os.getenv("ENV", "local").strip().lower()
    return _ALIASES.get(env, env)


def is_production() -> bool:
    return get_environment() == "production"


def is_staging() -> bool:
    return get_environment() == "staging"


def is_testing() -> bool:
    """True while the test suite is running (ENV=test)."""
    return get_environment() == "test"


def is_debug() -> bool:
    """Local and test runs are debug runs: verbose logs, no Sentry."""
    return get_environment() in ("local", "test")


def is_deployed() -> bool:
    return is_production() or is_staging()
