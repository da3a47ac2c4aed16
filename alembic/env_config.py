"""
Environment configuration for Alembic migrations.
Resolves the synchronous database URL for the current environment.
"""

import os

from dotenv import load_dotenv

env = os.getenv("ENV", "local")
dotenv_file = f".env.{env}"

print(f"Alembic: Loading environment variables from {dotenv_file}")
load_dotenv(dotenv_file)


def get_database_url(environment: str = None) -> str:
    """
    Get the synchronous database URL.

    DATABASE_URL takes precedence (async driver suffixes are stripped),
    otherwise the URL is built from the DB_* variables.

    Args:
        environment: 'local', 'staging', 'production', or None (uses current ENV).
    """
    if not environment:
        environment = os.getenv("ENV", "local")

    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit.replace("+asyncpg", "").replace("+aiosqlite", "")

    db_port = os.getenv("DB_PORT") or "5432"
    return (
        f"postgresql://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}"
        f"@{os.getenv('DB_HOST')}:{db_port}/{os.getenv('DB_NAME')}"
    )
