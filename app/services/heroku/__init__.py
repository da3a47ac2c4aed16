"""Heroku platform API integration"""

from app.services.heroku.heroku_client import HerokuClient, validate_api_key
from app.services.heroku.heroku_config import HerokuSettings, heroku_settings

__all__ = [
    "HerokuClient",
    "validate_api_key",
    "HerokuSettings",
    "heroku_settings",
]
