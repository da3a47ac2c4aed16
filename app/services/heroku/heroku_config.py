"""Heroku platform API configuration"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class HerokuSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HEROKU_", env_file=".env", extra="ignore")

    api_url: str = "https://api.heroku.com"
    region: str = "eu"
    source_branch: str = "main"
    # Per-call timeout in seconds
    request_timeout: float = 30.0
    app_name_prefix: str = "kermhost"
    log_lines: int = 200


heroku_settings = HerokuSettings()
