from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    db_name: str = "kermhost"
    db_user: str = "postgres"
    db_password: str = ""
    db_host: str = "localhost"
    db_port: str = "5432"
    database_url: str | None = None

    # Environment
    env: str = "local"
    app_url: str = "http://localhost:3000"

    # Admin API
    admin_api_key: str | None = None

    # Coin economy
    coin_daily_reward: int = 10
    coin_referral_reward: int = 10
    coin_referral_bonus: int = 10
    coin_welcome_bonus: int = 10
    reconfigure_charges: bool = True

    # Hosting accounts / provisioning
    default_max_deployments: int = 5
    provisioning_timeout_minutes: int = 30
    supervisor_interval_seconds: int = 60


settings = Settings()
