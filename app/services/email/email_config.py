"""Email service configuration."""

from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailProvider(str, Enum):
    """Email provider options."""

    GOOGLE_WORKSPACE = "google_workspace"
    AWS_SES = "aws_ses"
    # Log instead of sending (local runs and tests)
    DISABLED = "disabled"


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EMAIL_", extra="ignore")

    PROVIDER: EmailProvider = EmailProvider.DISABLED


class SMTPSettings(BaseSettings):
    """Google Workspace SMTP configuration."""

    model_config = SettingsConfigDict(env_prefix="EMAIL_", extra="ignore")

    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SMTP_USER: str = "noreply@kermhost.app"
    SMTP_PASSWORD: str = ""
    SMTP_TIMEOUT: float = 20.0
    SEND_FROM_NAME: str = "KermHost"


class SESSettings(BaseSettings):
    """AWS SES configuration."""

    model_config = SettingsConfigDict(env_prefix="EMAIL_", extra="ignore")

    AWS_REGION: str = "eu-west-1"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    SES_FROM_EMAIL: str = "noreply@kermhost.app"
    SEND_FROM_NAME: str = "KermHost"


email_settings = EmailSettings()
smtp_settings = SMTPSettings()
ses_settings = SESSettings()
