"""Transactional email notifications.

Sending is best effort: every public method returns False on failure and
never raises, so callers can notify after committing their own work.
"""

import asyncio
import re
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

import boto3
from aiosmtplib import SMTP, SMTPException
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.services.email.email_config import (
    EmailProvider,
    email_settings,
    ses_settings,
    smtp_settings,
)
from app.utils.logger import get_logger

logger = get_logger("email")


@dataclass
class BotReviewData:
    """Data for bot approval/rejection emails."""

    owner_name: str
    bot_name: str
    github_repo: str
    reason: Optional[str] = None


@dataclass
class ReferralRewardData:
    referrer_name: str
    referred_email: str
    reward: int
    new_balance: int


@dataclass
class CoinTransferData:
    receiver_name: str
    sender_email: str
    amount: int
    description: Optional[str] = None


class EmailService:
    """Email service supporting SMTP, AWS SES, or a disabled (log-only) mode."""

    def __init__(self, provider: EmailProvider):
        self.provider = provider
        self._ses_client = None

        if self.provider == EmailProvider.AWS_SES:
            self._ses_client = boto3.client(
                "ses",
                region_name=ses_settings.AWS_REGION,
                aws_access_key_id=ses_settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=ses_settings.AWS_SECRET_ACCESS_KEY or None,
            )

    @staticmethod
    def convert_basic_markdown(text: str) -> str:
        """Convert **bold**, [label](url) links and newlines to HTML."""
        text = re.sub(r"\*\*(.*?)\*\*", r"<strong>\1</strong>", text)
        text = re.sub(r"\[(.*?)\]\((https?://[^)]+)\)", r'<a href="\2">\1</a>', text)
        return text.replace("\n", "<br>")

    def _wrap_html(self, content: str) -> str:
        return (
            "<html><body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333;\">"
            f"{self.convert_basic_markdown(content)}"
            "<p style=\"margin-top: 30px; color: #888; font-size: 12px;\">"
            f"KermHost - <a href=\"{settings.app_url}\">{settings.app_url}</a></p>"
            "</body></html>"
        )

    async def send_email(self, to_email: str, subject: str, content: str) -> bool:
        """Send a markdown-ish plain text email with an HTML alternative."""
        if self.provider == EmailProvider.DISABLED:
            logger.info(f"Email disabled, not sending '{subject}' to {to_email}")
            return True
        if self.provider == EmailProvider.AWS_SES:
            return await self._send_email_ses(to_email, subject, content)
        return await self._send_email_smtp(to_email, subject, content)

    async def _send_email_smtp(self, to_email: str, subject: str, content: str) -> bool:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = formataddr((smtp_settings.SEND_FROM_NAME, smtp_settings.SMTP_USER))
        message["To"] = to_email
        message.attach(MIMEText(content, "plain", "utf-8"))
        message.attach(MIMEText(self._wrap_html(content), "html", "utf-8"))

        try:
            async with SMTP(
                hostname=smtp_settings.SMTP_HOST,
                port=smtp_settings.SMTP_PORT,
                use_tls=True,
                timeout=smtp_settings.SMTP_TIMEOUT,
            ) as smtp:
                await smtp.login(smtp_settings.SMTP_USER, smtp_settings.SMTP_PASSWORD)
                await smtp.send_message(message)
        except (SMTPException, OSError) as e:
            logger.error(f"SMTP error sending '{subject}' to {to_email}: {e}")
            return False

        logger.info(f"SMTP email '{subject}' sent to {to_email}")
        return True

    async def _send_email_ses(self, to_email: str, subject: str, content: str) -> bool:
        try:
            response = await asyncio.to_thread(
                self._ses_client.send_email,
                Source=f"{ses_settings.SEND_FROM_NAME} <{ses_settings.SES_FROM_EMAIL}>",
                Destination={"ToAddresses": [to_email]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": content, "Charset": "UTF-8"},
                        "Html": {"Data": self._wrap_html(content), "Charset": "UTF-8"},
                    },
                },
            )
        except ClientError as e:
            logger.error(f"SES error sending '{subject}' to {to_email}: {e.response['Error']['Message']}")
            return False
        except BotoCoreError as e:
            logger.error(f"SES error sending '{subject}' to {to_email}: {e}")
            return False

        logger.info(f"SES email '{subject}' sent to {to_email}, MessageId: {response['MessageId']}")
        return True

    async def send_bot_approved_email(self, to_email: str, data: BotReviewData) -> bool:
        content = (
            f"Hi {data.owner_name},\n\n"
            f"Good news! Your bot **{data.bot_name}** ({data.github_repo}) has been approved "
            "and is now listed in the KermHost catalog.\n\n"
            f"[Open the dashboard]({settings.app_url}/dashboard)"
        )
        return await self.send_email(to_email, f"Your bot {data.bot_name} was approved", content)

    async def send_bot_rejected_email(self, to_email: str, data: BotReviewData) -> bool:
        reason = data.reason or "No reason was given."
        content = (
            f"Hi {data.owner_name},\n\n"
            f"Your bot **{data.bot_name}** ({data.github_repo}) was not approved.\n\n"
            f"**Reason:** {reason}\n\n"
            "You can update the repository, sync the bot and it will be reviewed again."
        )
        return await self.send_email(to_email, f"Your bot {data.bot_name} was not approved", content)

    async def send_referral_reward_email(self, to_email: str, data: ReferralRewardData) -> bool:
        content = (
            f"Hi {data.referrer_name},\n\n"
            f"{data.referred_email} just verified their account with your referral code.\n"
            f"You earned **{data.reward} coins**. Your balance is now {data.new_balance} coins.\n\n"
            f"[Invite more friends]({settings.app_url}/referrals)"
        )
        return await self.send_email(to_email, f"You earned {data.reward} coins", content)

    async def send_coins_received_email(self, to_email: str, data: CoinTransferData) -> bool:
        content = (
            f"Hi {data.receiver_name},\n\n"
            f"{data.sender_email} sent you **{data.amount} coins**."
        )
        if data.description:
            content += f"\n\nMessage: {data.description}"
        return await self.send_email(to_email, f"You received {data.amount} coins", content)


# Singleton cache per provider
_email_service_cache: dict[EmailProvider, EmailService] = {}


def get_email_service(provider: Optional[EmailProvider] = None) -> EmailService:
    """Get or create the EmailService for ``provider`` (default: EMAIL_PROVIDER)."""
    provider = provider or email_settings.PROVIDER
    if provider not in _email_service_cache:
        _email_service_cache[provider] = EmailService(provider)
    return _email_service_cache[provider]
