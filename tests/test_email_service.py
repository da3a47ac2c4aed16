"""Tests for notification emails."""
from app.services.email import email_service as email_module
from app.services.email.email_config import EmailProvider
from app.services.email.email_service import BotReviewData, EmailService, get_email_service


def test_convert_basic_markdown():
    html = EmailService.convert_basic_markdown("**Hi**\n[Open](https://kermhost.test/x)")

    assert html == '<strong>Hi</strong><br><a href="https://kermhost.test/x">Open</a>'


async def test_disabled_provider_only_logs():
    service = EmailService(EmailProvider.DISABLED)

    assert await service.send_email("a@example.com", "Subject", "Body") is True


def test_service_is_cached_per_provider():
    assert get_email_service(EmailProvider.DISABLED) is get_email_service(EmailProvider.DISABLED)


class _RefusingSMTP:
    def __init__(self, **kwargs):
        pass

    async def __aenter__(self):
        raise OSError("connection refused")

    async def __aexit__(self, *exc):
        return False


async def test_smtp_failure_returns_false(monkeypatch):
    monkeypatch.setattr(email_module, "SMTP", _RefusingSMTP)
    service = EmailService(EmailProvider.GOOGLE_WORKSPACE)

    sent = await service.send_bot_rejected_email(
        "owner@example.com",
        BotReviewData(owner_name="Ada", bot_name="Kerm MD", github_repo="kerm-dev/kerm-md"),
    )

    assert sent is False
