"""Unit tests for the Resend email service retry behaviour."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.services import EmailService
from app.services.EmailService import NOT_CONFIGURED, send_email, send_email_safely, send_email_with_retry
from app.services.email_templates import team_invite_email

OPTIONS = {"to": "jane@x.com", "subject": "Hello", "html": "<p>Hi</p>"}


@pytest.fixture
def no_sleep():
    with patch.object(EmailService, "_sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestSendEmail:

    async def test_not_configured(self):
        with patch.object(EmailService.settings, "RESEND_API_KEY", ""):
            result = await send_email(**OPTIONS)
        assert result["success"] is False
        assert result["code"] == NOT_CONFIGURED

    async def test_posts_to_resend(self):
        response = MagicMock(status_code=200)
        response.json.return_value = {"id": "email_123"}
        client = MagicMock()
        client.post = AsyncMock(return_value=response)
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)

        with patch.object(EmailService.settings, "RESEND_API_KEY", "re_test"), \
                patch.object(EmailService.httpx, "AsyncClient", return_value=client):
            result = await send_email(**OPTIONS)

        assert result == {"success": True, "id": "email_123", "message": "Email sent successfully"}
        payload = client.post.call_args.kwargs["json"]
        assert payload["to"] == ["jane@x.com"]
        assert payload["text"] == "Hi"


class TestSendEmailWithRetry:

    async def test_succeeds_after_failures(self, no_sleep):
        results = [
            {"success": False, "error": "boom", "code": "EMAIL_SEND_ERROR"},
            {"success": False, "error": "boom", "code": "EMAIL_SEND_ERROR"},
            {"success": True, "id": "ok"},
        ]
        with patch.object(EmailService, "send_email", new=AsyncMock(side_effect=results)) as send:
            result = await send_email_with_retry(OPTIONS, max_retries=3)
        assert result == {"success": True, "id": "ok"}
        assert send.await_count == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [1, 2]

    async def test_returns_last_failure_when_exhausted(self, no_sleep):
        failure = {"success": False, "error": "down", "code": "EMAIL_SEND_ERROR"}
        with patch.object(EmailService, "send_email", new=AsyncMock(return_value=failure)) as send:
            result = await send_email_with_retry(OPTIONS, max_retries=3)
        assert result == failure
        assert send.await_count == 3

    async def test_exceptions_are_retried(self, no_sleep):
        with patch.object(EmailService, "send_email", new=AsyncMock(side_effect=RuntimeError("network"))) as send:
            result = await send_email_with_retry(OPTIONS, max_retries=2)
        assert result["success"] is False
        assert "network" in result["error"]
        assert send.await_count == 2

    async def test_not_configured_is_not_retried(self, no_sleep):
        result_value = {"success": False, "code": NOT_CONFIGURED}
        with patch.object(EmailService, "send_email", new=AsyncMock(return_value=result_value)) as send:
            result = await send_email_with_retry(OPTIONS, max_retries=3)
        assert result["code"] == NOT_CONFIGURED
        assert send.await_count == 1

    async def test_safely_never_raises(self, no_sleep):
        with patch.object(EmailService, "send_email_with_retry", new=AsyncMock(side_effect=RuntimeError("x"))):
            assert await send_email_safely(OPTIONS) is None


def test_invite_template_addresses_recipient():
    email = team_invite_email("Jane Doe", "Core", "bob@x.com")
    assert email["to"] == "bob@x.com"
    assert "Core" in email["subject"]
