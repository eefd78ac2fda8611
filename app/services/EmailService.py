"""Transactional email through the Resend HTTP API."""

import asyncio
import logging
import re
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "EMAIL_SERVICE_NOT_CONFIGURED"
SEND_ERROR = "EMAIL_SEND_ERROR"


def strip_html(html: str) -> str:
    return re.sub(r"<[^>]*>", "", html or "")


async def send_email(to: str, subject: str, html: str, text: Optional[str] = None) -> dict:
    """
    Send a single email.

    Returns:
        dict: {"success": True, "id": ...} or {"success": False, "error": ..., "code": ...}
    """
    if not settings.RESEND_API_KEY:
        logger.warning("⚠️ Resend API key not configured. Email functionality disabled.")
        return {"success": False, "message": "Email service not configured", "code": NOT_CONFIGURED}

    payload = {
        "from": settings.EMAIL_FROM,
        "to": [to],
        "subject": subject,
        "html": html,
        "text": text or strip_html(html),
    }
    headers = {"Authorization": f"Bearer {settings.RESEND_API_KEY}"}

    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.post(settings.RESEND_API_URL, json=payload, headers=headers)

    if response.status_code >= 400:
        logger.error(f"❌ Resend error {response.status_code}: {response.text}")
        return {"success": False, "error": response.text, "code": SEND_ERROR}

    email_id = response.json().get("id")
    logger.info(f"✅ Email sent via Resend: {email_id}")
    return {"success": True, "id": email_id, "message": "Email sent successfully"}


async def _sleep(seconds: float):
    await asyncio.sleep(seconds)


def _should_retry(result: dict) -> bool:
    return not result.get("success") and result.get("code") != NOT_CONFIGURED


def _last_failure(retry_state: RetryCallState) -> dict:
    outcome = retry_state.outcome
    logger.error(f"Failed to send email after {retry_state.attempt_number} attempts")
    if outcome.failed:
        return {"success": False, "error": str(outcome.exception()), "code": SEND_ERROR}
    return outcome.result()


def _log_retry(retry_state: RetryCallState):
    outcome = retry_state.outcome
    reason = outcome.exception() if outcome.failed else outcome.result().get("error")
    logger.warning(f"Email send attempt {retry_state.attempt_number} failed: {reason}")


async def send_email_with_retry(options: dict, max_retries: Optional[int] = None) -> dict:
    """
    Send with exponential backoff (1s, 2s, 4s, ...) between attempts.

    Exceptions and unsuccessful results are both retried; once attempts are
    exhausted the last failure is returned rather than raised.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries or settings.EMAIL_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, exp_base=2),
        retry=retry_if_exception_type(Exception) | retry_if_result(_should_retry),
        before_sleep=_log_retry,
        retry_error_callback=_last_failure,
        sleep=_sleep,
    )
    return await retrying(send_email, **options)


async def send_email_safely(options: dict):
    """Retried send for detached callers (BackgroundTasks). Never raises."""
    try:
        result = await send_email_with_retry(options)
    except Exception as e:
        logger.error(f"❌ Email to {options.get('to')} crashed: {e}")
        return
    if not result.get("success"):
        logger.warning(f"⚠️ Email to {options.get('to')} not sent: {result.get('code')}")
