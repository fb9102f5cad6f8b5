"""Report email delivery via Mailgun."""

from __future__ import annotations

import logging

import httpx

from app.core.config import settings
from app.core.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)

MAILGUN_API = "https://api.mailgun.net/v3"


def mailgun_configured() -> bool:
    return bool(settings.MAILGUN_API_KEY and settings.MAILGUN_DOMAIN)


async def send_report_email(
    to_email: str,
    subject: str,
    text: str,
    attachment: tuple[str, bytes, str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Send a report by email.

    attachment: optional tuple of (filename, bytes, content type).
    """
    if not mailgun_configured():
        logger.warning("Mailgun not configured - skipping report email to %s", to_email)
        return {"sent": False, "message": "Email delivery is not configured"}

    data = {
        "from": f"{settings.COMPANY_NAME} <{settings.MAILGUN_FROM_EMAIL}>",
        "to": [to_email],
        "subject": subject,
        "text": text,
    }
    files = None
    if attachment:
        filename, content, content_type = attachment
        files = [("attachment", (filename, content, content_type))]

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=30)
    try:
        resp = await client.post(
            f"{MAILGUN_API}/{settings.MAILGUN_DOMAIN}/messages",
            auth=("api", settings.MAILGUN_API_KEY),
            data=data,
            files=files,
        )
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Report email to %s failed: %s", to_email, exc)
        raise EmailDeliveryError() from exc
    finally:
        if owns_client:
            await client.aclose()

    logger.info("Report email sent to %s (%s)", to_email, subject)
    return {"sent": True, "message": f"Report sent to {to_email}"}
