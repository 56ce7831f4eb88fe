"""SendGrid v3 mail/send HTTP client."""

import asyncio
from typing import Optional

import httpx
import structlog

from app.config import EmailConfig
from app.infrastructure.retry import Sleep, retry_with_linear_backoff

logger = structlog.get_logger(__name__)


class SendGridClient:
    """Sends HTML email through SendGrid, or logs it when no API key is configured."""

    def __init__(
        self,
        config: EmailConfig,
        retries: int = 3,
        timeout: float = 10.0,
        backoff_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.is_live = config.is_configured
        self.retries = retries
        self.timeout = timeout
        self.backoff_seconds = backoff_seconds
        self._transport = transport
        self._sleep = sleep
        self.headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, payload: dict) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.config.api_url, json=payload, headers=self.headers)
            response.raise_for_status()

    async def send_email(self, email: str, subject: str, html_content: str) -> None:
        if not self.is_live:
            logger.info("email_simulated", to=email, subject=subject)
            return

        payload = {
            "personalizations": [{"to": [{"email": email}], "subject": subject}],
            "from": {"email": self.config.from_email},
            "content": [{"type": "text/html", "value": html_content}],
        }
        await retry_with_linear_backoff(
            lambda: self._post(payload),
            retries=self.retries,
            base_delay=self.backoff_seconds,
            description="send email",
            sleep=self._sleep,
            to=email,
        )
        logger.info("email_sent", to=email, subject=subject)
