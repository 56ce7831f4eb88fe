"""WhatsApp Cloud API HTTP client.

- Text messages and interactive polls to a single recipient
- Bounded retries with linear backoff (1s, 2s, ...)
- Simulation mode when credentials are missing: logs and reports success
"""

import asyncio
from typing import Optional, Sequence

import httpx
import structlog

from app.config import WhatsAppConfig
from app.infrastructure.retry import Sleep, retry_with_linear_backoff

logger = structlog.get_logger(__name__)

MAX_POLL_OPTION_LENGTH = 100  # provider limit per option
MAX_POLL_OPTIONS = 12


def normalize_phone(phone: str) -> str:
    """Strip formatting characters the provider rejects (+, spaces, dashes, parentheses)."""
    return phone.replace("+", "").replace(" ", "").replace("-", "").replace("(", "").replace(")", "")


def build_poll_options(options: Sequence[str]) -> list[dict]:
    return [
        {"id": f"opt_{index}", "text": option[:MAX_POLL_OPTION_LENGTH]}
        for index, option in enumerate(options[:MAX_POLL_OPTIONS])
    ]


class WhatsAppClient:
    """Client for the WhatsApp Cloud API messages endpoint."""

    def __init__(
        self,
        config: WhatsAppConfig,
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
            "Authorization": f"Bearer {config.api_token}",
            "Content-Type": "application/json",
        }

    @property
    def messages_url(self) -> str:
        return f"{self.config.api_url}/{self.config.phone_number_id}/messages"

    async def _post(self, payload: dict) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.messages_url, json=payload, headers=self.headers)
            response.raise_for_status()

        # A 2xx is a delivered message even when the body is not JSON
        try:
            return response.json() if response.content else {}
        except ValueError:
            logger.warning("whatsapp_unparseable_response", status_code=response.status_code)
            return {}

    async def send_text(self, phone: str, message: str) -> dict:
        """Send a plain text message. Raises NotificationDeliveryError once retries run out."""
        to = normalize_phone(phone)

        if not self.is_live:
            logger.info("whatsapp_simulated", to=to, message=message)
            return {"simulated": True}

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": message},
        }
        result = await retry_with_linear_backoff(
            lambda: self._post(payload),
            retries=self.retries,
            base_delay=self.backoff_seconds,
            description="send WhatsApp message",
            sleep=self._sleep,
            to=to,
        )
        logger.info("whatsapp_sent", to=to)
        return result

    async def send_poll(
        self,
        phone: str,
        question: str,
        options: Sequence[str],
        multiple_selection: bool = True,
    ) -> dict:
        """Send an interactive poll. Option text is truncated to the provider limit."""
        to = normalize_phone(phone)

        if not self.is_live:
            logger.info("whatsapp_poll_simulated", to=to, question=question, options=list(options))
            return {"simulated": True}

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "interactive",
            "interactive": {
                "type": "poll",
                "poll": {
                    "question": question,
                    "options": build_poll_options(options),
                    "multiple_selection": multiple_selection,
                },
            },
        }
        result = await retry_with_linear_backoff(
            lambda: self._post(payload),
            retries=self.retries,
            base_delay=self.backoff_seconds,
            description="send WhatsApp poll",
            sleep=self._sleep,
            to=to,
        )
        logger.info("whatsapp_poll_sent", to=to, options=len(options))
        return result
