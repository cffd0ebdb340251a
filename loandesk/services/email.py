from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from loandesk.core.settings import settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str
    from_name: str | None = None


class EmailSender(ABC):
    @abstractmethod
    async def send_email(self, message: EmailMessage) -> None:
        """Deliver one message; raise on transport failure."""


class HttpEmailSender(EmailSender):
    """Posts messages as JSON to an HTTP email relay."""

    def __init__(
        self,
        api_url: str,
        *,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender or settings.email_from
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def send_email(self, message: EmailMessage) -> None:
        payload = {
            "from": self.sender,
            "from_name": message.from_name,
            "to": message.to,
            "subject": message.subject,
            "body": message.body,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.api_url, json=payload, headers=self._headers())
            response.raise_for_status()
        logger.info("Email dispatched to=%s subject=%s", message.to, message.subject)


class LoggingEmailSender(EmailSender):
    async def send_email(self, message: EmailMessage) -> None:
        logger.info(
            "Email relay not configured; message to=%s subject=%s not sent",
            message.to,
            message.subject,
        )


def get_email_sender() -> EmailSender:
    if not settings.email_api_url:
        return LoggingEmailSender()
    return HttpEmailSender(
        settings.email_api_url,
        api_key=settings.email_api_key,
        sender=settings.email_from,
        timeout=settings.email_timeout_seconds,
    )
