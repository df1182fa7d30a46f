"""
Transactional email: thank-you messages and admin template tests.

Templates are stored as markdown with ``{{variable}}`` placeholders and
rendered to a small HTML subset (h1-h3, bold, italic, paragraphs).
Delivery goes through the Resend HTTP API.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from markupsafe import escape
from sqlalchemy.orm import Session

from enxoval_api.models import Order, ThankYouTemplate
from enxoval_api.services.payments.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    email_breaker,
)
from shared.config.constants import (
    DEFAULT_TEMPLATE_BODY,
    DEFAULT_TEMPLATE_SUBJECT,
    SINGLETON_ID,
)
from shared.config.logging import get_logger, mask_email
from shared.config.settings import settings
from shared.utils.validators import format_brl

logger = get_logger(__name__)

_VARIABLE = re.compile(r"\{\{\s*(\w+)\s*\}\}")
_HEADING = re.compile(r"^(#{1,3})\s+(.+)$")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"\*(.+?)\*")


class EmailNotConfiguredError(Exception):
    """No provider API key configured."""


class EmailDeliveryError(Exception):
    """Provider refused the message or could not be reached."""


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


def substitute_variables(text: str, variables: dict[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders. Unknown placeholders are left as-is."""

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        return str(variables[key])

    return _VARIABLE.sub(_replace, text)


def _render_inline(text: str) -> str:
    text = _BOLD.sub(r"<strong>\1</strong>", text)
    return _ITALIC.sub(r"<em>\1</em>", text)


def render_markdown(markdown: str, variables: Optional[dict[str, Any]] = None) -> str:
    """
    Render template markdown to HTML.

    The template text and variable values are HTML-escaped. Variables are
    substituted after markdown rendering, so their values are never
    interpreted as markup.
    """
    source = str(escape(markdown.replace("\r\n", "\n")))

    blocks = []
    for block in re.split(r"\n\s*\n", source):
        lines = [line.strip() for line in block.strip().split("\n") if line.strip()]
        if not lines:
            continue
        paragraph: list[str] = []
        for line in lines:
            heading = _HEADING.match(line)
            if heading:
                if paragraph:
                    blocks.append(f"<p>{'<br>'.join(paragraph)}</p>")
                    paragraph = []
                level = len(heading.group(1))
                blocks.append(f"<h{level}>{_render_inline(heading.group(2))}</h{level}>")
            else:
                paragraph.append(_render_inline(line))
        if paragraph:
            blocks.append(f"<p>{'<br>'.join(paragraph)}</p>")

    rendered = "\n".join(blocks)
    if variables:
        escaped = {k: str(escape(v)) for k, v in variables.items()}
        rendered = substitute_variables(rendered, escaped)
    return rendered


def get_template(db: Session) -> tuple[str, str]:
    """(subject, body_markdown) of the thank-you template, defaults if unset."""
    row = db.get(ThankYouTemplate, SINGLETON_ID)
    if row is None:
        return DEFAULT_TEMPLATE_SUBJECT, DEFAULT_TEMPLATE_BODY
    return row.subject, row.body_markdown


def thankyou_variables(order: Order) -> dict[str, str]:
    return {
        "name": order.purchaser_name,
        "order_id": str(order.id),
        "total_brl": format_brl(order.amount_cents),
    }


def build_thankyou_message(db: Session, order: Order) -> EmailMessage:
    """Render the thank-you email for a paid order while the session is open."""
    subject, body = get_template(db)
    variables = thankyou_variables(order)
    return EmailMessage(
        to=order.purchaser_email,
        subject=substitute_variables(subject, variables),
        html=render_markdown(body, variables),
    )


class EmailSender:
    """Resend API client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = 10.0,
        breaker: CircuitBreaker = email_breaker,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.api_url = api_url or settings.resend_api_url
        self.sender = sender or settings.email_from
        self.timeout = timeout
        self.breaker = breaker
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, message: EmailMessage) -> dict[str, Any]:
        """
        Deliver one message. Returns the provider response (contains ``id``).

        Raises:
            EmailNotConfiguredError, EmailDeliveryError
        """
        if not self.api_key:
            raise EmailNotConfiguredError("RESEND_API_KEY não configurada")

        payload = {
            "from": self.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        try:
            async with self.breaker.call():
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.post(
                        self.api_url,
                        json=payload,
                        headers={"Authorization": f"Bearer {self.api_key}"},
                    )
                if response.status_code >= 500:
                    raise EmailDeliveryError(f"HTTP {response.status_code}")
        except CircuitBreakerError as e:
            raise EmailDeliveryError(str(e)) from e
        except httpx.HTTPError as e:
            raise EmailDeliveryError(str(e)) from e

        if not response.is_success:
            raise EmailDeliveryError(f"HTTP {response.status_code}: {response.text}")

        logger.info("Email sent", to=mask_email(message.to), subject=message.subject)
        return response.json()


async def deliver_quietly(message: EmailMessage, sender: Optional[EmailSender] = None) -> bool:
    """
    Fire-and-forget delivery for background tasks.

    Never raises; failures are logged. Returns True if the provider accepted it.
    """
    sender = sender or EmailSender()
    try:
        await sender.send(message)
        return True
    except EmailNotConfiguredError:
        logger.warning("Thank-you email skipped: provider not configured", to=mask_email(message.to))
    except EmailDeliveryError as e:
        logger.error("Thank-you email failed", to=mask_email(message.to), error=str(e))
    return False
