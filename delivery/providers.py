"""
Email Providers: the transport behind the email delivery handler.

Provides:
- EmailProviderError: provider failure carrying a retryable flag and SMTP code
- is_transient_error: classifies any exception as retryable or permanent
- EmailProvider: abstract transport contract
- SmtpEmailProvider: aiosmtplib transport configured from SmtpConfig
- create_email_provider: picks the transport named in EmailConfig

Providers raise on failure. Turning failures into JobResults (and deciding
whether to retry) is the delivery handler's job.
"""
from __future__ import annotations

import abc
import asyncio
import uuid
import structlog
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

import aiosmtplib

from config.settings import EmailConfig, SmtpConfig
from models.schemas import EmailRequest

logger = structlog.get_logger()


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class EmailProviderError(Exception):
    """Base exception for all email transport failures."""

    def __init__(self, message: str, retryable: bool = False, smtp_code: Optional[int] = None):
        self.retryable = retryable
        self.smtp_code = smtp_code
        super().__init__(message)


_TEMPORARY_PATTERNS = (
    "421", "450", "451", "452",
    "timeout", "timed out",
    "connection refused", "connection reset",
    "temporarily unavailable", "try again", "throttl",
)


def is_transient_error(exc: BaseException) -> bool:
    """True if retrying the same send may succeed."""
    if isinstance(exc, EmailProviderError):
        if exc.retryable:
            return True
        if exc.smtp_code is not None:
            return 400 <= exc.smtp_code < 500

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True

    code = getattr(exc, "code", None)
    if isinstance(exc, aiosmtplib.SMTPException) and isinstance(code, int):
        return 400 <= code < 500

    message = str(exc).lower()
    return any(p in message for p in _TEMPORARY_PATTERNS)


# ══════════════════════════════════════════════════════════════
#  PROVIDER CONTRACT
# ══════════════════════════════════════════════════════════════

class EmailProvider(abc.ABC):
    """Delivers a single message. Raises on failure."""

    name: str = "provider"

    @abc.abstractmethod
    async def send(self, request: EmailRequest) -> str:
        """Send one email and return the provider's message id."""
        ...

    async def send_bulk(self, requests: list[EmailRequest]) -> list[str | BaseException]:
        """Send several emails concurrently; each slot holds a message id or the error."""
        return await asyncio.gather(
            *(self.send(r) for r in requests), return_exceptions=True
        )

    async def close(self) -> None:
        pass


# ══════════════════════════════════════════════════════════════
#  SMTP
# ══════════════════════════════════════════════════════════════

class SmtpEmailProvider(EmailProvider):
    """
    SMTP transport using aiosmtplib.

    Opens one connection per message.
    """

    name = "smtp"

    def __init__(self, config: SmtpConfig):
        self.config = config
        self._domain = config.from_email.rsplit("@", 1)[-1] if "@" in config.from_email else "localhost"

    def build_message(self, request: EmailRequest) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.config.from_name, self.config.from_email))
        msg["To"] = request.to
        msg["Subject"] = request.subject
        msg["Message-ID"] = f"<{uuid.uuid4().hex}@{self._domain}>"
        if request.cc:
            msg["Cc"] = ", ".join(request.cc)

        if request.is_html:
            msg.set_content("This message requires an HTML capable mail client.")
            msg.add_alternative(request.body, subtype="html")
        else:
            msg.set_content(request.body)
        return msg

    async def send(self, request: EmailRequest) -> str:
        msg = self.build_message(request)
        recipients = [request.to, *request.cc, *request.bcc]
        cfg = self.config

        try:
            await aiosmtplib.send(
                msg,
                recipients=recipients,
                hostname=cfg.host,
                port=cfg.port,
                username=cfg.username or None,
                password=cfg.password or None,
                use_tls=cfg.use_tls,
                start_tls=cfg.start_tls if not cfg.use_tls else False,
                timeout=cfg.timeout,
            )
        except aiosmtplib.SMTPException as e:
            code = getattr(e, "code", None)
            raise EmailProviderError(
                f"SMTP sending failed: {e}",
                retryable=is_transient_error(e),
                smtp_code=code if isinstance(code, int) else None,
            ) from e

        message_id = msg["Message-ID"]
        logger.debug("smtp_message_accepted", to=request.to, message_id=message_id)
        return message_id


# ══════════════════════════════════════════════════════════════
#  Factory
# ══════════════════════════════════════════════════════════════

_PROVIDERS = {
    "smtp": lambda config: SmtpEmailProvider(config.smtp),
}


def create_email_provider(config: EmailConfig) -> EmailProvider:
    """Build the transport named by config.provider."""
    name = (config.provider or "").strip().lower()
    factory = _PROVIDERS.get(name)
    if factory is None:
        raise ValueError(f"Unknown email provider: '{config.provider}'")
    return factory(config)
