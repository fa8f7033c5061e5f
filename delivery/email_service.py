"""
Email Delivery Handler: validates, filters and sends queued emails.

Single send:
  1. recipient and subject must be present
  2. sending must be enabled in configuration
  3. recipient domain must pass the allow-list (if any) and the block-list
  4. provider.send() inside a fixed retry loop (transient errors only)

Bulk send splits the input into fixed-size batches, sends each batch
concurrently, and sleeps a fixed delay between batches to throttle the
relay. Every item gets its own JobResult; one failure never aborts the rest.

Nothing here raises to the caller: every outcome is a JobResult or BatchResult.
"""
from __future__ import annotations

import asyncio
import math
import structlog
from typing import Any, Awaitable, Callable, Optional

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_fixed

from config.settings import EmailGeneralConfig
from delivery.providers import EmailProvider, is_transient_error
from job_queue.results import BatchResult, JobResult
from models.schemas import EmailRequest, email_domain

logger = structlog.get_logger()

SleepFn = Callable[[float], Awaitable[Any]]


class EmailDeliveryHandler:
    """
    Sends EmailRequests through an EmailProvider with the configured policy.

    Retry is fixed: max_retry_attempts total attempts with a
    fixed retry_delay_milliseconds pause between them. No backoff.
    """

    def __init__(
        self,
        provider: EmailProvider,
        settings: Optional[EmailGeneralConfig] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.provider = provider
        self.settings = settings or EmailGeneralConfig()
        self._sleep = sleep

    # ── Dispatcher entry point ────────────────────────────────

    async def handle(self, request: EmailRequest) -> JobResult:
        logger.info("processing_email", to=request.to, metadata=request.metadata)
        return await self.send(request)

    # ── Single send ───────────────────────────────────────────

    async def send(self, request: EmailRequest) -> JobResult:
        if not request.to or not request.to.strip():
            return JobResult.failure("Email recipient is required")

        if not request.subject or not request.subject.strip():
            return JobResult.failure("Email subject is required")

        if not self.settings.enable_email_sending:
            logger.warning("email_sending_disabled", to=request.to)
            return JobResult.failure("Email sending is disabled")

        if not self.is_email_allowed(request.to):
            logger.warning("email_recipient_blocked", to=request.to, domain=request.recipient_domain)
            return JobResult.failure(f"Email sending not allowed for: {request.to}")

        request = self._filter_copies(request)

        if self.settings.log_email_content:
            logger.debug("email_content",
                         to=request.to,
                         subject=request.subject,
                         body_length=len(request.body))

        try:
            message_id, attempts = await self._send_with_retry(request)
        except Exception as e:
            logger.error("email_send_failed",
                         to=request.to,
                         transient=is_transient_error(e),
                         error=str(e))
            return JobResult.failure(f"Failed to send email to {request.to}: {e}", e)

        logger.info("email_sent", to=request.to, message_id=message_id, attempts=attempts)
        return JobResult.success(f"Email sent successfully to {request.to}")

    async def _send_with_retry(self, request: EmailRequest) -> tuple[str, int]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.settings.max_retry_attempts)),
            wait=wait_fixed(max(0, self.settings.retry_delay_milliseconds) / 1000),
            retry=retry_if_exception(is_transient_error),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        attempts = 0
        async for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                message_id = await self.provider.send(request)
        return message_id, attempts

    @staticmethod
    def _log_retry(retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning("email_send_retry",
                       attempt=retry_state.attempt_number,
                       error=str(exc))

    # ── Bulk send ─────────────────────────────────────────────

    async def send_bulk(self, requests: list[EmailRequest]) -> BatchResult:
        batch_result = BatchResult()
        if not requests:
            logger.warning("bulk_email_empty")
            return batch_result

        size = max(1, self.settings.bulk_email_batch_size)
        delay_s = max(0, self.settings.bulk_email_delay_between_batches) / 1000
        total_batches = math.ceil(len(requests) / size)

        logger.info("bulk_email_started", count=len(requests), batch_size=size)

        for start in range(0, len(requests), size):
            chunk = requests[start:start + size]
            batch_result.batches += 1
            logger.info("bulk_email_batch",
                        batch=batch_result.batches,
                        total_batches=total_batches,
                        size=len(chunk))

            outcomes = await asyncio.gather(
                *(self.send(r) for r in chunk), return_exceptions=True
            )
            for request, outcome in zip(chunk, outcomes):
                if isinstance(outcome, Exception):
                    outcome = JobResult.failure(f"Failed to send email to {request.to}", outcome)
                batch_result.results.append(outcome)

            if start + size < len(requests) and delay_s > 0:
                await self._sleep(delay_s)

        logger.info("bulk_email_completed",
                    outcome=batch_result.outcome.value,
                    succeeded=batch_result.succeeded,
                    failed=batch_result.failed)
        return batch_result

    # ── Domain filter ─────────────────────────────────────────

    def is_email_allowed(self, email: str) -> bool:
        domain = email_domain(email)
        if not domain:
            return False

        allowed = {d.lower() for d in self.settings.allowed_domains}
        if allowed and domain not in allowed:
            return False

        blocked = {d.lower() for d in self.settings.blocked_domains}
        return domain not in blocked

    def _filter_copies(self, request: EmailRequest) -> EmailRequest:
        cc = [a for a in request.cc if a and a.strip() and self.is_email_allowed(a)]
        bcc = [a for a in request.bcc if a and a.strip() and self.is_email_allowed(a)]
        if cc == request.cc and bcc == request.bcc:
            return request
        return request.model_copy(update={"cc": cc, "bcc": bcc})
