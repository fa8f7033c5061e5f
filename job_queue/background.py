"""
Background Jobs: producer API and lifecycle for the two job pipelines.

  enqueue_email() ──▶ JobQueue[EmailRequest] ──▶ dispatcher ──▶ EmailDeliveryHandler
  enqueue_click() ──▶ JobQueue[ClickJob]     ──▶ dispatcher ──▶ ClickTrackingHandler

The pipelines share nothing: a stalled SMTP relay never delays click
ingestion, and vice versa. Enqueue calls are fire-and-forget; outcomes are
visible only in the consumer-side logs and dispatcher stats.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Any, Optional

from config.settings import Settings, get_settings
from database.store_memory import InMemoryClickEventStore, InMemoryUsageStore
from delivery.email_service import EmailDeliveryHandler
from delivery.providers import create_email_provider
from job_queue.dispatcher import BackgroundDispatcher
from job_queue.job_queue import JobQueue
from models.schemas import ClickJob, ClickTrackingData, EmailRequest
from tracking.click_handler import ClickTrackingHandler
from tracking.geolocation import IpApiGeoLocationService

logger = structlog.get_logger()


class BackgroundJobs:
    """
    Owns the email and click queues and their dispatchers.

    Usage:
        jobs = BackgroundJobs(email_handler, click_handler)
        await jobs.start()
        jobs.enqueue_email(EmailRequest(to=..., subject=..., body=...))
        jobs.enqueue_click(42, tracking_data)
        await jobs.stop()
    """

    def __init__(self, email_handler: EmailDeliveryHandler, click_handler: ClickTrackingHandler):
        self.email_handler = email_handler
        self.click_handler = click_handler
        self.email_queue: JobQueue[EmailRequest] = JobQueue("email")
        self.click_queue: JobQueue[ClickJob] = JobQueue("click_tracking")
        self.email_dispatcher = BackgroundDispatcher("email", self.email_queue, email_handler.handle)
        self.click_dispatcher = BackgroundDispatcher("click_tracking", self.click_queue, click_handler.handle)

    # ── Producer API ──────────────────────────────────────────

    def enqueue_email(self, request: EmailRequest) -> None:
        self.email_queue.enqueue(request)
        logger.debug("email_enqueued", to=request.to, depth=self.email_queue.depth)

    def enqueue_click(self, redirect_id: int, tracking_data: ClickTrackingData) -> None:
        if tracking_data is None:
            raise ValueError("tracking_data is required")
        self.click_queue.enqueue(ClickJob(redirect_id=redirect_id, tracking_data=tracking_data))
        logger.debug("click_enqueued", redirect_id=redirect_id, depth=self.click_queue.depth)

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        await self.email_dispatcher.start()
        await self.click_dispatcher.start()
        logger.info("background_jobs_started")

    async def stop(self) -> None:
        await asyncio.gather(self.email_dispatcher.stop(), self.click_dispatcher.stop())
        logger.info("background_jobs_stopped")

    def stats(self) -> dict[str, Any]:
        return {
            "email": self.email_dispatcher.stats,
            "click_tracking": self.click_dispatcher.stats,
        }


# ──────────────────────────────────────────────────────────────
#  Factory
# ──────────────────────────────────────────────────────────────

_instance: Optional[BackgroundJobs] = None


def create_background_jobs(settings: Settings = None) -> BackgroundJobs:
    """Factory: wire the default providers and stores from settings."""
    global _instance
    if _instance:
        return _instance

    settings = settings or get_settings()

    email_handler = EmailDeliveryHandler(
        provider=create_email_provider(settings.email),
        settings=settings.email.general,
    )
    click_handler = ClickTrackingHandler(
        click_store=InMemoryClickEventStore(),
        usage_store=InMemoryUsageStore(),
        geolocation=IpApiGeoLocationService(settings.geolocation),
    )

    _instance = BackgroundJobs(email_handler, click_handler)
    return _instance


def get_background_jobs() -> BackgroundJobs:
    """Return the singleton instance."""
    global _instance
    if _instance is None:
        _instance = create_background_jobs()
    return _instance


def reset_background_jobs() -> None:
    global _instance
    _instance = None
