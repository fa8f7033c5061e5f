"""
Click Tracking Handler: enriches a click and records it.

Flow per job:
  1. parse the User-Agent into browser / OS / device
  2. resolve the caller IP to a location (never fails, may be "Unknown")
  3. attribute the traffic source from UTM parameters or referrer
  4. persist the ClickEvent
  5. bump the short URL's and owner's click counters

Click data is best-effort telemetry: a persistence failure is logged and the
job is dropped. There is no retry loop here, unlike email delivery.
"""
from __future__ import annotations

import structlog

from database.store_base import BaseClickEventStore, BaseUsageStore
from job_queue.results import JobResult
from models.schemas import ClickEvent, ClickJob
from tracking.geolocation import GeoLocationService
from tracking.traffic_source import TrafficSourceAnalyzer
from tracking.user_agent import UserAgentParser

logger = structlog.get_logger()


class ClickTrackingHandler:

    def __init__(
        self,
        click_store: BaseClickEventStore,
        usage_store: BaseUsageStore,
        geolocation: GeoLocationService,
        ua_parser: UserAgentParser = None,
        traffic_analyzer: TrafficSourceAnalyzer = None,
    ):
        self.click_store = click_store
        self.usage_store = usage_store
        self.geolocation = geolocation
        self.ua_parser = ua_parser or UserAgentParser()
        self.traffic_analyzer = traffic_analyzer or TrafficSourceAnalyzer()

    async def handle(self, job: ClickJob) -> JobResult:
        data = job.tracking_data
        logger.info("processing_click", redirect_id=job.redirect_id)

        event = await self.build_event(job)

        try:
            saved = await self.click_store.create(event)
            counted = await self.usage_store.increment_click_count(job.redirect_id)
        except Exception as e:
            logger.error("click_tracking_failed",
                         redirect_id=job.redirect_id,
                         session_id=data.session_id,
                         error=str(e),
                         exc_info=True)
            return JobResult.failure(f"Failed to track click for redirect {job.redirect_id}", e)

        if not counted:
            logger.warning("click_count_not_incremented", redirect_id=job.redirect_id)

        logger.info("click_tracked",
                    redirect_id=job.redirect_id,
                    click_event_id=saved.id,
                    country=saved.country,
                    device_type=saved.device_type,
                    traffic_source=saved.traffic_source)
        return JobResult.success(f"Click tracked for redirect {job.redirect_id}")

    async def build_event(self, job: ClickJob) -> ClickEvent:
        data = job.tracking_data
        ua = self.ua_parser.parse(data.user_agent)
        geo = await self.geolocation.lookup(data.ip_address)
        traffic = self.traffic_analyzer.analyze(data.referrer, data.utm_source, data.utm_medium)

        return ClickEvent(
            short_url_id=job.redirect_id,
            clicked_at=job.enqueued_at,
            ip_address=data.ip_address,
            session_id=data.session_id,
            user_agent=data.user_agent,
            referrer=data.referrer,
            utm_source=data.utm_source,
            utm_medium=data.utm_medium,
            utm_campaign=data.utm_campaign,
            utm_term=data.utm_term,
            utm_content=data.utm_content,
            country=geo.country,
            city=geo.city,
            browser=ua.browser,
            operating_system=ua.operating_system,
            device=ua.device,
            device_type=ua.device_type,
            referrer_domain=traffic.referrer_domain,
            traffic_source=traffic.traffic_source,
        )
