"""
Core data models for the Shortly background job subsystem.
These are the payload and enrichment types shared across all modules.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


UNKNOWN = "Unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def email_domain(address: str) -> str:
    """Lower-cased domain part of an address, or "" if it has none."""
    if not address or "@" not in address:
        return ""
    return address.rsplit("@", 1)[-1].strip().lower()


# ──────────────────────────────────────────────────────────────
#  Email: payload of an email job
# ──────────────────────────────────────────────────────────────

class EmailRequest(BaseModel):
    """A single outbound email."""
    to: str
    subject: str
    body: str = ""
    is_html: bool = False
    cc: list[str] = []
    bcc: list[str] = []
    metadata: dict[str, Any] = {}             # logging context only, never sent

    @property
    def recipient_domain(self) -> str:
        return email_domain(self.to)


# ──────────────────────────────────────────────────────────────
#  Click tracking: payload of a click job and its enrichment
# ──────────────────────────────────────────────────────────────

class ClickTrackingData(BaseModel):
    """Raw request context captured when a short link is followed."""
    ip_address: str = ""
    session_id: str = ""
    user_agent: str = UNKNOWN
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None


class ClickJob(BaseModel):
    """Payload of a click job: which short URL was followed, and how."""
    redirect_id: int
    tracking_data: ClickTrackingData
    enqueued_at: datetime = Field(default_factory=_utcnow)


class GeoLocationInfo(BaseModel):
    country: str = UNKNOWN
    city: str = UNKNOWN
    country_code: str = UNKNOWN
    region: str = UNKNOWN
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def unknown(cls) -> GeoLocationInfo:
        return cls()

    @property
    def is_unknown(self) -> bool:
        return self.country == UNKNOWN and self.city == UNKNOWN


class UserAgentInfo(BaseModel):
    browser: str = UNKNOWN
    operating_system: str = UNKNOWN
    device: str = UNKNOWN
    device_type: str = UNKNOWN
    browser_version: str = UNKNOWN
    os_version: str = UNKNOWN


class TrafficSourceInfo(BaseModel):
    traffic_source: str = "Direct"
    referrer_domain: Optional[str] = None


class ClickEvent(BaseModel):
    """A persisted, enriched click on a short URL."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    short_url_id: int
    clicked_at: datetime = Field(default_factory=_utcnow)

    # raw request context
    ip_address: str = ""
    session_id: str = ""
    user_agent: str = ""
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None

    # enrichment
    country: str = UNKNOWN
    city: str = UNKNOWN
    browser: str = UNKNOWN
    operating_system: str = UNKNOWN
    device: str = UNKNOWN
    device_type: str = UNKNOWN
    referrer_domain: Optional[str] = None
    traffic_source: str = "Direct"
