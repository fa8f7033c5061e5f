"""
Traffic source attribution for clicks.

UTM parameters win over the referrer; with neither, the click is Direct.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from models.schemas import TrafficSourceInfo


SEARCH_ENGINES = frozenset({
    "google.com", "bing.com", "yahoo.com", "duckduckgo.com", "baidu.com", "yandex.com",
})

SOCIAL_MEDIA_SITES = frozenset({
    "facebook.com", "twitter.com", "instagram.com", "linkedin.com", "pinterest.com",
    "reddit.com", "tiktok.com", "youtube.com", "snapchat.com", "whatsapp.com",
})

_MEDIUM_SOURCES = {
    "email": "Email",
    "social": "Social",
    "cpc": "Paid Search",
    "ppc": "Paid Search",
    "paid": "Paid Search",
    "organic": "Organic Search",
    "referral": "Referral",
    "display": "Display",
}


class TrafficSourceAnalyzer:

    def analyze(
        self,
        referrer: Optional[str],
        utm_source: Optional[str] = None,
        utm_medium: Optional[str] = None,
    ) -> TrafficSourceInfo:
        if utm_source:
            return TrafficSourceInfo(
                traffic_source=self._from_utm(utm_source, utm_medium),
                referrer_domain=self.extract_domain(referrer) or None,
            )

        if referrer:
            domain = self.extract_domain(referrer)
            return TrafficSourceInfo(
                traffic_source=self._from_referrer(domain),
                referrer_domain=domain or None,
            )

        return TrafficSourceInfo(traffic_source="Direct", referrer_domain=None)

    @staticmethod
    def extract_domain(referrer: Optional[str]) -> str:
        if not referrer:
            return ""
        try:
            host = urlparse(referrer).hostname
        except ValueError:
            return ""
        return (host or "").lower()

    @staticmethod
    def is_search_engine(domain: Optional[str]) -> bool:
        return bool(domain) and any(se in domain for se in SEARCH_ENGINES)

    @staticmethod
    def is_social_media(domain: Optional[str]) -> bool:
        return bool(domain) and any(sm in domain for sm in SOCIAL_MEDIA_SITES)

    def _from_utm(self, utm_source: str, utm_medium: Optional[str]) -> str:
        medium = (utm_medium or "").lower()
        if medium in _MEDIUM_SOURCES:
            return _MEDIUM_SOURCES[medium]

        source = utm_source.lower()
        if any(site.split(".")[0] in source for site in SOCIAL_MEDIA_SITES):
            return "Social"
        if any(site.split(".")[0] in source for site in SEARCH_ENGINES):
            return "Search"
        return "Campaign"

    def _from_referrer(self, domain: str) -> str:
        if not domain:
            return "Direct"
        if self.is_search_engine(domain):
            return "Search"
        if self.is_social_media(domain):
            return "Social"
        return "Referral"
