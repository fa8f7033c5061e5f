"""
Click tracking: enrichment (user agent, geolocation, traffic source) and
persistence of clicks on short URLs.
"""
from tracking.click_handler import ClickTrackingHandler
from tracking.geolocation import GeoLocationService, IpApiGeoLocationService
from tracking.traffic_source import TrafficSourceAnalyzer
from tracking.user_agent import UserAgentParser

__all__ = [
    "ClickTrackingHandler",
    "GeoLocationService",
    "IpApiGeoLocationService",
    "TrafficSourceAnalyzer",
    "UserAgentParser",
]
