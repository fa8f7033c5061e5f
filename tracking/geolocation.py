"""
Geolocation lookup for click IPs.

The contract is "never fails": private, loopback and malformed addresses,
HTTP errors and bad payloads all yield GeoLocationInfo.unknown().
"""
from __future__ import annotations

import abc
import ipaddress
import structlog
from typing import Any, Optional

import httpx

from config.settings import GeoLocationConfig, get_settings
from models.schemas import UNKNOWN, GeoLocationInfo

logger = structlog.get_logger()


def is_private_or_local_ip(ip: str) -> bool:
    """True for empty, unparsable, private, loopback, link-local or reserved addresses."""
    if not ip or ip.strip().lower() == "localhost":
        return True
    try:
        addr = ipaddress.ip_address(ip.strip())
    except ValueError:
        return True
    return (
        addr.is_private
        or addr.is_loopback
        or addr.is_link_local
        or addr.is_reserved
        or addr.is_multicast
        or addr.is_unspecified
    )


class GeoLocationService(abc.ABC):
    """Resolve an IP address to a location."""

    @abc.abstractmethod
    async def lookup(self, ip_address: str) -> GeoLocationInfo:
        ...

    async def close(self) -> None:
        pass


class IpApiGeoLocationService(GeoLocationService):
    """
    ipapi.co JSON lookup (GET {base_url}/{ip}/json/).

    Public IPs only; everything else short-circuits to "Unknown" without an
    HTTP call.
    """

    def __init__(self, config: GeoLocationConfig = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or get_settings().geolocation
        self.client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers={"Accept": "application/json"},
            )
        return self.client

    async def lookup(self, ip_address: str) -> GeoLocationInfo:
        if is_private_or_local_ip(ip_address):
            return GeoLocationInfo.unknown()

        try:
            client = await self._get_client()
            resp = await client.get(f"/{ip_address.strip()}/json/")
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("geolocation_lookup_failed", ip=ip_address, error=str(e))
            return GeoLocationInfo.unknown()

        if not isinstance(data, dict) or data.get("error"):
            logger.warning("geolocation_lookup_rejected", ip=ip_address,
                           reason=data.get("reason") if isinstance(data, dict) else None)
            return GeoLocationInfo.unknown()

        return self._to_info(data)

    @staticmethod
    def _to_info(data: dict[str, Any]) -> GeoLocationInfo:
        def text(key: str) -> str:
            value = data.get(key)
            if value is None or value == "" or isinstance(value, (dict, list)):
                return UNKNOWN
            return str(value)

        def coord(key: str) -> Optional[float]:
            try:
                value = data.get(key)
                return float(value) if value is not None else None
            except (TypeError, ValueError):
                return None

        return GeoLocationInfo(
            country=text("country_name"),
            city=text("city"),
            country_code=text("country_code"),
            region=text("region"),
            latitude=coord("latitude"),
            longitude=coord("longitude"),
        )

    async def close(self) -> None:
        if self.client is not None and not self.client.is_closed:
            await self.client.aclose()
