"""User-Agent string → browser / OS / device classification."""
from __future__ import annotations

import re

from models.schemas import UNKNOWN, UserAgentInfo


_WINDOWS_VERSIONS = (
    ("windows nt 10.0", "10"),
    ("windows nt 6.3", "8.1"),
    ("windows nt 6.2", "8"),
    ("windows nt 6.1", "7"),
)

_VENDOR_DEVICES = (
    ("samsung", "Samsung Device"),
    ("huawei", "Huawei Device"),
    ("xiaomi", "Xiaomi Device"),
    ("oneplus", "OnePlus Device"),
)


class UserAgentParser:
    """
    Token-based parser. Matching is case-insensitive and ordered by
    specificity: Edge UAs also contain "chrome/", Chrome UAs also contain
    "safari/", so the more specific token is tested first.
    """

    def parse(self, user_agent: str) -> UserAgentInfo:
        if not user_agent or user_agent == UNKNOWN:
            return UserAgentInfo()

        ua = user_agent.lower()
        browser, browser_version = self._browser(ua)
        os_name, os_version = self._operating_system(ua)

        return UserAgentInfo(
            browser=browser,
            operating_system=os_name,
            device=self._device(ua),
            device_type=self._device_type(ua),
            browser_version=browser_version,
            os_version=os_version,
        )

    def _browser(self, ua: str) -> tuple[str, str]:
        if "edg/" in ua:
            return "Microsoft Edge", _version(ua, "edg/")
        if "opr/" in ua or "opera/" in ua:
            return "Opera", _version(ua, "opr/" if "opr/" in ua else "opera/")
        if "chrome/" in ua:
            return "Chrome", _version(ua, "chrome/")
        if "firefox/" in ua:
            return "Firefox", _version(ua, "firefox/")
        if "safari/" in ua:
            return "Safari", _version(ua, "version/")
        return UNKNOWN, UNKNOWN

    def _operating_system(self, ua: str) -> tuple[str, str]:
        if "windows nt" in ua:
            for token, version in _WINDOWS_VERSIONS:
                if token in ua:
                    return "Windows", version
            return "Windows", UNKNOWN

        # iOS UAs say "like Mac OS X", so check them before macOS
        if "iphone os" in ua or "cpu os" in ua:
            return "iOS", _version(ua, "iphone os " if "iphone os" in ua else "cpu os ")
        if "mac os x" in ua:
            return "macOS", _version(ua, "mac os x ")
        if "android" in ua:
            return "Android", _version(ua, "android ")
        if "ios" in ua:
            return "iOS", _version(ua, "ios ")
        if "linux" in ua:
            return "Linux", UNKNOWN
        return UNKNOWN, UNKNOWN

    def _device(self, ua: str) -> str:
        if "iphone" in ua:
            return "iPhone"
        if "ipad" in ua:
            return "iPad"
        if "android" in ua:
            return "Android Phone" if "mobile" in ua else "Android Tablet"
        for token, name in _VENDOR_DEVICES:
            if token in ua:
                return name
        return "Desktop"

    def _device_type(self, ua: str) -> str:
        if "ipad" in ua or "tablet" in ua:
            return "Tablet"
        if "mobile" in ua or "iphone" in ua:
            return "Mobile"
        if "android" in ua:
            return "Tablet"
        return "Desktop"


def _version(ua: str, token: str) -> str:
    """Major version number following token, e.g. "chrome/120.0.1" → "120"."""
    match = re.search(re.escape(token) + r"([\d_.]+)", ua)
    if not match:
        return UNKNOWN
    major = match.group(1).replace("_", ".").split(".")[0]
    return major or UNKNOWN
