"""
In-memory analytics stores for development and testing.

Features:
  - Zero dependencies (no database)
  - Same interface as the ORM-backed stores
  - Safe under a single event loop
  - All data lost on process restart
"""
from __future__ import annotations

import structlog
from collections import defaultdict
from typing import Optional

from database.store_base import BaseClickEventStore, BaseUsageStore
from models.schemas import ClickEvent

logger = structlog.get_logger()


class InMemoryClickEventStore(BaseClickEventStore):

    def __init__(self):
        self._events: dict[int, list[ClickEvent]] = defaultdict(list)   # short_url_id → events
        logger.info("inmemory_click_store_initialized")

    async def create(self, event: ClickEvent) -> ClickEvent:
        self._events[event.short_url_id].append(event)
        return event

    async def get_total_clicks(self, short_url_id: int) -> int:
        return len(self._events.get(short_url_id, []))

    async def get_recent_clicks(self, short_url_id: int, count: int = 10) -> list[ClickEvent]:
        if count < 1:
            raise ValueError("count must be at least 1")
        events = self._events.get(short_url_id, [])
        return sorted(events, key=lambda e: e.clicked_at, reverse=True)[:count]


class InMemoryUsageStore(BaseUsageStore):
    """
    Counts clicks per short URL and per owner.

    With auto_register (the default) an unseen short URL is created on its
    first click with no owner; otherwise increments for unknown URLs fail.
    """

    def __init__(self, auto_register: bool = True):
        self.auto_register = auto_register
        self._clicks: dict[int, int] = {}               # short_url_id → total clicks
        self._owners: dict[int, Optional[str]] = {}     # short_url_id → owner id
        self._owner_usage: dict[str, int] = defaultdict(int)

    async def register_short_url(self, short_url_id: int, owner_id: Optional[str] = None) -> None:
        self._clicks.setdefault(short_url_id, 0)
        self._owners[short_url_id] = owner_id

    async def increment_click_count(self, short_url_id: int) -> bool:
        if short_url_id not in self._clicks:
            if not self.auto_register:
                return False
            await self.register_short_url(short_url_id)

        self._clicks[short_url_id] += 1
        owner = self._owners.get(short_url_id)
        if owner:
            self._owner_usage[owner] += 1
        return True

    async def get_click_count(self, short_url_id: int) -> int:
        return self._clicks.get(short_url_id, 0)

    async def get_owner_usage(self, owner_id: str) -> int:
        return self._owner_usage.get(owner_id, 0)
