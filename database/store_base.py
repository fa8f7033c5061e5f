"""
Abstract analytics stores: the persistence boundary of click tracking.

Implementations:
  - InMemoryClickEventStore / InMemoryUsageStore (dict-based, single-process)

A relational implementation lives with the web application's ORM layer and
only needs to honour these interfaces.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from models.schemas import ClickEvent


class BaseClickEventStore(ABC):
    """Persists enriched click events."""

    @abstractmethod
    async def create(self, event: ClickEvent) -> ClickEvent:
        ...

    @abstractmethod
    async def get_total_clicks(self, short_url_id: int) -> int:
        ...

    @abstractmethod
    async def get_recent_clicks(self, short_url_id: int, count: int = 10) -> list[ClickEvent]:
        ...


class BaseUsageStore(ABC):
    """Aggregate click counters per short URL and per owner."""

    @abstractmethod
    async def register_short_url(self, short_url_id: int, owner_id: Optional[str] = None) -> None:
        ...

    @abstractmethod
    async def increment_click_count(self, short_url_id: int) -> bool:
        """Add one click. Returns False if the short URL is unknown."""
        ...

    @abstractmethod
    async def get_click_count(self, short_url_id: int) -> int:
        ...

    @abstractmethod
    async def get_owner_usage(self, owner_id: str) -> int:
        ...
