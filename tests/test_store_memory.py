"""Tests for the in-memory click event and usage stores."""
from datetime import datetime, timedelta, timezone
import pytest

from database.store_memory import InMemoryClickEventStore, InMemoryUsageStore
from models.schemas import ClickEvent


class TestInMemoryClickEventStore:
    @pytest.mark.asyncio
    async def test_create_and_count(self, click_store):
        await click_store.create(ClickEvent(short_url_id=1))
        await click_store.create(ClickEvent(short_url_id=1))
        await click_store.create(ClickEvent(short_url_id=2))

        assert await click_store.get_total_clicks(1) == 2
        assert await click_store.get_total_clicks(2) == 1
        assert await click_store.get_total_clicks(3) == 0

    @pytest.mark.asyncio
    async def test_recent_clicks_newest_first(self, click_store):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for minutes in (5, 1, 3):
            await click_store.create(ClickEvent(short_url_id=1, clicked_at=base + timedelta(minutes=minutes)))

        recent = await click_store.get_recent_clicks(1, count=2)
        assert [e.clicked_at.minute for e in recent] == [5, 3]

    @pytest.mark.asyncio
    async def test_recent_clicks_rejects_non_positive_count(self, click_store):
        with pytest.raises(ValueError):
            await click_store.get_recent_clicks(1, count=0)

    @pytest.mark.asyncio
    async def test_recent_clicks_unknown_url(self, click_store):
        assert await click_store.get_recent_clicks(404) == []


class TestInMemoryUsageStore:
    @pytest.mark.asyncio
    async def test_auto_register_on_first_click(self):
        store = InMemoryUsageStore()
        assert await store.increment_click_count(10)
        assert await store.increment_click_count(10)
        assert await store.get_click_count(10) == 2

    @pytest.mark.asyncio
    async def test_unknown_url_without_auto_register(self):
        store = InMemoryUsageStore(auto_register=False)
        assert not await store.increment_click_count(10)
        assert await store.get_click_count(10) == 0

    @pytest.mark.asyncio
    async def test_owner_usage_aggregates_urls(self):
        store = InMemoryUsageStore(auto_register=False)
        await store.register_short_url(1, owner_id="user-1")
        await store.register_short_url(2, owner_id="user-1")
        await store.register_short_url(3, owner_id="user-2")

        for url_id in (1, 2, 2, 3):
            await store.increment_click_count(url_id)

        assert await store.get_owner_usage("user-1") == 3
        assert await store.get_owner_usage("user-2") == 1
        assert await store.get_owner_usage("nobody") == 0
