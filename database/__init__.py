"""
Database layer: analytics persistence for click tracking.

Backends:
  - In-memory (dict-based, for development/testing)

Quick start:
  from database import InMemoryClickEventStore, InMemoryUsageStore
  clicks = InMemoryClickEventStore()
  await clicks.create(event)
"""
from database.store_base import BaseClickEventStore, BaseUsageStore
from database.store_memory import InMemoryClickEventStore, InMemoryUsageStore

__all__ = [
    "BaseClickEventStore",
    "BaseUsageStore",
    "InMemoryClickEventStore",
    "InMemoryUsageStore",
]
