"""Persistence backends for reconciled records."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .base import InsolationStore
from .memory import InMemoryInsolationStore
from .supabase_store import SupabaseInsolationStore

if TYPE_CHECKING:
    from ..config import Settings


def create_store(settings: Settings, logger: logging.Logger) -> InsolationStore:
    """Build the store selected by STORAGE_BACKEND."""
    if settings.storage_backend == "memory":
        return InMemoryInsolationStore()
    return SupabaseInsolationStore(settings=settings, logger=logger)


__all__ = [
    "InMemoryInsolationStore",
    "InsolationStore",
    "SupabaseInsolationStore",
    "create_store",
]
