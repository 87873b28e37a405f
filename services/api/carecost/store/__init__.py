"""Catalog store implementations."""

from __future__ import annotations

from carecost.store.base import CatalogStore
from carecost.store.memory import InMemoryCatalogStore

__all__ = ["CatalogStore", "InMemoryCatalogStore"]
