"""Typed re-export surface for the search engine modules."""

from __future__ import annotations

from . import (
    distance,
    errors,
    filters,
    geocoding,
    models,
    pagination,
    ranking,
    stats,
)

__all__ = [
    "distance",
    "errors",
    "filters",
    "geocoding",
    "models",
    "pagination",
    "ranking",
    "stats",
]
