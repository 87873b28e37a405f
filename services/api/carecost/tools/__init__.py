"""Typed re-export surface for tool modules."""

from __future__ import annotations

from . import es_client, http

__all__ = ["es_client", "http"]
