"""Compile raw query parameters into declarative candidate filters.

A filter spec is what gets handed to the catalog store. Stores may push it
down into their own query language, but `matches()` is the reference
semantics and every store re-checks candidates against it.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from carecost.search.models import (
    OfferingRecord,
    ProviderQuery,
    ProviderRecord,
    SearchQuery,
)

ACTIVE_SUBSCRIPTION = "ACTIVE"


def normalize_text(value: Optional[str]) -> Optional[str]:
    """Trim and lower-case `value`; blank input means no text filter."""
    if value is None:
        return None
    cleaned = value.strip().lower()
    return cleaned or None


def _normalize_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def contains_text(needle: str, fields: Iterable[Optional[str]]) -> bool:
    return any(needle in field.lower() for field in fields if field)


class FilterSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    category_id: Optional[str] = None

    def matches(self, record: OfferingRecord) -> bool:
        # Inactive records never qualify, whatever the other filters say
        if not (
            record.offering.is_active
            and record.template.is_active
            and record.location.is_active
        ):
            return False
        if self.category_id is not None and record.template.category_id != self.category_id:
            return False
        if self.text is not None:
            template = record.template
            return contains_text(
                self.text, (template.name, template.description, template.search_terms)
            )
        return True


class ProviderFilterSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    specialty: Optional[str] = None

    def matches(self, record: ProviderRecord) -> bool:
        provider = record.provider
        if (provider.subscription_status or "").upper() != ACTIVE_SUBSCRIPTION:
            return False
        if not any(loc.is_active for loc in record.locations):
            return False
        if self.specialty is not None and self.specialty not in {
            s.strip().lower() for s in provider.specialties
        }:
            return False
        if self.text is not None:
            return contains_text(self.text, (provider.organization_name, provider.bio))
        return True


def compile_filter(query: SearchQuery) -> FilterSpec:
    return FilterSpec(
        text=normalize_text(query.text),
        category_id=_normalize_id(query.category_id),
    )


def compile_provider_filter(query: ProviderQuery) -> ProviderFilterSpec:
    return ProviderFilterSpec(
        text=normalize_text(query.text),
        specialty=normalize_text(query.specialty),
    )
