"""Catalog store backed by plain Python collections.

Used for local development (loaded from the JSON seed file) and as the
reference implementation in tests.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from carecost.search.filters import (
    FilterSpec,
    ProviderFilterSpec,
    contains_text,
    normalize_text,
)
from carecost.search.models import (
    Location,
    OfferingRecord,
    ProcedureCategory,
    ProcedureOffering,
    ProcedureTemplate,
    Provider,
    ProviderRecord,
)
from carecost.search.ranking import collation_key
from carecost.store.base import CatalogStore

logger = logging.getLogger(__name__)


class InMemoryCatalogStore(CatalogStore):
    def __init__(
        self,
        *,
        categories: Iterable[ProcedureCategory] = (),
        templates: Iterable[ProcedureTemplate] = (),
        providers: Iterable[Provider] = (),
        locations: Iterable[Location] = (),
        offerings: Iterable[ProcedureOffering] = (),
    ):
        self.categories: Dict[str, ProcedureCategory] = {c.id: c for c in categories}
        self.templates: Dict[str, ProcedureTemplate] = {t.id: t for t in templates}
        self.providers: Dict[str, Provider] = {p.id: p for p in providers}
        self.locations: Dict[str, Location] = {loc.id: loc for loc in locations}
        # Insertion order is the "storage order" callers see before sorting
        self.offerings: Dict[str, ProcedureOffering] = {o.id: o for o in offerings}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryCatalogStore":
        return cls(
            categories=[ProcedureCategory(**c) for c in data.get("categories", [])],
            templates=[ProcedureTemplate(**t) for t in data.get("templates", [])],
            providers=[Provider(**p) for p in data.get("providers", [])],
            locations=[Location(**loc) for loc in data.get("locations", [])],
            offerings=[ProcedureOffering(**o) for o in data.get("offerings", [])],
        )

    @classmethod
    def from_json(cls, path: str) -> "InMemoryCatalogStore":
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        store = cls.from_dict(data)
        logger.info(
            "Loaded catalog from %s: %d offerings, %d templates, %d providers",
            path,
            len(store.offerings),
            len(store.templates),
            len(store.providers),
        )
        return store

    def _record(self, offering: ProcedureOffering) -> Optional[OfferingRecord]:
        template = self.templates.get(offering.template_id)
        location = self.locations.get(offering.location_id)
        provider = self.providers.get(location.provider_id) if location else None
        if template is None or location is None or provider is None:
            logger.debug("Skipping offering %s with dangling references", offering.id)
            return None
        category = (
            self.categories.get(template.category_id) if template.category_id else None
        )
        return OfferingRecord(
            offering=offering,
            template=template,
            category=category,
            location=location,
            provider=provider,
        )

    def records(self) -> Iterable[OfferingRecord]:
        for offering in self.offerings.values():
            record = self._record(offering)
            if record is not None:
                yield record

    def find_offerings(self, spec: FilterSpec) -> List[OfferingRecord]:
        return [record for record in self.records() if spec.matches(record)]

    def find_offering_by_id(self, offering_id: str) -> Optional[OfferingRecord]:
        offering = self.offerings.get(offering_id)
        return self._record(offering) if offering else None

    def find_offerings_by_template(self, template_id: str) -> List[OfferingRecord]:
        return [
            record
            for record in self.records()
            if record.offering.template_id == template_id
            and record.offering.is_active
            and record.location.is_active
        ]

    def find_template_by_id(self, template_id: str) -> Optional[ProcedureTemplate]:
        return self.templates.get(template_id)

    def find_category_by_id(self, category_id: str) -> Optional[ProcedureCategory]:
        return self.categories.get(category_id)

    def find_templates(
        self,
        text: Optional[str] = None,
        category_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[ProcedureTemplate]:
        needle = normalize_text(text)
        found = [
            t
            for t in self.templates.values()
            if (category_id is None or t.category_id == category_id)
            and (needle is None or contains_text(needle, (t.name, t.description)))
        ]
        found.sort(key=lambda t: collation_key(t.name))
        return found[:limit]

    def list_categories(self) -> List[ProcedureCategory]:
        return sorted(self.categories.values(), key=lambda c: collation_key(c.name))

    def provider_records(self) -> List[ProviderRecord]:
        by_provider: Dict[str, List[Location]] = {}
        for loc in self.locations.values():
            by_provider.setdefault(loc.provider_id, []).append(loc)
        return [
            ProviderRecord(provider=provider, locations=by_provider.get(provider.id, []))
            for provider in self.providers.values()
        ]

    def find_providers(self, spec: ProviderFilterSpec) -> List[ProviderRecord]:
        return [record for record in self.provider_records() if spec.matches(record)]
