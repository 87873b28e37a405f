"""Catalog store backed by Elasticsearch.

Coarse predicates (active flags, category, text wildcards) are pushed into
the query; the returned candidates are then re-checked against the filter
spec so both stores honour exactly the same contract.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from elastic_transport import TransportError
from elasticsearch import ApiError

from carecost.config import settings
from carecost.search.errors import StoreUnavailable
from carecost.search.filters import FilterSpec, ProviderFilterSpec, normalize_text
from carecost.search.models import (
    OfferingRecord,
    ProcedureCategory,
    ProcedureTemplate,
    ProviderRecord,
)
from carecost.search.ranking import collation_key
from carecost.store.base import CatalogStore

logger = logging.getLogger(__name__)

_TEMPLATE_TEXT_FIELDS = (
    "template.name.keyword",
    "template.description.keyword",
    "template.search_terms.keyword",
)


def _escape_wildcard(text: str) -> str:
    return text.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


def _contains_any(fields: tuple[str, ...], text: str) -> Dict[str, Any]:
    pattern = f"*{_escape_wildcard(text)}*"
    return {
        "bool": {
            "should": [
                {"wildcard": {field: {"value": pattern, "case_insensitive": True}}}
                for field in fields
            ],
            "minimum_should_match": 1,
        }
    }


def _active_offering_filters() -> List[Dict[str, Any]]:
    return [
        {"term": {"offering.is_active": True}},
        {"term": {"template.is_active": True}},
        {"term": {"location.is_active": True}},
    ]


class ElasticCatalogStore(CatalogStore):
    def __init__(self, es, *, max_candidates: Optional[int] = None):
        self.es = es
        self.max_candidates = max_candidates or settings.es_max_candidates

    def _search(self, index: str, query: Dict[str, Any], size: int) -> List[dict]:
        try:
            res = self.es.search(index=index, query=query, size=size)
        except (ApiError, TransportError) as exc:
            logger.error("Catalog query against %s failed: %s", index, exc)
            raise StoreUnavailable(f"Catalog index {index} is unavailable") from exc
        hits = res["hits"]
        total = hits.get("total")
        matched = total.get("value", 0) if isinstance(total, dict) else (total or 0)
        if matched > size:
            logger.warning(
                "Query against %s matched %d documents; only the first %d were read",
                index,
                matched,
                size,
            )
        return [hit["_source"] for hit in hits["hits"]]

    def find_offerings(self, spec: FilterSpec) -> List[OfferingRecord]:
        filters = _active_offering_filters()
        if spec.category_id is not None:
            filters.append({"term": {"template.category_id": spec.category_id}})
        if spec.text is not None:
            filters.append(_contains_any(_TEMPLATE_TEXT_FIELDS, spec.text))

        docs = self._search(
            settings.es_offerings_index,
            {"bool": {"filter": filters}},
            self.max_candidates,
        )
        records = [OfferingRecord.model_validate(doc) for doc in docs]
        return [record for record in records if spec.matches(record)]

    def find_offering_by_id(self, offering_id: str) -> Optional[OfferingRecord]:
        docs = self._search(
            settings.es_offerings_index, {"term": {"offering.id": offering_id}}, 1
        )
        return OfferingRecord.model_validate(docs[0]) if docs else None

    def find_offerings_by_template(self, template_id: str) -> List[OfferingRecord]:
        query = {
            "bool": {
                "filter": [
                    {"term": {"offering.template_id": template_id}},
                    {"term": {"offering.is_active": True}},
                    {"term": {"location.is_active": True}},
                ]
            }
        }
        docs = self._search(settings.es_offerings_index, query, self.max_candidates)
        return [OfferingRecord.model_validate(doc) for doc in docs]

    def find_template_by_id(self, template_id: str) -> Optional[ProcedureTemplate]:
        docs = self._search(settings.es_templates_index, {"term": {"id": template_id}}, 1)
        return ProcedureTemplate.model_validate(docs[0]) if docs else None

    def find_category_by_id(self, category_id: str) -> Optional[ProcedureCategory]:
        docs = self._search(settings.es_categories_index, {"term": {"id": category_id}}, 1)
        return ProcedureCategory.model_validate(docs[0]) if docs else None

    def find_templates(
        self,
        text: Optional[str] = None,
        category_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[ProcedureTemplate]:
        filters: List[Dict[str, Any]] = []
        if category_id is not None:
            filters.append({"term": {"category_id": category_id}})
        needle = normalize_text(text)
        if needle is not None:
            filters.append(_contains_any(("name.keyword", "description.keyword"), needle))
        query = {"bool": {"filter": filters}} if filters else {"match_all": {}}

        docs = self._search(settings.es_templates_index, query, self.max_candidates)
        templates = [ProcedureTemplate.model_validate(doc) for doc in docs]
        templates.sort(key=lambda t: collation_key(t.name))
        return templates[:limit]

    def list_categories(self) -> List[ProcedureCategory]:
        docs = self._search(
            settings.es_categories_index, {"match_all": {}}, self.max_candidates
        )
        categories = [ProcedureCategory.model_validate(doc) for doc in docs]
        return sorted(categories, key=lambda c: collation_key(c.name))

    def find_providers(self, spec: ProviderFilterSpec) -> List[ProviderRecord]:
        query = {"bool": {"filter": [{"term": {"provider.subscription_status": "ACTIVE"}}]}}
        docs = self._search(settings.es_providers_index, query, self.max_candidates)
        records = [ProviderRecord.model_validate(doc) for doc in docs]
        return [record for record in records if spec.matches(record)]
