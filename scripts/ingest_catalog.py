import os
import sys
import logging
from elasticsearch import Elasticsearch, helpers
from carecost.config import settings
from carecost.store.memory import InMemoryCatalogStore
from carecost.tools.es_client import ensure_indices


logging.basicConfig(level=logging.INFO)

ES = os.getenv("ES_HOST", settings.es_host)
SEED = sys.argv[1] if len(sys.argv) > 1 else settings.catalog_seed_path


def _with_geo(location: dict) -> dict:
    lat, lon = location.get("latitude"), location.get("longitude")
    if lat is not None and lon is not None:
        return location | {"geo": {"lat": lat, "lon": lon}}
    return location


def _upsert(index: str, doc_id: str, doc: dict) -> dict:
    return {
        "_op_type": "update",
        "_index": index,
        "_id": doc_id,
        "doc": doc,
        "doc_as_upsert": True,
    }


def build_actions(store: InMemoryCatalogStore) -> list[dict]:
    actions = []
    for category in store.categories.values():
        actions.append(
            _upsert(settings.es_categories_index, category.id, category.model_dump())
        )
    for template in store.templates.values():
        actions.append(
            _upsert(settings.es_templates_index, template.id, template.model_dump())
        )
    for record in store.provider_records():
        doc = record.model_dump()
        doc["locations"] = [_with_geo(loc) for loc in doc["locations"]]
        actions.append(_upsert(settings.es_providers_index, record.provider.id, doc))
    # Offerings are stored denormalized; inactive ones too, queries filter them
    for record in store.records():
        doc = record.model_dump()
        doc["location"] = _with_geo(doc["location"])
        actions.append(_upsert(settings.es_offerings_index, record.offering.id, doc))
    return actions


if __name__ == "__main__":
    store = InMemoryCatalogStore.from_json(SEED)
    es = Elasticsearch(ES)
    ensure_indices()
    actions = build_actions(store)
    logging.info("Indexing %d catalog documents from %s into %s.", len(actions), SEED, ES)
    helpers.bulk(es, actions)
    logging.info("Upserted %d catalog documents", len(actions))
