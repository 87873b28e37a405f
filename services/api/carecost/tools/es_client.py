import logging
import time
from elasticsearch import Elasticsearch
from elastic_transport import ConnectionError
from carecost.config import settings

logger = logging.getLogger(__name__)

_es_client = None  # Process-wide client, created on first use

MAX_RETRIES = 20
RETRY_DELAY_SECONDS = 10


def get_es_client():
    global _es_client
    if _es_client is None:
        for i in range(MAX_RETRIES):
            try:
                _es_client = Elasticsearch(settings.es_host)
                _es_client.info()  # Test connection
                logger.info("Connected to Elasticsearch after %d attempt(s)", i + 1)
                break
            except ConnectionError as e:
                _es_client = None
                logger.warning(
                    "Attempt %d/%d: could not connect to Elasticsearch, retrying in %ds: %s",
                    i + 1,
                    MAX_RETRIES,
                    RETRY_DELAY_SECONDS,
                    e,
                )
                time.sleep(RETRY_DELAY_SECONDS)
        else:
            raise ConnectionError(
                "Failed to connect to Elasticsearch after multiple retries."
            )
    return _es_client


_TEXT_WITH_KEYWORD = {"type": "text", "fields": {"keyword": {"type": "keyword"}}}

_LOCATION_PROPERTIES = {
    "id": {"type": "keyword"},
    "provider_id": {"type": "keyword"},
    "name": {"type": "text"},
    "address1": {"type": "text"},
    "city": {"type": "keyword"},
    "state": {"type": "keyword"},
    "zip_code": {"type": "keyword"},
    "latitude": {"type": "float"},
    "longitude": {"type": "float"},
    "geo": {"type": "geo_point"},
    "is_active": {"type": "boolean"},
}

_PROVIDER_PROPERTIES = {
    "id": {"type": "keyword"},
    "organization_name": _TEXT_WITH_KEYWORD,
    "bio": {"type": "text"},
    "specialties": {"type": "keyword"},
    "rating": {"type": "float"},
    "review_count": {"type": "integer"},
    "subscription_status": {"type": "keyword"},
}

_TEMPLATE_PROPERTIES = {
    "id": {"type": "keyword"},
    "name": _TEXT_WITH_KEYWORD,
    "description": _TEXT_WITH_KEYWORD,
    "search_terms": _TEXT_WITH_KEYWORD,
    "category_id": {"type": "keyword"},
    "is_active": {"type": "boolean"},
}

_CATEGORY_PROPERTIES = {
    "id": {"type": "keyword"},
    "name": _TEXT_WITH_KEYWORD,
    "description": {"type": "text"},
    "parent_id": {"type": "keyword"},
}


def index_mappings() -> dict:
    """Mappings per index name. Offerings are stored fully denormalized."""
    return {
        settings.es_offerings_index: {
            "properties": {
                "offering": {
                    "properties": {
                        "id": {"type": "keyword"},
                        "template_id": {"type": "keyword"},
                        "location_id": {"type": "keyword"},
                        "price": {"type": "scaled_float", "scaling_factor": 100},
                        "comments": {"type": "text"},
                        "is_active": {"type": "boolean"},
                        "average_market_price": {
                            "type": "scaled_float",
                            "scaling_factor": 100,
                        },
                    }
                },
                "template": {"properties": _TEMPLATE_PROPERTIES},
                "category": {"properties": _CATEGORY_PROPERTIES},
                "location": {"properties": _LOCATION_PROPERTIES},
                "provider": {"properties": _PROVIDER_PROPERTIES},
            }
        },
        settings.es_providers_index: {
            "properties": {
                "provider": {"properties": _PROVIDER_PROPERTIES},
                "locations": {"type": "nested", "properties": _LOCATION_PROPERTIES},
            }
        },
        settings.es_templates_index: {"properties": _TEMPLATE_PROPERTIES},
        settings.es_categories_index: {"properties": _CATEGORY_PROPERTIES},
    }


def ensure_indices():
    # Called on startup by the API to ensure mappings exist
    es = get_es_client()
    indices = es.indices
    for name, mapping in index_mappings().items():
        if not indices.exists(index=name):
            logger.info("Creating index %s", name)
            indices.create(index=name, mappings=mapping)
