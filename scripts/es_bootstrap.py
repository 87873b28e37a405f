import os
import logging
from elasticsearch import Elasticsearch
from carecost.config import settings
from carecost.tools.es_client import index_mappings

logging.basicConfig(level=logging.INFO)


ES = os.getenv("ES_HOST", settings.es_host)
es = Elasticsearch(ES)


logging.info("Checking catalog indices and mappings...")
missing = 0
for idx in index_mappings():
    if not es.indices.exists(index=idx):
        missing += 1
        logging.warning(
            f"Index missing: {idx}. Start the API once (CATALOG_BACKEND=elasticsearch) "
            "or run scripts/ingest_catalog.py to create mappings."
        )
    else:
        count = es.count(index=idx)["count"]
        logging.info(f"Index {idx} present with {count} documents")

if missing:
    logging.warning(f"{missing} catalog index(es) missing")
