"""Settings for the search API service."""

from pydantic import BaseModel
import os

_CATALOG_SEED_DEFAULT = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "..", "..", "seeds", "catalog.json")
)


class Settings(BaseModel):
    app_env: str = os.getenv("APP_ENV", "dev")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", 8000))

    # Catalog store: "memory" (JSON seed file) or "elasticsearch"
    catalog_backend: str = os.getenv("CATALOG_BACKEND", "memory")
    catalog_seed_path: str = os.getenv("CATALOG_SEED_PATH", _CATALOG_SEED_DEFAULT)

    es_host: str = os.getenv("ES_HOST", "http://localhost:9200")
    es_offerings_index: str = os.getenv("ES_OFFERINGS_INDEX", "catalog_offerings")
    es_providers_index: str = os.getenv("ES_PROVIDERS_INDEX", "catalog_providers")
    es_templates_index: str = os.getenv("ES_TEMPLATES_INDEX", "catalog_templates")
    es_categories_index: str = os.getenv("ES_CATEGORIES_INDEX", "catalog_categories")
    es_max_candidates: int = int(os.getenv("ES_MAX_CANDIDATES", 5000))

    google_maps_api_key: str | None = os.getenv("GOOGLE_MAPS_API_KEY")
    geocode_timeout_s: float = float(os.getenv("GEOCODE_TIMEOUT_S", 5.0))
    # 0 disables the in-process geocode cache
    geocode_cache_ttl_s: float = float(os.getenv("GEOCODE_CACHE_TTL_S", 3600))
    geocode_negative_ttl_s: float = float(os.getenv("GEOCODE_NEGATIVE_TTL_S", 300))
    geocode_cache_max_entries: int = int(os.getenv("GEOCODE_CACHE_MAX_ENTRIES", 10_000))

    default_radius_miles: float = float(os.getenv("DEFAULT_RADIUS_MILES", 50))
    default_page_limit: int = int(os.getenv("DEFAULT_PAGE_LIMIT", 20))
    max_page_limit: int = int(os.getenv("MAX_PAGE_LIMIT", 100))

    data_dir: str = os.getenv("APP_DATA_DIR", "/app/data")

    # Logging settings
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
