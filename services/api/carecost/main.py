from fastapi import Depends, FastAPI, Query as QueryParam, Request
from fastapi.responses import HTMLResponse, JSONResponse
from contextlib import asynccontextmanager
import logging
import os

from carecost.config import settings
from carecost.config.logging import (
    REQUEST_ID_HEADER,
    clear_request_id,
    configure_logging,
    set_request_id,
)
from carecost.search.errors import NotFound, StoreUnavailable
from carecost.search.geocoding import GeocodeCache, GeocodingAdapter, GoogleGeocoder
from carecost.search.models import ProviderQuery, SearchQuery
from carecost.search.pagination import parse_page_params, parse_radius
from carecost.search.service import SearchService
from carecost.store.base import CatalogStore
from carecost.store.elastic import ElasticCatalogStore
from carecost.store.memory import InMemoryCatalogStore
from carecost.tools.es_client import ensure_indices, get_es_client
from carecost import wire
from scalar_fastapi import Layout, Theme, get_scalar_api_reference

logger = logging.getLogger(__name__)


def _test_mode() -> bool:
    return bool(os.getenv("PYTEST_CURRENT_TEST")) or os.getenv("APP_ENV") == "test"


def build_store() -> CatalogStore:
    backend = settings.catalog_backend.strip().lower()
    if backend == "elasticsearch":
        # Avoid bootstrapping indices when running under pytest or explicit test env
        if _test_mode():
            logger.info("Skipping index bootstrap in test mode")
        else:
            ensure_indices()
        return ElasticCatalogStore(get_es_client())
    if backend != "memory":
        raise ValueError(f"Unknown CATALOG_BACKEND: {settings.catalog_backend!r}")
    return InMemoryCatalogStore.from_json(settings.catalog_seed_path)


def build_geocoder() -> GeocodingAdapter:
    cache = None
    if settings.geocode_cache_ttl_s > 0:
        cache = GeocodeCache(
            settings.geocode_cache_ttl_s,
            settings.geocode_negative_ttl_s,
            max_entries=settings.geocode_cache_max_entries,
        )
    if not settings.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY not set; location searches will not geocode")
    return GeocodingAdapter(
        # HTTP timeout matches the adapter timeout
        GoogleGeocoder(
            settings.google_maps_api_key, timeout=settings.geocode_timeout_s
        ),
        timeout_s=settings.geocode_timeout_s,
        cache=cache,
    )


def build_search_service() -> SearchService:
    return SearchService(
        build_store(),
        build_geocoder(),
        default_radius_miles=settings.default_radius_miles,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    app.state.search_service = build_search_service()
    logger.info("Search API ready (backend=%s)", settings.catalog_backend)
    yield


app = FastAPI(title="CareCost Search API", lifespan=lifespan, docs_url=None, redoc_url=None)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = set_request_id(request.headers.get(REQUEST_ID_HEADER))
    try:
        response = await call_next(request)
    finally:
        clear_request_id()
    response.headers[REQUEST_ID_HEADER] = rid
    return response


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    logger.info("Not found: %s", exc)
    return JSONResponse(status_code=404, content={"message": str(exc)})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(
        "%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"message": str(exc)})


@app.get("/docs", include_in_schema=False)
def scalar_docs() -> HTMLResponse:
    return get_scalar_api_reference(
        openapi_url=app.openapi_url,
        title="CareCost Search API Docs",
        layout=Layout.MODERN,
        theme=Theme.DEEP_SPACE,
        hide_models=True,
        hide_client_button=True,
        hide_download_button=True,
    )


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _page(page: str | None, limit: str | None) -> tuple[int, int]:
    return parse_page_params(
        page,
        limit,
        default_limit=settings.default_page_limit,
        max_limit=settings.max_page_limit,
    )


@app.get("/api/search/procedures")
async def search_procedures(
    query: str | None = QueryParam(default=None),
    category_id: str | None = QueryParam(default=None, alias="categoryId"),
    location: str | None = QueryParam(default=None),
    distance: str | None = QueryParam(default=None),
    sort: str | None = QueryParam(default=None),
    page: str | None = QueryParam(default=None),
    limit: str | None = QueryParam(default=None),
    service: SearchService = Depends(get_search_service),
):
    page_num, per_page = _page(page, limit)
    q = SearchQuery(
        text=query,
        category_id=(category_id or "").strip() or None,
        location_text=location,
        radius_miles=parse_radius(distance, settings.default_radius_miles),
        sort_order=sort,
        page=page_num,
        limit=per_page,
    )
    result = await service.search_procedures(q)
    return wire.procedure_search_out(result, query)


@app.get("/api/search/stats/{template_id}")
async def procedure_statistics(
    template_id: str,
    location: str | None = QueryParam(default=None),
    distance: str | None = QueryParam(default=None),
    service: SearchService = Depends(get_search_service),
):
    result = await service.get_procedure_statistics(
        template_id,
        location_text=location,
        radius_miles=parse_radius(distance, settings.default_radius_miles),
    )
    return wire.statistics_out(result)


@app.get("/api/search/providers")
async def search_providers(
    query: str | None = QueryParam(default=None),
    specialty: str | None = QueryParam(default=None),
    location: str | None = QueryParam(default=None),
    distance: str | None = QueryParam(default=None),
    sort: str | None = QueryParam(default=None),
    page: str | None = QueryParam(default=None),
    limit: str | None = QueryParam(default=None),
    service: SearchService = Depends(get_search_service),
):
    page_num, per_page = _page(page, limit)
    q = ProviderQuery(
        text=query,
        specialty=specialty,
        location_text=location,
        radius_miles=parse_radius(distance, settings.default_radius_miles),
        sort_order=sort,
        page=page_num,
        limit=per_page,
    )
    result = await service.search_providers(q)
    return wire.provider_search_out(result)


@app.get("/api/procedures/categories")
async def list_categories(service: SearchService = Depends(get_search_service)):
    return wire.categories_out(await service.list_categories())


@app.get("/api/procedures/templates")
async def list_templates(
    query: str | None = QueryParam(default=None),
    category_id: str | None = QueryParam(default=None, alias="categoryId"),
    service: SearchService = Depends(get_search_service),
):
    return wire.templates_out(await service.list_templates(query, category_id))


@app.get("/api/procedures/{offering_id}")
async def get_offering(
    offering_id: str, service: SearchService = Depends(get_search_service)
):
    return wire.offering_detail_out(await service.get_offering(offering_id))


# Simple health check
@app.get("/healthz")
def healthz():
    return {"ok": True}
