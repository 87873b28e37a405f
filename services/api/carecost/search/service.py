"""Search orchestration: filter, fetch, geocode, rank, paginate.

Store reads and the geocoder both block, so they run in worker threads and
the event loop stays free for concurrent requests. Nothing here holds
request state between calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from carecost.search.errors import CatalogError, NotFound, StoreUnavailable
from carecost.search.filters import compile_filter, compile_provider_filter
from carecost.search.geocoding import GeocodingAdapter
from carecost.search.models import (
    Coordinate,
    LocationInfo,
    OfferingDetail,
    ProcedureCategory,
    ProcedureSearchResult,
    ProcedureTemplate,
    ProviderQuery,
    ProviderSearchResult,
    SearchQuery,
    StatisticsResult,
)
from carecost.search.pagination import DEFAULT_RADIUS_MILES, paginate
from carecost.search.ranking import rank, rank_providers, within_radius
from carecost.search.stats import aggregate, round_half_up
from carecost.store.base import CatalogStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

GEOCODE_WARNING = "Could not geocode the provided location"
TEMPLATE_LIST_LIMIT = 50


def savings_percent(price: float, average_market_price: Optional[float]) -> Optional[int]:
    if not average_market_price or not price:
        return None
    return round_half_up((average_market_price - price) / average_market_price * 100)


class SearchService:
    def __init__(
        self,
        store: CatalogStore,
        geocoder: GeocodingAdapter,
        *,
        default_radius_miles: float = DEFAULT_RADIUS_MILES,
    ):
        self.store = store
        self.geocoder = geocoder
        self.default_radius_miles = default_radius_miles

    async def _read(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except CatalogError:
            raise
        except Exception as exc:
            logger.error(
                "Catalog read %s failed: %s",
                getattr(fn, "__name__", fn),
                exc,
                exc_info=True,
            )
            raise StoreUnavailable("Catalog store read failed") from exc

    async def _resolve_origin(
        self, location_text: Optional[str]
    ) -> Tuple[Optional[Coordinate], Optional[str], Optional[str]]:
        """Return (origin, warning, cleaned text); blank text means no geo filter."""
        text = (location_text or "").strip()
        if not text:
            return None, None, None
        origin = await self.geocoder.resolve(text)
        if origin is None:
            return None, GEOCODE_WARNING, text
        return origin, None, text

    async def search_procedures(self, query: SearchQuery) -> ProcedureSearchResult:
        spec = compile_filter(query)
        candidates = await self._read(self.store.find_offerings, spec)
        origin, warning, text = await self._resolve_origin(query.location_text)

        ranked = rank(candidates, query, origin)
        window, meta = paginate(ranked, query.page, query.limit)
        logger.info(
            "Procedure search: %d candidates, %d ranked, page %d/%d%s",
            len(candidates),
            len(ranked),
            meta.page,
            meta.pages,
            " (geocoding failed)" if warning else "",
        )
        return ProcedureSearchResult(
            results=window,
            page_meta=meta,
            geocode_warning=warning,
            resolved_location=origin,
            location_text=text if origin is not None else None,
        )

    async def get_procedure_statistics(
        self,
        template_id: str,
        location_text: Optional[str] = None,
        radius_miles: Optional[float] = None,
    ) -> StatisticsResult:
        template = await self._read(self.store.find_template_by_id, template_id)
        if template is None:
            raise NotFound(f"Procedure template {template_id} not found")

        category = None
        if template.category_id:
            category = await self._read(self.store.find_category_by_id, template.category_id)

        offerings = await self._read(self.store.find_offerings_by_template, template_id)
        offerings = [
            o for o in offerings if o.offering.is_active and o.location.is_active
        ]

        radius = radius_miles if radius_miles is not None else self.default_radius_miles
        origin, warning, text = await self._resolve_origin(location_text)
        location_info = None
        if origin is not None:
            in_range = within_radius(offerings, origin, radius)
            prices = [r.record.price for r in in_range]
            location_info = LocationInfo(
                search_location=text or "",
                search_radius=radius,
                providers_in_range=len(in_range),
            )
        else:
            prices = [o.price for o in offerings]

        return StatisticsResult(
            template=template,
            category=category,
            statistics=aggregate(prices),
            geocode_warning=warning,
            location_info=location_info,
        )

    async def search_providers(self, query: ProviderQuery) -> ProviderSearchResult:
        spec = compile_provider_filter(query)
        candidates = await self._read(self.store.find_providers, spec)
        origin, warning, text = await self._resolve_origin(query.location_text)

        ranked = rank_providers(candidates, query, origin)
        window, meta = paginate(ranked, query.page, query.limit)
        logger.info(
            "Provider search: %d candidates, %d ranked%s",
            len(candidates),
            len(ranked),
            " (geocoding failed)" if warning else "",
        )
        return ProviderSearchResult(
            results=window,
            page_meta=meta,
            geocode_warning=warning,
            resolved_location=origin,
            location_text=text if origin is not None else None,
        )

    async def list_categories(self) -> List[ProcedureCategory]:
        return await self._read(self.store.list_categories)

    async def list_templates(
        self, text: Optional[str] = None, category_id: Optional[str] = None
    ) -> List[ProcedureTemplate]:
        category = (category_id or "").strip() or None
        return await self._read(
            self.store.find_templates, text, category, TEMPLATE_LIST_LIMIT
        )

    async def get_offering(self, offering_id: str) -> OfferingDetail:
        record = await self._read(self.store.find_offering_by_id, offering_id)
        if record is None:
            raise NotFound(f"Procedure price {offering_id} not found")
        return OfferingDetail(
            record=record,
            savings_percent=savings_percent(
                record.offering.price, record.offering.average_market_price
            ),
        )
