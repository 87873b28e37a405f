"""JSON shapes returned by the HTTP surface.

Search results keep the camelCase keys the web client already consumes.
Distances are rounded to two decimals here, never in the engine.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from carecost.search.models import (
    Coordinate,
    Location,
    LocationDistance,
    OfferingDetail,
    PageMeta,
    PriceStatistics,
    ProcedureCategory,
    ProcedureSearchResult,
    ProcedureTemplate,
    ProviderSearchResult,
    RankedProvider,
    RankedResult,
    StatisticsResult,
)


def _miles(value: Optional[float]) -> Optional[float]:
    return round(value, 2) if value is not None else None


def category_out(category: Optional[ProcedureCategory]) -> Optional[Dict[str, Any]]:
    if category is None:
        return None
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "parentId": category.parent_id,
    }


def template_out(
    template: ProcedureTemplate, category: Optional[ProcedureCategory] = None
) -> Dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "searchTerms": template.search_terms,
        "categoryId": template.category_id,
        "isActive": template.is_active,
        "category": category_out(category),
    }


def location_out(location: Location) -> Dict[str, Any]:
    return {
        "id": location.id,
        "name": location.name,
        "address": location.formatted_address(),
        "city": location.city,
        "state": location.state,
        "zipCode": location.zip_code,
        "latitude": location.latitude,
        "longitude": location.longitude,
    }


def pagination_out(meta: PageMeta) -> Dict[str, int]:
    return meta.model_dump()


def stats_out(stats: PriceStatistics) -> Dict[str, Any]:
    return stats.model_dump()


def _search_location(origin: Coordinate, text: Optional[str]) -> Dict[str, Any]:
    return {
        "searchLocation": {
            "latitude": origin.latitude,
            "longitude": origin.longitude,
            "address": text,
        }
    }


def ranked_result_out(result: RankedResult) -> Dict[str, Any]:
    record = result.record
    return {
        "id": record.offering.id,
        "price": record.offering.price,
        "comments": record.offering.comments,
        "distance": _miles(result.distance_miles),
        "procedure": {
            "id": record.template.id,
            "name": record.template.name,
            "description": record.template.description,
            "category": (
                {"id": record.category.id, "name": record.category.name}
                if record.category
                else None
            ),
        },
        "provider": {
            "id": record.provider.id,
            "name": record.provider.organization_name,
            "logoUrl": record.provider.logo_url,
        },
        "location": location_out(record.location),
    }


def procedure_search_out(
    result: ProcedureSearchResult, query_text: Optional[str]
) -> Dict[str, Any]:
    results = [ranked_result_out(r) for r in result.results]
    body: Dict[str, Any] = {
        "results": results,
        "pagination": pagination_out(result.page_meta),
    }
    if result.resolved_location is not None:
        body["data"] = _search_location(result.resolved_location, result.location_text)
    if result.geocode_warning:
        body["error"] = result.geocode_warning
    if (query_text or "").strip() and results:
        body["procedureName"] = results[0]["procedure"]["name"]
    return body


def statistics_out(result: StatisticsResult) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "template": template_out(result.template, result.category),
        "stats": stats_out(result.statistics),
    }
    if result.location_info is not None:
        info = result.location_info
        body["locationInfo"] = {
            "searchLocation": info.search_location,
            "searchRadius": info.search_radius,
            "providersInRange": info.providers_in_range,
        }
    if result.geocode_warning:
        body["error"] = result.geocode_warning
    return body


def _provider_location_out(entry: Optional[LocationDistance]) -> Optional[Dict[str, Any]]:
    if entry is None:
        return None
    loc = entry.location
    return {
        "id": loc.id,
        "name": loc.name,
        "address1": loc.address1,
        "city": loc.city,
        "state": loc.state,
        "zipCode": loc.zip_code,
        "latitude": loc.latitude,
        "longitude": loc.longitude,
        "distance": _miles(entry.distance_miles),
    }


def ranked_provider_out(ranked: RankedProvider) -> Dict[str, Any]:
    provider = ranked.provider
    return {
        "id": provider.id,
        "name": provider.organization_name,
        "logoUrl": provider.logo_url,
        "website": provider.website,
        "bio": provider.bio,
        "specialties": list(provider.specialties),
        "rating": provider.rating,
        "reviewCount": provider.review_count,
        "location": _provider_location_out(ranked.closest),
        "distance": _miles(ranked.distance_miles),
    }


def provider_search_out(result: ProviderSearchResult) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "results": [ranked_provider_out(r) for r in result.results],
        "pagination": pagination_out(result.page_meta),
    }
    if result.resolved_location is not None:
        body["data"] = _search_location(result.resolved_location, result.location_text)
    if result.geocode_warning:
        body["error"] = result.geocode_warning
    return body


def categories_out(categories: List[ProcedureCategory]) -> Dict[str, Any]:
    return {"categories": [category_out(c) for c in categories]}


def templates_out(templates: List[ProcedureTemplate]) -> Dict[str, Any]:
    return {"templates": [template_out(t) for t in templates]}


def offering_detail_out(detail: OfferingDetail) -> Dict[str, Any]:
    record = detail.record
    return {
        "procedurePrice": {
            "id": record.offering.id,
            "price": record.offering.price,
            "comments": record.offering.comments,
            "isActive": record.offering.is_active,
            "averageMarketPrice": record.offering.average_market_price,
            "savingsPercent": detail.savings_percent,
            "template": template_out(record.template, record.category),
            "location": location_out(record.location),
            "provider": {
                "id": record.provider.id,
                "name": record.provider.organization_name,
                "logoUrl": record.provider.logo_url,
                "website": record.provider.website,
                "phone": record.provider.phone,
            },
        }
    }
