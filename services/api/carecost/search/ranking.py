from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from carecost.search.distance import distance
from carecost.search.models import (
    Coordinate,
    LocationDistance,
    OfferingRecord,
    ProviderQuery,
    ProviderRecord,
    RankedProvider,
    RankedResult,
    SearchQuery,
)

logger = logging.getLogger(__name__)

PRICE_ASC = "price_asc"
PRICE_DESC = "price_desc"
DISTANCE_ASC = "distance_asc"
NAME_ASC = "name_asc"
RATING_DESC = "rating_desc"

PROCEDURE_SORTS = {PRICE_ASC, PRICE_DESC, DISTANCE_ASC, NAME_ASC}
PROVIDER_SORTS = {DISTANCE_ASC, NAME_ASC, RATING_DESC}


def normalize_sort(sort_order: Optional[str], allowed: set[str], default: str) -> str:
    value = (sort_order or "").strip().lower()
    return value if value in allowed else default


def collation_key(name: Optional[str]) -> str:
    return (name or "").casefold()


def pass_through(candidates: Iterable[OfferingRecord]) -> List[RankedResult]:
    """No origin: keep every candidate, distance unknown."""
    return [RankedResult(record=record, distance_miles=None) for record in candidates]


def within_radius(
    candidates: Iterable[OfferingRecord], origin: Coordinate, radius_miles: float
) -> List[RankedResult]:
    """Attach distances from `origin` and keep candidates inside the radius.

    A candidate whose location was never geocoded cannot be placed, so it
    is dropped. The radius is inclusive.
    """
    kept: List[RankedResult] = []
    for record in candidates:
        coordinate = record.location.coordinate
        if coordinate is None:
            logger.debug(
                "Dropping offering %s: location %s has no coordinates",
                record.offering.id,
                record.location.id,
            )
            continue
        miles = distance(origin, coordinate)
        if miles > radius_miles:
            continue
        kept.append(RankedResult(record=record, distance_miles=miles))
    return kept


def sort_results(
    results: Sequence[RankedResult], sort_order: Optional[str], has_origin: bool
) -> List[RankedResult]:
    order = normalize_sort(sort_order, PROCEDURE_SORTS, PRICE_ASC)
    if order == DISTANCE_ASC and not has_origin:
        order = PRICE_ASC

    # sorted() is stable, so ties keep their input order
    if order == PRICE_DESC:
        return sorted(results, key=lambda r: r.record.price, reverse=True)
    if order == DISTANCE_ASC:
        return sorted(results, key=lambda r: r.distance_miles)  # type: ignore[arg-type,return-value]
    if order == NAME_ASC:
        return sorted(results, key=lambda r: collation_key(r.record.template.name))
    return sorted(results, key=lambda r: r.record.price)


def rank(
    candidates: Iterable[OfferingRecord],
    query: SearchQuery,
    origin: Optional[Coordinate],
) -> List[RankedResult]:
    # Missing origin and missing candidate coordinates are handled by two
    # separate paths; dropping on a missing origin would empty every
    # non-geographic search.
    if origin is None:
        ranked = pass_through(candidates)
    else:
        ranked = within_radius(candidates, origin, query.radius_miles)
    return sort_results(ranked, query.sort_order, origin is not None)


def _provider_locations(
    record: ProviderRecord, origin: Optional[Coordinate]
) -> List[LocationDistance]:
    located: List[LocationDistance] = []
    for loc in record.locations:
        if not loc.is_active:
            continue
        coordinate = loc.coordinate
        miles = (
            distance(origin, coordinate)
            if origin is not None and coordinate is not None
            else None
        )
        located.append(LocationDistance(location=loc, distance_miles=miles))
    return located


def _closest(locations: Sequence[LocationDistance]) -> Optional[LocationDistance]:
    measured = [loc for loc in locations if loc.distance_miles is not None]
    if not measured:
        return None
    return min(measured, key=lambda loc: loc.distance_miles)  # type: ignore[arg-type,return-value]


def rank_providers(
    candidates: Iterable[ProviderRecord],
    query: ProviderQuery,
    origin: Optional[Coordinate],
) -> List[RankedProvider]:
    """Rank providers by the distance to their closest active location.

    Without an origin every provider passes with no distance and the
    primary (first active) location stands in for the closest one.
    """
    ranked: List[RankedProvider] = []
    for record in candidates:
        locations = _provider_locations(record, origin)
        if origin is None:
            ranked.append(
                RankedProvider(
                    provider=record.provider,
                    locations=locations,
                    closest=locations[0] if locations else None,
                    distance_miles=None,
                )
            )
            continue

        closest = _closest(locations)
        if closest is None:
            logger.debug("Dropping provider %s: no geocoded location", record.provider.id)
            continue
        if closest.distance_miles > query.radius_miles:  # type: ignore[operator]
            continue
        ranked.append(
            RankedProvider(
                provider=record.provider,
                locations=locations,
                closest=closest,
                distance_miles=closest.distance_miles,
            )
        )

    default = DISTANCE_ASC if origin is not None else NAME_ASC
    order = normalize_sort(query.sort_order, PROVIDER_SORTS, default)
    if order == DISTANCE_ASC and origin is None:
        order = NAME_ASC

    if order == RATING_DESC:
        return sorted(ranked, key=lambda p: p.provider.rating, reverse=True)
    if order == NAME_ASC:
        return sorted(ranked, key=lambda p: collation_key(p.provider.organization_name))
    return sorted(ranked, key=lambda p: p.distance_miles)  # type: ignore[arg-type,return-value]
