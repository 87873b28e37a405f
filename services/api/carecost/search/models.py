"""Catalog entities and the request-scoped search types built from them.

Catalog entities are read-only from the search engine's point of view. The
result types only live for the duration of one request.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class Location(BaseModel):
    id: str
    provider_id: str
    name: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_active: bool = True

    @property
    def coordinate(self) -> Coordinate | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    def formatted_address(self) -> str:
        if not self.address1:
            return ""
        return f"{self.address1}, {self.city}, {self.state} {self.zip_code}"


class ProcedureCategory(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None


class ProcedureTemplate(BaseModel):
    id: str
    name: str
    description: str = ""
    search_terms: str = ""
    category_id: Optional[str] = None
    is_active: bool = True


class ProcedureOffering(BaseModel):
    id: str
    template_id: str
    location_id: str
    price: float = Field(ge=0)
    comments: Optional[str] = None
    is_active: bool = True
    average_market_price: Optional[float] = None


class Provider(BaseModel):
    id: str
    organization_name: str
    bio: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    rating: float = 0.0
    review_count: int = 0
    subscription_status: str = "ACTIVE"


class OfferingRecord(BaseModel):
    """An offering with its template, category, location and provider."""

    offering: ProcedureOffering
    template: ProcedureTemplate
    category: Optional[ProcedureCategory] = None
    location: Location
    provider: Provider

    @property
    def price(self) -> float:
        return self.offering.price


class ProviderRecord(BaseModel):
    provider: Provider
    locations: List[Location] = Field(default_factory=list)


class SearchQuery(BaseModel):
    text: Optional[str] = None
    category_id: Optional[str] = None
    location_text: Optional[str] = None
    radius_miles: float = 50.0
    sort_order: Optional[str] = None
    page: int = 1
    limit: int = 20


class ProviderQuery(BaseModel):
    text: Optional[str] = None
    specialty: Optional[str] = None
    location_text: Optional[str] = None
    radius_miles: float = 50.0
    sort_order: Optional[str] = None
    page: int = 1
    limit: int = 20


class RankedResult(BaseModel):
    record: OfferingRecord
    distance_miles: Optional[float] = None


class LocationDistance(BaseModel):
    location: Location
    distance_miles: Optional[float] = None


class RankedProvider(BaseModel):
    provider: Provider
    locations: List[LocationDistance]
    closest: Optional[LocationDistance] = None
    distance_miles: Optional[float] = None


class PriceStatistics(BaseModel):
    count: int = 0
    min: float = 0
    max: float = 0
    average: float = 0
    median: float = 0


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class LocationInfo(BaseModel):
    search_location: str
    search_radius: float
    providers_in_range: int


class ProcedureSearchResult(BaseModel):
    results: List[RankedResult]
    page_meta: PageMeta
    geocode_warning: Optional[str] = None
    resolved_location: Optional[Coordinate] = None
    location_text: Optional[str] = None


class ProviderSearchResult(BaseModel):
    results: List[RankedProvider]
    page_meta: PageMeta
    geocode_warning: Optional[str] = None
    resolved_location: Optional[Coordinate] = None
    location_text: Optional[str] = None


class StatisticsResult(BaseModel):
    template: ProcedureTemplate
    category: Optional[ProcedureCategory] = None
    statistics: PriceStatistics
    geocode_warning: Optional[str] = None
    location_info: Optional[LocationInfo] = None


class OfferingDetail(BaseModel):
    record: OfferingRecord
    savings_percent: Optional[int] = None
