from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from carecost.search.filters import FilterSpec, ProviderFilterSpec
from carecost.search.models import (
    OfferingRecord,
    ProcedureCategory,
    ProcedureTemplate,
    ProviderRecord,
)


class CatalogStore(ABC):
    """Read-only access to the procedure catalog.

    Implementations raise `StoreUnavailable` when the backing storage
    cannot be read. Returned records are denormalized so the search engine
    never has to go back to the store per candidate.
    """

    @abstractmethod
    def find_offerings(self, spec: FilterSpec) -> List[OfferingRecord]: ...

    @abstractmethod
    def find_offering_by_id(self, offering_id: str) -> Optional[OfferingRecord]: ...

    @abstractmethod
    def find_offerings_by_template(self, template_id: str) -> List[OfferingRecord]:
        """Active offerings of `template_id` at active locations."""

    @abstractmethod
    def find_template_by_id(self, template_id: str) -> Optional[ProcedureTemplate]: ...

    @abstractmethod
    def find_category_by_id(self, category_id: str) -> Optional[ProcedureCategory]: ...

    @abstractmethod
    def find_templates(
        self,
        text: Optional[str] = None,
        category_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[ProcedureTemplate]:
        """Templates whose name or description contains `text`, sorted by name."""

    @abstractmethod
    def list_categories(self) -> List[ProcedureCategory]: ...

    @abstractmethod
    def find_providers(self, spec: ProviderFilterSpec) -> List[ProviderRecord]: ...
