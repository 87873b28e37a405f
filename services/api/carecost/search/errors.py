"""Error taxonomy for catalog search."""


class CatalogError(RuntimeError):
    """Base class for search and catalog failures."""


class NotFound(CatalogError):
    """A referenced template, category or offering does not exist."""


class StoreUnavailable(CatalogError):
    """The catalog store could not be read. Fatal for the request."""


class GeocodingUnavailable(CatalogError):
    """The geocoder failed. Always recovered before it reaches a caller."""


__all__ = ["CatalogError", "NotFound", "StoreUnavailable", "GeocodingUnavailable"]
