"""Turn a free-text location into coordinates.

`GoogleGeocoder` is the network collaborator. `GeocodingAdapter` wraps any
geocoder and turns every failure (exception, timeout, no match) into
`None`: an ungeocodable location degrades a search, it never fails it.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional, Protocol, Tuple

import requests

from carecost.search.errors import GeocodingUnavailable
from carecost.search.models import Coordinate
from carecost.tools.http import safe_get

logger = logging.getLogger(__name__)

GOOGLE_BASE = "https://maps.googleapis.com/maps/api/geocode/json"
GOOGLE_TIMEOUT = 10

DEFAULT_CACHE_MAX_ENTRIES = 10_000

_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")

# Centroids used when Google has no answer for a bare ZIP code
KNOWN_ZIP_CENTROIDS: Dict[str, Coordinate] = {
    "90210": Coordinate(latitude=34.0736, longitude=-118.4004),
    "10001": Coordinate(latitude=40.7501, longitude=-73.9996),
    "60601": Coordinate(latitude=41.8842, longitude=-87.6212),
}


class Geocoder(Protocol):
    def geocode(self, text: str) -> Optional[Coordinate]: ...


class GoogleGeocoder:
    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = GOOGLE_BASE,
        timeout: float = GOOGLE_TIMEOUT,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    def geocode(self, text: str) -> Optional[Coordinate]:
        if not self.api_key:
            raise GeocodingUnavailable("GOOGLE_MAPS_API_KEY is not configured")

        address = text.strip()
        is_zip = bool(_ZIP_RE.match(address))
        if is_zip:
            address = f"{address}, USA"

        try:
            response = safe_get(
                self.base_url,
                params={"address": address, "key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            raise GeocodingUnavailable(f"Google geocoder timed out: {exc}") from exc
        except (requests.RequestException, ValueError) as exc:
            raise GeocodingUnavailable(f"Google geocoder error: {exc}") from exc

        status = data.get("status", "")
        results = data.get("results") or []
        if status != "OK" or not results:
            logger.info("Google: status %r with %d results", status, len(results))
            if is_zip:
                fallback = KNOWN_ZIP_CENTROIDS.get(address[:5])
                if fallback is not None:
                    logger.info("Using built-in centroid for ZIP %s", address[:5])
                    return fallback
            return None

        location = (results[0].get("geometry") or {}).get("location") or {}
        lat, lng = location.get("lat"), location.get("lng")
        if lat is None or lng is None:
            return None
        return Coordinate(latitude=float(lat), longitude=float(lng))


def normalize_location_text(text: str) -> str:
    return " ".join(text.split()).lower()


class GeocodeCache:
    """Process-wide TTL cache of geocode outcomes.

    Misses are cached too, under their own shorter TTL, so a location that
    failed to resolve is retried once that TTL lapses. Keys are user input,
    so `put` sweeps expired entries and evicts the oldest ones beyond
    `max_entries`.
    """

    def __init__(
        self,
        ttl_s: float,
        negative_ttl_s: float,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_s = ttl_s
        self.negative_ttl_s = negative_ttl_s
        self.max_entries = max(1, max_entries)
        self._clock = clock
        # Insertion order is write order; expiry times are not monotonic
        # because hits and misses use different TTLs.
        self._entries: "OrderedDict[str, Tuple[float, Optional[Coordinate]]]" = (
            OrderedDict()
        )

    def get(self, key: str) -> Tuple[bool, Optional[Coordinate]]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return False, None
        return True, value

    def _sweep(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]

    def put(self, key: str, value: Optional[Coordinate]) -> None:
        ttl = self.ttl_s if value is not None else self.negative_ttl_s
        if ttl <= 0:
            return
        now = self._clock()
        if len(self._entries) >= self.max_entries:
            self._sweep(now)
        self._entries.pop(key, None)
        self._entries[key] = (now + ttl, value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        # Live entries only
        self._sweep(self._clock())
        return len(self._entries)


class GeocodingAdapter:
    def __init__(
        self,
        geocoder: Geocoder,
        *,
        timeout_s: float = 5.0,
        cache: Optional[GeocodeCache] = None,
    ):
        self.geocoder = geocoder
        self.timeout_s = timeout_s
        self.cache = cache

    async def resolve(self, location_text: Optional[str]) -> Optional[Coordinate]:
        text = (location_text or "").strip()
        if not text:
            return None

        key = normalize_location_text(text)
        if self.cache is not None:
            hit, cached = self.cache.get(key)
            if hit:
                logger.debug("Geocode cache hit for %r", key)
                return cached

        # CancelledError is not an Exception: a cancelled caller abandons
        # the request instead of falling back to an unfiltered search.
        try:
            coordinate = await asyncio.wait_for(
                asyncio.to_thread(self.geocoder.geocode, text),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Geocoding timed out after %.1fs", self.timeout_s)
            return None
        except Exception as exc:
            logger.warning("Geocoding failed: %s", exc)
            return None

        if coordinate is None:
            logger.info("Geocoder found no match for the requested location")
        if self.cache is not None:
            self.cache.put(key, coordinate)
        return coordinate
