import asyncio
import threading

import pytest
import requests

from carecost.search import geocoding
from carecost.search.errors import GeocodingUnavailable
from carecost.search.geocoding import (
    GeocodeCache,
    GeocodingAdapter,
    GoogleGeocoder,
    normalize_location_text,
)
from carecost.search.models import Coordinate

LA = Coordinate(latitude=34.052235, longitude=-118.243683)


class _Resp:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


def _google_ok(lat, lng):
    return {"status": "OK", "results": [{"geometry": {"location": {"lat": lat, "lng": lng}}}]}


def test_google_geocoder_returns_first_result(monkeypatch):
    captured = {}

    def fake_get(url, *, params=None, timeout=None, **kwargs):
        captured["url"] = url
        captured["params"] = params
        captured["timeout"] = timeout
        return _Resp(_google_ok(34.05, -118.24))

    monkeypatch.setattr(geocoding, "safe_get", fake_get)

    coord = GoogleGeocoder("k3y", timeout=3).geocode(" Los Angeles, CA ")
    assert coord == Coordinate(latitude=34.05, longitude=-118.24)
    assert captured["url"] == geocoding.GOOGLE_BASE
    assert captured["params"] == {"address": "Los Angeles, CA", "key": "k3y"}
    assert captured["timeout"] == 3


def test_google_geocoder_adds_country_to_zip(monkeypatch):
    seen = []

    def fake_get(url, *, params=None, **kwargs):
        seen.append(params["address"])
        return _Resp(_google_ok(1, 2))

    monkeypatch.setattr(geocoding, "safe_get", fake_get)
    GoogleGeocoder("k").geocode("90012")
    GoogleGeocoder("k").geocode("90012-1234")
    assert seen == ["90012, USA", "90012-1234, USA"]


def test_google_geocoder_zero_results_uses_known_zip(monkeypatch):
    monkeypatch.setattr(
        geocoding, "safe_get", lambda *a, **k: _Resp({"status": "ZERO_RESULTS", "results": []})
    )
    g = GoogleGeocoder("k")
    assert g.geocode("90210") == geocoding.KNOWN_ZIP_CENTROIDS["90210"]
    assert g.geocode("12345") is None
    assert g.geocode("nowhere at all") is None


def test_google_geocoder_without_key_is_unavailable(monkeypatch):
    def boom(*a, **k):
        raise AssertionError("must not call out without a key")

    monkeypatch.setattr(geocoding, "safe_get", boom)
    with pytest.raises(GeocodingUnavailable):
        GoogleGeocoder(None).geocode("Los Angeles")


@pytest.mark.parametrize(
    "error",
    [requests.Timeout("slow"), requests.ConnectionError("down"), ValueError("bad json")],
)
def test_google_geocoder_transport_errors(monkeypatch, error):
    def fail(*a, **k):
        raise error

    monkeypatch.setattr(geocoding, "safe_get", fail)
    with pytest.raises(GeocodingUnavailable):
        GoogleGeocoder("k").geocode("Los Angeles")


def test_google_geocoder_http_error(monkeypatch):
    monkeypatch.setattr(geocoding, "safe_get", lambda *a, **k: _Resp({}, status_code=500))
    with pytest.raises(GeocodingUnavailable):
        GoogleGeocoder("k").geocode("Los Angeles")


def test_normalize_location_text():
    assert normalize_location_text("  Los   Angeles\tCA ") == "los angeles ca"


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_cache_expires_hits_and_misses_separately():
    clock = _Clock()
    cache = GeocodeCache(ttl_s=60, negative_ttl_s=10, clock=clock)
    cache.put("la", LA)
    cache.put("atlantis", None)
    assert cache.get("la") == (True, LA)
    assert cache.get("atlantis") == (True, None)

    clock.now += 11
    assert cache.get("atlantis") == (False, None)
    assert cache.get("la") == (True, LA)

    clock.now += 50
    assert cache.get("la") == (False, None)
    assert len(cache) == 0


def test_cache_with_zero_ttl_stores_nothing():
    cache = GeocodeCache(ttl_s=0, negative_ttl_s=0)
    cache.put("la", LA)
    assert len(cache) == 0


class _Geocoder:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def geocode(self, text):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def test_adapter_blank_text_skips_geocoder():
    g = _Geocoder(result=LA)
    adapter = GeocodingAdapter(g)
    assert asyncio.run(adapter.resolve("   ")) is None
    assert asyncio.run(adapter.resolve(None)) is None
    assert g.calls == 0


def test_adapter_turns_errors_into_none():
    adapter = GeocodingAdapter(_Geocoder(error=GeocodingUnavailable("no key")))
    assert asyncio.run(adapter.resolve("Los Angeles")) is None

    adapter = GeocodingAdapter(_Geocoder(error=RuntimeError("boom")))
    assert asyncio.run(adapter.resolve("Los Angeles")) is None


def test_adapter_times_out():
    release = threading.Event()

    class _Slow:
        def geocode(self, text):
            release.wait(5)
            return LA

    adapter = GeocodingAdapter(_Slow(), timeout_s=0.05)

    async def main():
        try:
            return await adapter.resolve("Los Angeles")
        finally:
            # let the worker thread finish so the loop can shut down
            release.set()

    assert asyncio.run(main()) is None


def test_adapter_caches_results_but_not_failures():
    cache = GeocodeCache(ttl_s=60, negative_ttl_s=10)
    g = _Geocoder(result=LA)
    adapter = GeocodingAdapter(g, cache=cache)

    assert asyncio.run(adapter.resolve("Los Angeles")) == LA
    assert asyncio.run(adapter.resolve("  los angeles ")) == LA
    assert g.calls == 1

    failing = _Geocoder(error=RuntimeError("boom"))
    adapter = GeocodingAdapter(failing, cache=cache)
    assert asyncio.run(adapter.resolve("Sacramento")) is None
    assert asyncio.run(adapter.resolve("Sacramento")) is None
    assert failing.calls == 2


def test_adapter_propagates_cancellation():
    release = threading.Event()

    class _Slow:
        def geocode(self, text):
            release.wait(5)
            return LA

    adapter = GeocodingAdapter(_Slow(), timeout_s=10)

    async def main():
        task = asyncio.create_task(adapter.resolve("Los Angeles"))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            with pytest.raises(asyncio.CancelledError):
                await task
        finally:
            release.set()

    asyncio.run(main())


def test_expired_misses_do_not_accumulate():
    clock = _Clock()
    cache = GeocodeCache(ttl_s=60, negative_ttl_s=10, clock=clock)
    adapter = GeocodingAdapter(_Geocoder(result=None), cache=cache)

    async def main():
        for i in range(500):
            await adapter.resolve(f"garbage-{i}")

    asyncio.run(main())
    assert len(cache) == 500

    clock.now += 10_000
    assert len(cache) == 0


def test_cache_is_bounded_and_evicts_oldest():
    clock = _Clock()
    cache = GeocodeCache(ttl_s=60, negative_ttl_s=10, max_entries=3, clock=clock)
    for i in range(5):
        cache.put(f"place-{i}", LA)

    assert len(cache) == 3
    assert cache.get("place-0") == (False, None)
    assert cache.get("place-1") == (False, None)
    assert cache.get("place-4") == (True, LA)


def test_full_cache_sweeps_expired_before_evicting():
    clock = _Clock()
    cache = GeocodeCache(ttl_s=60, negative_ttl_s=10, max_entries=3, clock=clock)
    cache.put("la", LA)
    cache.put("miss-1", None)
    cache.put("miss-2", None)

    clock.now += 11  # both misses expire, the hit is still live
    cache.put("sf", LA)
    assert cache.get("la") == (True, LA)
    assert cache.get("sf") == (True, LA)
    assert len(cache) == 2
