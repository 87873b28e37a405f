import copy
import json
import pytest
from fastapi.testclient import TestClient
from carecost.config import settings
from carecost.search.geocoding import GeocodingAdapter
from carecost.search.models import Coordinate
from carecost.search.service import SearchService
from carecost.store.memory import InMemoryCatalogStore

LA = Coordinate(latitude=34.052235, longitude=-118.243683)
SACRAMENTO = Coordinate(latitude=38.575764, longitude=-121.478851)
SAN_FRANCISCO = Coordinate(latitude=37.774929, longitude=-122.419418)


@pytest.fixture(autouse=True)
def set_test_env(monkeypatch, tmp_path):
    # Safer defaults for tests
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("APP_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.delenv("OUTBOUND_ALLOWLIST", raising=False)

    monkeypatch.setattr(settings, "data_dir", str(tmp_path))
    monkeypatch.setattr(settings, "catalog_backend", "memory")
    # Never reach the real geocoding API from tests
    monkeypatch.setattr(settings, "google_maps_api_key", None)


_CATALOG = {
    "categories": [
        {"id": "cat-imaging", "name": "Diagnostic Imaging"},
        {"id": "cat-lab", "name": "Laboratory"},
    ],
    "templates": [
        {
            "id": "t-mri",
            "name": "MRI Brain",
            "description": "Magnetic resonance imaging of the head",
            "search_terms": "mri brain",
            "category_id": "cat-imaging",
        },
        {
            "id": "t-ct",
            "name": "CT Abdomen",
            "description": "Computed tomography",
            "search_terms": "ct cat scan",
            "category_id": "cat-imaging",
        },
        {
            "id": "t-xray",
            "name": "Chest X-Ray",
            "description": "Two-view chest radiograph",
            "search_terms": "xray radiograph",
            "category_id": "cat-imaging",
        },
        {
            "id": "t-cbc",
            "name": "complete blood count",
            "description": "CBC panel",
            "search_terms": "cbc blood",
            "category_id": "cat-lab",
        },
        {
            "id": "t-retired",
            "name": "MRI Legacy",
            "category_id": "cat-imaging",
            "is_active": False,
        },
    ],
    "providers": [
        {
            "id": "p-la",
            "organization_name": "Los Angeles Imaging",
            "bio": "Outpatient imaging",
            "logo_url": "https://example.com/la.png",
            "specialties": ["Radiology"],
            "rating": 4.5,
        },
        {
            "id": "p-sac",
            "organization_name": "Sacramento Diagnostics",
            "bio": "Imaging and lab work",
            "specialties": ["Radiology", "Laboratory"],
            "rating": 4.0,
        },
        {
            "id": "p-sf",
            "organization_name": "Bay Area Labs",
            "bio": "Walk-in blood work",
            "specialties": ["Laboratory"],
            "rating": 4.9,
        },
        {
            "id": "p-lapsed",
            "organization_name": "Lapsed Clinic",
            "specialties": ["Radiology"],
            "subscription_status": "CANCELED",
        },
    ],
    "locations": [
        {
            "id": "l-la",
            "provider_id": "p-la",
            "name": "Downtown",
            "address1": "100 S Main St",
            "city": "Los Angeles",
            "state": "CA",
            "zip_code": "90012",
            "latitude": LA.latitude,
            "longitude": LA.longitude,
        },
        {
            "id": "l-closed",
            "provider_id": "p-la",
            "name": "Closed branch",
            "latitude": LA.latitude,
            "longitude": LA.longitude,
            "is_active": False,
        },
        {
            "id": "l-sac",
            "provider_id": "p-sac",
            "name": "Midtown",
            "city": "Sacramento",
            "state": "CA",
            "latitude": SACRAMENTO.latitude,
            "longitude": SACRAMENTO.longitude,
        },
        {
            "id": "l-sf",
            "provider_id": "p-sf",
            "name": "Civic Center",
            "city": "San Francisco",
            "state": "CA",
            "latitude": SAN_FRANCISCO.latitude,
            "longitude": SAN_FRANCISCO.longitude,
        },
        {"id": "l-nocoord", "provider_id": "p-sf", "name": "Pop-up"},
        {
            "id": "l-lapsed",
            "provider_id": "p-lapsed",
            "latitude": LA.latitude,
            "longitude": LA.longitude,
        },
    ],
    "offerings": [
        {"id": "o-mri-la", "template_id": "t-mri", "location_id": "l-la", "price": 1200, "average_market_price": 2000},
        {"id": "o-mri-sac", "template_id": "t-mri", "location_id": "l-sac", "price": 1000},
        {"id": "o-mri-nocoord", "template_id": "t-mri", "location_id": "l-nocoord", "price": 900},
        {"id": "o-mri-closed", "template_id": "t-mri", "location_id": "l-closed", "price": 800},
        {"id": "o-mri-off", "template_id": "t-mri", "location_id": "l-la", "price": 100, "is_active": False},
        {"id": "o-ct-la", "template_id": "t-ct", "location_id": "l-la", "price": 750},
        {"id": "o-xray-la", "template_id": "t-xray", "location_id": "l-la", "price": 120},
        {"id": "o-xray-sac", "template_id": "t-xray", "location_id": "l-sac", "price": 150},
        {"id": "o-xray-sf", "template_id": "t-xray", "location_id": "l-sf", "price": 300},
        {"id": "o-xray-nocoord", "template_id": "t-xray", "location_id": "l-nocoord", "price": 90},
        {"id": "o-cbc-sf", "template_id": "t-cbc", "location_id": "l-sf", "price": 40, "average_market_price": 80},
        {"id": "o-retired-la", "template_id": "t-retired", "location_id": "l-la", "price": 10},
    ],
}


@pytest.fixture()
def catalog_data():
    return copy.deepcopy(_CATALOG)


@pytest.fixture()
def store(catalog_data):
    return InMemoryCatalogStore.from_dict(catalog_data)


class StubGeocoder:
    """Resolves a fixed set of place names; records every call."""

    def __init__(self, places=None):
        self.places = places if places is not None else {
            "los angeles": LA,
            "90012": LA,
            "sacramento": SACRAMENTO,
            "san francisco": SAN_FRANCISCO,
        }
        self.calls = []
        self.error = None

    def geocode(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.places.get(text.strip().lower())


@pytest.fixture()
def geocoder():
    return StubGeocoder()


@pytest.fixture()
def service(store, geocoder):
    return SearchService(store, GeocodingAdapter(geocoder, timeout_s=2.0))


@pytest.fixture()
def client(monkeypatch, service):
    # Avoid loading the seed file and building the Google geocoder at startup
    import carecost.main as main

    monkeypatch.setattr(main, "build_search_service", lambda: service)

    with TestClient(main.app) as c:
        yield c


class _FakeES:
    def __init__(self):
        self.calls = []
        self.handlers = []  # list of (predicate, response)
        self.indices = self._Indices()

    class _Indices:
        def __init__(self):
            self.created = []
            self.existing = set()

        def create(self, index, mappings):
            self.created.append((index, mappings))
            self.existing.add(index)

        def exists(self, index):
            return index in self.existing

    def info(self):
        return {"cluster_name": "test_cluster"}

    def add_handler(self, predicate, response):
        self.handlers.append((predicate, response))

    def search(self, index: str, query: dict, size: int = 10, **kwargs):
        self.calls.append((index, json.loads(json.dumps(query)), size))
        for pred, resp in self.handlers:
            if pred(index, query):
                if isinstance(resp, Exception):
                    raise resp
                return resp
        # default empty
        return {"hits": {"hits": []}}


@pytest.fixture()
def fake_es(monkeypatch):
    fake = _FakeES()

    # Patch the Elasticsearch class itself
    monkeypatch.setattr(
        "carecost.tools.es_client.Elasticsearch", lambda *args, **kwargs: fake
    )

    import carecost.tools.es_client

    monkeypatch.setattr(carecost.tools.es_client, "_es_client", None)

    return fake


@pytest.fixture()
def es_hits():
    def hits(docs):
        return {"hits": {"hits": [{"_source": d} for d in docs]}}

    return hits
