import pytest
import requests

from catalog import CatalogError, InMemoryCatalog, SupabaseCatalog
from conftest import make_record


def test_upsert_replaces_on_id_conflict():
    catalog = InMemoryCatalog([make_record("P1", "Panadol")])
    catalog.upsert([make_record("P1", "Panadol Advance"), make_record("B1", "Brufen")])
    assert len(catalog) == 2
    assert catalog.search("name", "panadol", 10)[0].name == "Panadol Advance"


def test_search_is_case_insensitive_substring_and_limited(catalog):
    hits = catalog.search("name", "PANADOL", 10)
    assert [r.id for r in hits] == ["P2", "P1"]
    assert len(catalog.search("category", "analgesic", 2)) == 2
    assert catalog.search("generic_name", "ibuprofen", 10)[0].id == "B1"


def test_search_empty_term_returns_nothing(catalog):
    assert catalog.search("name", "  ", 10) == []


def test_search_rejects_unknown_field(catalog):
    with pytest.raises(ValueError):
        catalog.search("manufacturer", "gsk", 10)


def test_find_by_barcode(catalog):
    assert catalog.find_by_barcode("8964000000011").id == "P1"
    assert catalog.find_by_barcode("nope") is None
    assert catalog.find_by_barcode("") is None


def test_sample_keeps_catalog_order(catalog):
    assert [r.id for r in catalog.sample(2)] == ["P2", "P1"]


# -------------------------
# Supabase / PostgREST backend
# -------------------------
class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.headers = {}
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append(("GET", url, params, timeout))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def post(self, url, params=None, json=None, headers=None, timeout=None):
        self.requests.append(("POST", url, params, json, headers))
        return self.response


def supabase(response):
    session = FakeSession(response)
    return SupabaseCatalog("https://demo.supabase.co/", "anon-key", session=session, timeout=2.0), session


def test_supabase_search_uses_parameterized_ilike():
    rows = [{"id": "P1", "name": "Panadol", "generic_name": "Paracetamol", "side_effects": None}]
    catalog, session = supabase(FakeResponse(rows))

    hits = catalog.search("name", "pana*dol%", 10)

    method, url, params, timeout = session.requests[0]
    assert url == "https://demo.supabase.co/rest/v1/medicines"
    assert params["name"] == "ilike.*panadol*"
    assert params["limit"] == "10"
    assert timeout == 2.0
    assert session.headers["apikey"] == "anon-key"
    assert hits[0].id == "P1"
    assert hits[0].side_effects == []


def test_supabase_skips_malformed_rows():
    catalog, _ = supabase(FakeResponse([{"id": "", "name": "Broken"}, {"id": "B1", "name": "Brufen"}]))
    assert [r.id for r in catalog.search("name", "bru", 10)] == ["B1"]


@pytest.mark.parametrize("response", [
    FakeResponse([], status_code=500),
    FakeResponse(ValueError("not json")),
    FakeResponse({"message": "oops"}),
    requests.ConnectionError("down"),
])
def test_supabase_failures_raise_catalog_error(response):
    catalog, _ = supabase(response)
    with pytest.raises(CatalogError):
        catalog.search("generic_name", "paracetamol", 10)


def test_supabase_barcode_lookup():
    catalog, session = supabase(FakeResponse([{"id": "P1", "name": "Panadol", "barcode": "123"}]))
    assert catalog.find_by_barcode("123").id == "P1"
    assert session.requests[0][2]["barcode"] == "eq.123"


def test_supabase_upsert_merges_on_id():
    catalog, session = supabase(FakeResponse(None, status_code=201))
    count = catalog.upsert([make_record("P1", "Panadol"), make_record("B1", "Brufen")])
    method, url, params, payload, headers = session.requests[0]
    assert count == 2
    assert params == {"on_conflict": "id"}
    assert "merge-duplicates" in headers["Prefer"]
    assert payload[0]["generic_name"] == ""


def test_supabase_requires_url():
    with pytest.raises(ValueError):
        SupabaseCatalog("", "key")
