import pytest

from listing_index.core.config import ConfigError, Settings
from listing_index.vendors import supabase_rest


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else []

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.responses = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, params, headers, timeout))
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(supabase_rest, "_SESSION", session)
    return session


@pytest.fixture
def client():
    return supabase_rest.SupabaseClient("https://demo.supabase.co/", "anon", table="bookstores", timeout=5)


def test_client_requires_credentials():
    with pytest.raises(ConfigError):
        supabase_rest.SupabaseClient("", "key")
    with pytest.raises(ConfigError):
        supabase_rest.SupabaseClient("https://demo.supabase.co", "")


def test_from_settings_uses_table_and_timeout():
    settings = Settings(supabase_url="https://demo.supabase.co", supabase_key="k", listings_table="shops", request_timeout=3)
    client = supabase_rest.SupabaseClient.from_settings(settings)
    assert client.endpoint == "https://demo.supabase.co/rest/v1/shops"
    assert client.timeout == 3


def test_fetch_page_success(patch_session, client):
    patch_session.responses.append(DummyResponse(payload=[{"id": 1, "name": "Acme"}]))

    rows = client.fetch_page(offset=1000, limit=1000)

    assert rows == [{"id": 1, "name": "Acme"}]
    url, params, headers, timeout = patch_session.calls[0]
    assert url == "https://demo.supabase.co/rest/v1/bookstores"
    assert params["live"] == "eq.true"
    assert params["order"] == "name.asc"
    assert params["offset"] == 1000
    assert params["limit"] == 1000
    assert headers["apikey"] == "anon"
    assert headers["Authorization"] == "Bearer anon"
    assert timeout == 5


def test_fetch_page_error_status(patch_session, client):
    patch_session.responses.append(DummyResponse(status_code=500, payload={"message": "boom"}))
    with pytest.raises(supabase_rest.SupabaseError, match="boom"):
        client.fetch_page(offset=0, limit=10)


def test_fetch_page_error_without_json_body(patch_session, client):
    patch_session.responses.append(DummyResponse(status_code=502, payload=ValueError("not json")))
    with pytest.raises(supabase_rest.SupabaseError, match="HTTP 502"):
        client.fetch_page(offset=0, limit=10)


def test_fetch_page_rejects_non_list_payload(patch_session, client):
    patch_session.responses.append(DummyResponse(payload={"unexpected": True}))
    with pytest.raises(supabase_rest.SupabaseError):
        client.fetch_page(offset=0, limit=10)


def test_fetch_row_by_id(patch_session, client):
    patch_session.responses.append(DummyResponse(payload=[{"id": 7, "name": "Acme"}]))

    row = client.fetch_row_by_id(7)

    assert row["id"] == 7
    params = patch_session.calls[0][1]
    assert params["id"] == "eq.7"
    assert "google_reviews" in params["select"]


def test_fetch_row_by_slug_falls_back_to_ilike(patch_session, client):
    patch_session.responses.extend([DummyResponse(payload=[]), DummyResponse(payload=[{"id": 3, "slug": "Main_St"}])])

    row = client.fetch_row_by_slug("main_st")

    assert row["id"] == 3
    assert patch_session.calls[0][1]["slug"] == "eq.main_st"
    assert patch_session.calls[1][1]["slug"] == "ilike.main\\_st"


def test_fetch_row_by_slug_missing(patch_session, client):
    patch_session.responses.extend([DummyResponse(payload=[]), DummyResponse(payload=[])])
    assert client.fetch_row_by_slug("nope") is None
