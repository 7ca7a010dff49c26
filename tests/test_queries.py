import pytest
import requests

from listing_index.core import queries as queries_module
from listing_index.core.cache import SnapshotCache
from listing_index.core.config import Settings
from listing_index.core.index_builder import build_snapshot
from listing_index.core.queries import ListingQueries, create_queries
from listing_index.vendors.supabase_rest import SupabaseClient, SupabaseError


class FakeDetailClient:
    def __init__(self, row=None, error=None):
        self.row = row
        self.error = error
        self.calls = []

    def fetch_row_by_id(self, listing_id):
        self.calls.append(("id", listing_id))
        if self.error:
            raise self.error
        return self.row

    def fetch_row_by_slug(self, slug):
        self.calls.append(("slug", slug))
        if self.error:
            raise self.error
        return self.row


def make_queries(listings, client=None, **build_kwargs):
    return ListingQueries(SnapshotCache(lambda: build_snapshot(listings, **build_kwargs)), client=client)


@pytest.fixture
def listings(make_listing):
    return [
        make_listing("A Likely Story", id=1, city="Atlanta", state="GA", county="Fulton County", tag_ids=(1, 3)),
        make_listing("Bound to Be Read", id=2, city="Atlanta", state="Georgia", county="Fulton", tag_ids=(2,)),
        make_listing("Charis Books", id=3, city="Decatur", state="GA", county="DeKalb County", tag_ids=(3,)),
        make_listing("Dog Eared", id=4, city="Portland", state="OR", tag_ids=(1,)),
        make_listing("Eagle Eye", id=5, city="Atlanta", state="GA", county="Fulton County"),
        make_listing("Fox Tale", id=6, city="Woodstock", state="GA", county="Cherokee"),
    ]


@pytest.fixture
def queries(listings):
    return make_queries(listings)


def ids(items):
    return [item.id for item in items]


def test_by_state_accepts_abbreviation_or_full_name(queries):
    assert ids(queries.by_state("GA")) == ids(queries.by_state("georgia"))
    assert sorted(ids(queries.by_state("Georgia"))) == [1, 2, 3, 5, 6]
    assert queries.count_by_state("ga") == 5
    assert queries.by_state("Texas") == []
    assert queries.by_state("") == []


def test_by_city_results_are_contained_in_state_results(queries):
    city_results = queries.by_city("Atlanta", "GA")
    state_ids = set(ids(queries.by_state("GA")))

    assert sorted(ids(city_results)) == [1, 2, 5]
    assert set(ids(city_results)) <= state_ids
    assert queries.by_city("atlanta", "Georgia") == city_results
    assert queries.by_city("Atlanta", "") == []


def test_by_county_accepts_name_with_or_without_suffix(queries):
    assert sorted(ids(queries.by_county("Fulton", "GA"))) == [1, 2, 5]
    assert sorted(ids(queries.by_county("fulton county", "Georgia"))) == [1, 2, 5]
    assert queries.by_county("Nowhere", "GA") == []


def test_by_tag_and_tag_keys(queries):
    assert ids(queries.by_tag(1)) == [1, 4]
    assert ids(queries.by_tag("3")) == [1, 3]
    assert queries.by_tag(99) == []
    assert queries.by_tag(None) == []
    assert queries.tags() == [1, 2, 3]


def test_filtered_state_spellings_are_equivalent(queries):
    canonical = queries.filtered(state="Georgia", city="Atlanta", county="Fulton County")
    loose = queries.filtered(state="GA", city="atlanta", county="fulton")

    assert sorted(ids(canonical)) == [1, 2, 5]
    assert ids(canonical) == ids(loose)


def test_filtered_needs_state_for_city_and_county(queries):
    assert len(queries.filtered(city="Atlanta")) == 6
    assert len(queries.filtered(county="Cherokee")) == 6
    assert ids(queries.filtered(state="GA", county="Cherokee")) == [6]


def test_filtered_tags_are_any_of(queries):
    assert sorted(ids(queries.filtered(tags=[2, 3]))) == [1, 2, 3]
    assert sorted(ids(queries.filtered(state="GA", tags="1,x"))) == [1]
    assert queries.filtered(tags="42") == []


def test_single_listing_lookups(queries, listings):
    assert queries.by_id(3) is listings[2]
    assert queries.by_id(404) is None
    assert queries.by_slug("Charis-Books") is listings[2]
    assert queries.by_slug("") is None
    assert queries.resolve("ga/atlanta/eagle-eye") is listings[4]


def test_by_slug_collision_prefers_later_listing(make_listing):
    first = make_listing("Main Street Books", id=10, city="Athens", state="GA")
    second = make_listing("Main Street Books", id=11, city="Macon", state="GA")
    queries = make_queries([first, second])

    assert queries.by_slug("main-street-books") is second
    assert queries.resolve("ga/athens/main-street-books") is first


def test_related_prefers_same_city_and_excludes_self(make_listing):
    crowd = [make_listing(f"Atlanta Shop {i}", city="Atlanta", state="GA") for i in range(120)]
    queries = make_queries(crowd)
    target = crowd[0]

    related = queries.related(target)

    assert len(related) == 6
    assert target.id not in ids(related)
    assert all(item.city == "Atlanta" for item in related)
    assert queries.related(target, limit=0) == []


def test_related_falls_back_to_state_then_featured(queries, listings):
    # Decatur has no neighbours, so the rest of GA is used.
    related = queries.related(listings[2])
    assert listings[2].id not in ids(related)
    assert set(ids(related)) <= {1, 5, 6}

    # Portland is alone in Oregon; featured picks fill in.
    fallback = queries.related(listings[3])
    assert listings[3].id not in ids(fallback)
    assert len(fallback) <= 6


def test_featured_popular_and_counts(make_listing):
    shops = [make_listing(f"Shop {i}", rating=float(i % 5), review_count=i) for i in range(20)]
    queries = make_queries(shops, featured_count=8, popular_count=15)

    assert len(queries.featured()) == 8
    assert len(queries.featured(count=3)) == 3
    assert queries.featured(count=-1) == []
    popular = queries.popular()
    assert len(popular) == 15
    assert [item.rating for item in popular] == sorted((item.rating for item in popular), reverse=True)
    assert len(queries.popular(limit=2)) == 2
    assert queries.total_count() == 20


def test_grouped_counts(queries):
    cities = queries.cities_with_state()
    counties = queries.counties_with_state()

    assert {"city": "Atlanta", "state": "GA", "count": 2} in cities
    assert {"city": "Atlanta", "state": "Georgia", "count": 1} in cities
    assert [row["city"] for row in cities] == sorted((row["city"] for row in cities), key=str.lower)
    assert {"county": "Cherokee", "state": "GA", "count": 1} in counties


def test_empty_snapshot_returns_empty_collections():
    queries = make_queries([])

    assert queries.all() == []
    assert queries.by_state("GA") == []
    assert queries.by_city("Atlanta", "GA") == []
    assert queries.filtered(state="GA", tags=[1]) == []
    assert queries.featured() == []
    assert queries.popular() == []
    assert queries.states() == []
    assert queries.cities_with_state() == []
    assert queries.resolve("anything") is None


def test_refresh_rebuilds_snapshot(listings):
    calls = []

    def loader():
        calls.append(1)
        return build_snapshot(listings)

    queries = ListingQueries(SnapshotCache(loader))
    first = queries.snapshot()
    second = queries.refresh()

    assert len(calls) == 2
    assert second is not first


def test_detail_loads_full_row(listings):
    client = FakeDetailClient(row={"id": 1, "name": "A Likely Story", "google_reviews": '[{"rating": 5}]'})
    queries = make_queries(listings, client=client)

    detail = queries.detail("a-likely-story")

    assert detail.reviews == [{"rating": 5}]
    assert client.calls == [("id", 1)]


def test_detail_falls_back_to_datastore_slug_lookup(listings):
    client = FakeDetailClient(row={"id": 77, "name": "Brand New Shop"})
    queries = make_queries(listings, client=client)

    detail = queries.detail("brand-new-shop-zzz")

    assert detail.id == 77
    assert client.calls == [("slug", "brand-new-shop-zzz")]


@pytest.mark.parametrize("error", [SupabaseError("boom"), requests.Timeout("slow")])
def test_detail_keeps_indexed_listing_when_fetch_fails(listings, error, caplog):
    queries = make_queries(listings, client=FakeDetailClient(error=error))

    with caplog.at_level("WARNING"):
        detail = queries.detail("charis-books")

    assert detail is listings[2]
    assert "Detail fetch failed" in " ".join(caplog.messages)


def test_detail_without_client_is_resolve(queries, listings):
    assert queries.detail("dog-eared") is listings[3]


def test_create_queries_wires_fetch_and_cache(monkeypatch):
    pages = [
        [{"id": 1, "name": "First", "city": "Atlanta", "state": "GA"}, {"id": 2, "name": "Second", "state": "GA"}],
        [{"id": 3, "name": "Third", "city": "Austin", "state": "TX"}],
    ]
    calls = []

    def fake_fetch_page(self, offset, limit, columns=None):
        calls.append((offset, limit))
        index = offset // limit
        return pages[index] if index < len(pages) else []

    monkeypatch.setattr(SupabaseClient, "fetch_page", fake_fetch_page)
    settings = Settings(supabase_url="https://db.example", supabase_key="anon", page_size=2)

    queries = create_queries(settings)

    assert isinstance(queries, queries_module.ListingQueries)
    assert queries.total_count() == 3
    assert queries.total_count() == 3
    assert calls == [(0, 2), (2, 2)]
    assert ids(queries.by_state("Texas")) == [3]


def test_lookups_tolerate_irregular_whitespace_in_state(make_listing):
    dirty = make_listing("Dirty Data", id=1, city="Albany", state="New  York")
    clean = make_listing("Clean Data", id=2, city="Albany", state="NY")
    queries = make_queries([dirty, clean])

    assert sorted(ids(queries.by_state("New  York"))) == [1, 2]
    assert sorted(ids(queries.by_state("new york"))) == [1, 2]
    assert ids(queries.by_city("Albany", "New  York")) == [1, 2]
    assert ids(queries.related(dirty)) == [2]
