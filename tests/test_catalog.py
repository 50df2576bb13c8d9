import asyncio
from decimal import Decimal

import requests

from core.catalog import CatalogQuery, CsvCatalog, RestCatalog, make_catalog, to_products
from core.config import Settings
from core.errors import CatalogUnavailable
from core.models import PriceWindow, RecommendationFilters


def row(pid, price, category="Apparel"):
    return {"id": pid, "productDisplayName": f"Item {pid}", "price": price,
            "filename": f"{pid}.jpg", "masterCategory": category}


class FakeService:
    def __init__(self, products=None, error=None):
        self.products = products or []
        self.error = error
        self.calls = []

    async def query(self, category=None, min_price=None, max_price=None, limit=50):
        self.calls.append({"category": category, "min_price": min_price,
                           "max_price": max_price, "limit": limit})
        if self.error:
            raise self.error
        return list(self.products)

    async def get_by_id(self, product_id):
        if self.error:
            raise self.error
        return next((p for p in self.products if p.id == product_id), None)


# ---- CsvCatalog ----

def test_csv_category_and_numeric_price_filter(catalog_csv_path):
    cat = CsvCatalog(str(catalog_csv_path))
    out = asyncio.run(cat.query(category="Footwear", min_price=500, max_price=1000))
    assert out
    assert all(p.category == "Footwear" for p in out)
    assert all(Decimal(500) <= p.price <= Decimal(1000) for p in out)


def test_csv_respects_server_side_limit(catalog_csv_path):
    cat = CsvCatalog(str(catalog_csv_path))
    assert len(asyncio.run(cat.query(limit=50))) == 50


def test_csv_get_by_id(catalog_csv_path):
    cat = CsvCatalog(str(catalog_csv_path))
    p = asyncio.run(cat.get_by_id("10003"))
    assert p.display_name == "White Casual Shoes 3"
    assert p.price == Decimal("510.50")
    assert asyncio.run(cat.get_by_id("does-not-exist")) is None


def test_csv_missing_file_degrades_to_empty(tmp_path):
    q = CatalogQuery(CsvCatalog(str(tmp_path / "nope.csv")))
    assert asyncio.run(q.query(RecommendationFilters(category="Apparel"))) == []


def test_invalid_rows_are_dropped():
    products = to_products([row("1", "10"), row("2", "ten"), row("3", "7.25")])
    assert [p.id for p in products] == ["1", "3"]


def test_non_object_rows_are_dropped():
    assert [p.id for p in to_products(["oops", None, row("4", "12")])] == ["4"]


# ---- CatalogQuery ----

def test_display_trim_and_ascending_sort():
    svc = FakeService(to_products([row(str(i), str(100 - i)) for i in range(60)]))
    q = CatalogQuery(svc)
    out = asyncio.run(q.query(RecommendationFilters()))
    assert len(out) == 12
    assert [p.price for p in out] == sorted(p.price for p in out)
    assert svc.calls[0]["limit"] == 50
    # only the first 50 raw records are considered
    assert min(p.price for p in out) == Decimal(51)


def test_descending_only_when_requested():
    svc = FakeService(to_products([row("a", "5"), row("b", "50"), row("c", "9.5")]))
    out = asyncio.run(CatalogQuery(svc).query(RecommendationFilters(sort_order="descending")))
    assert [p.id for p in out] == ["b", "c", "a"]


def test_window_rechecked_client_side():
    # "95" <= "600" as text but 1500 > 600: simulates a string-compared transport
    svc = FakeService(to_products([row("a", "1500"), row("b", "250"), row("c", "95"), row("d", "600")]))
    window = PriceWindow(min=180, max=600)
    filters = RecommendationFilters(min_price=180, max_price=600)
    out = asyncio.run(CatalogQuery(svc).query(filters, window))
    assert [p.id for p in out] == ["b", "d"]
    assert svc.calls[0]["min_price"] == 180 and svc.calls[0]["max_price"] == 600


def test_catalog_failure_gives_empty_list():
    svc = FakeService(error=CatalogUnavailable("connection refused"))
    q = CatalogQuery(svc)
    assert asyncio.run(q.query(RecommendationFilters(category="Apparel"))) == []
    assert asyncio.run(q.get_by_id("1")) is None


def test_unexpected_backend_error_gives_empty_list():
    q = CatalogQuery(FakeService(error=AttributeError("'str' object has no attribute 'get'")))
    assert asyncio.run(q.query(RecommendationFilters())) == []
    assert asyncio.run(q.get_by_id("1")) is None


def test_limits_never_exceed_caps():
    q = CatalogQuery(FakeService(), raw_limit=500, display_limit=100)
    assert q.raw_limit == 50 and q.display_limit == 12


# ---- RestCatalog ----

class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status
    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")
    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.headers = {}
        self.response = response
        self.exc = exc
        self.requests = []
    def get(self, url, params=None):
        self.requests.append((url, params))
        if self.exc:
            raise self.exc
        return self.response


def test_rest_builds_postgrest_filters():
    sess = FakeSession(FakeResponse([row("7", "199.99", "Footwear")]))
    cat = RestCatalog("https://example.test/", "walamart_data", api_key="k", session=sess)
    out = asyncio.run(cat.query(category="Footwear", min_price=100, max_price=300, limit=50))

    url, params = sess.requests[0]
    assert url == "https://example.test/rest/v1/walamart_data"
    assert ("masterCategory", "eq.Footwear") in params
    assert ("price", "gte.100") in params and ("price", "lte.300") in params
    assert ("limit", "50") in params
    assert sess.headers["apikey"] == "k"
    assert out[0].price == Decimal("199.99")


def test_rest_errors_become_catalog_unavailable():
    for sess in (FakeSession(exc=requests.ConnectionError("down")),
                 FakeSession(FakeResponse({"message": "bad"}, status=500)),
                 FakeSession(FakeResponse({"not": "a list"})),
                 FakeSession(FakeResponse(["oops"]))):
        q = CatalogQuery(RestCatalog("https://example.test", "t", session=sess))
        assert asyncio.run(q.query(RecommendationFilters())) == []


def test_make_catalog_picks_backend():
    assert isinstance(make_catalog(Settings(CATALOG_BACKEND="csv")), CsvCatalog)
    assert isinstance(make_catalog(Settings(CATALOG_BACKEND="rest", CATALOG_URL="http://x")), RestCatalog)
