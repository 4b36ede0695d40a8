from conftest import auth

from tradeboard.cache import ResponseCache
from tradeboard.errors import RateLimitedError, UpstreamError

PERF = "Trade-History!H1:N1"


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _client(make_client, sheets, clock):
    client, ctx = make_client()
    ctx.cache = ResponseCache(ttl=30, stale_for=3600, clock=clock)
    return client


def test_cache_expires_after_ttl():
    clock = Clock()
    cache = ResponseCache(ttl=30, clock=clock)
    cache.set("k", {"v": 1})
    clock.now += 29.9
    assert cache.get("k") == {"v": 1}
    clock.now += 0.1
    assert cache.get("k") is None
    assert cache.get_stale("k") == {"v": 1}


def test_stale_value_dropped_after_stale_window():
    clock = Clock()
    cache = ResponseCache(ttl=30, stale_for=60, clock=clock)
    cache.set("k", "v")
    clock.now += 61
    assert cache.get_stale("k") is None
    assert len(cache) == 0


def test_performance_snapshot_shape(make_client, sheets):
    sheets.ranges[PERF] = [[12.5, "", 3.2, "", 1234.5, "", 98765.49]]
    client = _client(make_client, sheets, Clock())
    response = client.get("/api/performance-data", headers=auth())
    assert response.status_code == 200
    assert response.json() == {
        "thisWeek": "12.50",
        "lastWeek": "3.20",
        "monthly": 1235,
        "yearly": 98765,
    }


def test_performance_missing_cells_default_to_zero(make_client, sheets):
    sheets.ranges[PERF] = [["n/a", None, 4]]
    client = _client(make_client, sheets, Clock())
    body = client.get("/api/performance-data", headers=auth()).json()
    assert body == {"thisWeek": "0.00", "lastWeek": "4.00", "monthly": 0, "yearly": 0}


def test_second_read_within_ttl_is_served_from_cache(make_client, sheets):
    sheets.ranges[PERF] = [[1, 0, 2, 0, 3, 0, 4]]
    clock = Clock()
    client = _client(make_client, sheets, clock)

    first = client.get("/api/performance-data", headers=auth()).json()
    sheets.ranges[PERF] = [[9, 0, 9, 0, 9, 0, 9]]
    clock.now += 20
    second = client.get("/api/performance-data", headers=auth()).json()

    assert first == second
    assert sheets.reads[PERF] == 1


def test_read_after_ttl_refetches(make_client, sheets):
    sheets.ranges[PERF] = [[1, 0, 2, 0, 3, 0, 4]]
    clock = Clock()
    client = _client(make_client, sheets, clock)

    client.get("/api/performance-data", headers=auth())
    sheets.ranges[PERF] = [[9, 0, 9, 0, 9, 0, 9]]
    clock.now += 31
    refreshed = client.get("/api/performance-data", headers=auth()).json()

    assert refreshed["thisWeek"] == "9.00"
    assert sheets.reads[PERF] == 2


def test_stale_on_error_serves_previous_value(make_client, sheets):
    sheets.ranges[PERF] = [[1, 0, 2, 0, 3, 0, 4]]
    clock = Clock()
    client = _client(make_client, sheets, clock)

    first = client.get("/api/performance-data", headers=auth()).json()
    clock.now += 31
    sheets.fail = UpstreamError(detail="socket closed")
    response = client.get("/api/performance-data", headers=auth())

    assert response.status_code == 200
    assert response.json() == first
    assert sheets.reads[PERF] == 2


def test_error_without_cached_value(make_client, sheets):
    client = _client(make_client, sheets, Clock())
    sheets.fail = UpstreamError(detail="socket closed")
    response = client.get("/api/performance-data", headers=auth())
    assert response.status_code == 500
    assert response.json()["error"] == "Upstream service error"


def test_error_details_hidden_in_production(make_client, sheets):
    client, ctx = make_client(APP_ENV="production")
    sheets.fail = UpstreamError(detail="socket closed")
    response = client.get("/api/performance-data", headers=auth())
    assert response.status_code == 500
    assert response.json() == {"error": "Upstream service error"}


def test_rate_limit_surfaces_as_429(make_client, sheets):
    client = _client(make_client, sheets, Clock())
    sheets.fail = RateLimitedError()
    response = client.get("/api/performance-data", headers=auth())
    assert response.status_code == 429
    assert response.json()["error"] == "Rate limit exceeded"


def test_empty_range_without_cache_is_not_found(make_client, sheets):
    client = _client(make_client, sheets, Clock())
    response = client.get("/api/performance-data", headers=auth())
    assert response.status_code == 404
    assert response.json()["error"] == "No data found in spreadsheet"
