from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQS = Counter(
    "tradeboard_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "tradeboard_latency_seconds",
    "Latency",
    ["method", "path"],
)
CACHE = Counter(
    "tradeboard_cache_lookups_total",
    "Response cache lookups",
    ["result"],
)
SHEETS_ERRORS = Counter(
    "tradeboard_sheets_errors_total",
    "Failed spreadsheet calls",
    ["kind"],
)


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r
