import json
from types import SimpleNamespace

from limits import parse
from starlette.requests import Request

from storefront_backend.core.rate_limit import get_client_ip, rate_limit_exceeded_handler


def make_request(headers=None, client=("10.0.0.9", 5000)) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/api/delivery/check-pincode",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    })


def test_forwarded_for_uses_first_hop():
    request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

    assert get_client_ip(request) == "203.0.113.7"


def test_real_ip_header():
    assert get_client_ip(make_request({"X-Real-IP": "198.51.100.2"})) == "198.51.100.2"


def test_direct_connection():
    assert get_client_ip(make_request()) == "10.0.0.9"


def test_exceeded_handler_reports_window():
    exc = SimpleNamespace(detail="30 per 1 minute", limit=SimpleNamespace(limit=parse("30/minute")))

    resp = rate_limit_exceeded_handler(make_request(), exc)

    body = json.loads(resp.body)
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "60"
    assert body["success"] is False
    assert body["retry_after"] == 60
