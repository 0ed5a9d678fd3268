import fakeredis
import pytest

from api import create_app, shutdown_app
from api.config import (
    DEFAULT_JWT_SECRET,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    get_config,
    validate_config,
)
from api.errors import STATUS_BY_KIND
from utils.results import ApiError, ErrorKind, Outcome

API = "/api/v1"


def test_health(client):
    resp = client.get(f"{API}/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["services"] == {"database": "connected", "redis": "connected"}


def test_health_reports_redis_outage():
    server = fakeredis.FakeServer()
    server.connected = False
    app = create_app("testing", redis_client=fakeredis.FakeRedis(server=server))
    try:
        resp = app.test_client().get(f"{API}/health")
        assert resp.status_code == 503
        body = resp.get_json()
        assert body["status"] == "unhealthy"
        assert body["services"]["redis"] == "disconnected"
    finally:
        shutdown_app(app)


def test_health_reports_redis_outage_with_rate_limiting_on():
    server = fakeredis.FakeServer()
    server.connected = False
    app = create_app("testing", redis_client=fakeredis.FakeRedis(server=server))
    app.config["RATELIMIT_ENABLED"] = True
    try:
        resp = app.test_client().get(f"{API}/health")
        assert resp.status_code == 503
        assert resp.get_json()["services"]["redis"] == "disconnected"
    finally:
        shutdown_app(app)


def test_auth_routes_are_mounted_under_auth(app):
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    for path in ("register", "login", "refresh", "logout", "me"):
        assert f"{API}/auth/{path}" in rules
    assert f"{API}/login" not in rules


def test_root_index(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.get_json()["health"] == "/api/v1/health"


def test_unknown_route_envelope(client):
    resp = client.get(f"{API}/nope")
    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "message": "Route not found", "code": "NOT_FOUND"}


def test_method_not_allowed(client):
    resp = client.delete(f"{API}/health", headers={"Authorization": "Bearer x"})
    assert resp.status_code == 405
    assert resp.get_json()["code"] == "METHOD_NOT_ALLOWED"


def test_bad_pagination(api, client, alice):
    resp = client.get(f"{API}/projects?page=abc", headers=api.bearer(alice["accessToken"]))
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_every_error_kind_has_a_status():
    assert set(STATUS_BY_KIND) == set(ErrorKind)
    assert STATUS_BY_KIND[ErrorKind.EXPIRED_TOKEN] == 401
    assert STATUS_BY_KIND[ErrorKind.CSRF_INVALID] == 403
    assert STATUS_BY_KIND[ErrorKind.RATE_LIMITED] == 429


def test_outcome_unwrap():
    assert Outcome.success(3).unwrap() == 3
    with pytest.raises(ApiError) as exc:
        Outcome.failure(ErrorKind.FORBIDDEN, "no").unwrap()
    assert exc.value.kind is ErrorKind.FORBIDDEN
    assert exc.value.message == "no"


def test_get_config_selection():
    assert get_config("testing") is TestingConfig
    assert get_config("production") is ProductionConfig
    assert get_config("dev") is DevelopmentConfig


def test_production_refuses_default_secrets():
    with pytest.raises(RuntimeError):
        validate_config({"APP_ENV": "prod", "JWT_SECRET": DEFAULT_JWT_SECRET,
                         "JWT_REFRESH_SECRET": "x"})
    with pytest.raises(RuntimeError):
        validate_config({"APP_ENV": "prod", "JWT_SECRET": "same", "JWT_REFRESH_SECRET": "same"})
    validate_config({"APP_ENV": "prod", "JWT_SECRET": "a", "JWT_REFRESH_SECRET": "b"})
    validate_config({"APP_ENV": "dev", "JWT_SECRET": "same", "JWT_REFRESH_SECRET": "same"})
