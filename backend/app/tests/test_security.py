from app.main import app, audit_routes
from app.auth import get_current_user
from conftest import client, register_workspace

PUBLIC_PATHS = {
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/request-password-reset",
    "/api/auth/reset-password",
    "/metrics",
}


def test_all_routes_protected():
    for route in app.routes:
        path = getattr(route, 'path', '')
        if not path.startswith('/api'):
            continue
        if path in PUBLIC_PATHS:
            continue
        if not hasattr(route, 'dependant'):
            continue
        deps = [d.call for d in route.dependant.dependencies]
        assert get_current_user in deps, f"{path} missing authentication"


def test_route_audit_passes():
    audit_routes()


def test_correlation_id_is_echoed(client):
    resp = client.get("/api/users/me", headers={"X-Correlation-ID": "abc-123"})
    assert resp.status_code == 401
    assert resp.headers["X-Correlation-ID"] == "abc-123"
    generated = client.get("/metrics")
    assert generated.headers["X-Correlation-ID"]


def test_metrics_endpoint(client):
    client.get("/api/users/me")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "request_count" in resp.text


def test_query_validation_is_400(client):
    ctx = register_workspace(client)
    resp = client.get("/api/projects", params={"limit": 0}, headers=ctx["headers"])
    assert resp.status_code == 400
    assert isinstance(resp.json()["detail"], list)
    too_many = client.get("/api/projects", params={"limit": 1001}, headers=ctx["headers"])
    assert too_many.status_code == 400
