def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_unknown_route_is_json_404(client):
    r = client.get("/does-not-exist")
    assert r.status_code == 404
    assert r.json["error"] == "not_found"


def test_method_not_allowed_is_json(client):
    r = client.delete("/health")
    assert r.status_code == 405
    assert "error" in r.json


def test_panel_requires_bearer(client):
    r = client.get("/api/panel/dashboard")
    assert r.status_code == 401
    assert r.json["error"] == "unauthorized"


def test_panel_rejects_garbage_token(client):
    r = client.get("/api/panel/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_panel_rejects_non_bearer_scheme(client):
    r = client.get("/api/panel/me", headers={"Authorization": "Basic abc"})
    assert r.status_code == 401
