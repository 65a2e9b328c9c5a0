import uuid

from conftest import add_member, client, create_analysis_type, register_workspace


def test_analysis_type_catalog(client):
    ctx = register_workspace(client)
    name = f"Mass spec {uuid.uuid4().hex[:6]}"
    created = client.post(
        "/api/analysis-types",
        json={"name": name, "category": "spectrometry", "methods": ["ESI"]},
        headers=ctx["headers"],
    )
    assert created.status_code == 201
    type_id = created.json()["id"]
    assert created.json()["is_active"] is True

    dup = client.post("/api/analysis-types", json={"name": name}, headers=ctx["headers"])
    assert dup.status_code == 409

    by_category = client.get(
        "/api/analysis-types", params={"category": "spectrometry"}, headers=ctx["headers"]
    ).json()
    assert type_id in {t["id"] for t in by_category}

    upd = client.patch(
        f"/api/analysis-types/{type_id}", json={"typical_duration": "2h"}, headers=ctx["headers"]
    )
    assert upd.status_code == 200
    assert upd.json()["typical_duration"] == "2h"


def test_delete_deactivates(client):
    ctx = register_workspace(client)
    analysis_type = create_analysis_type(client, ctx)
    assert client.delete(f"/api/analysis-types/{analysis_type['id']}", headers=ctx["headers"]).status_code == 204

    active = client.get("/api/analysis-types", headers=ctx["headers"]).json()
    assert analysis_type["id"] not in {t["id"] for t in active}
    everything = client.get(
        "/api/analysis-types", params={"include_inactive": "true"}, headers=ctx["headers"]
    ).json()
    assert analysis_type["id"] in {t["id"] for t in everything}
    fetched = client.get(f"/api/analysis-types/{analysis_type['id']}", headers=ctx["headers"])
    assert fetched.json()["is_active"] is False


def test_only_admins_manage_types(client):
    ctx = register_workspace(client)
    manager_headers, _ = add_member(client, ctx["headers"], role="manager")
    resp = client.post("/api/analysis-types", json={"name": "Nope"}, headers=manager_headers)
    assert resp.status_code == 403
    analysis_type = create_analysis_type(client, ctx)
    assert client.get(f"/api/analysis-types/{analysis_type['id']}", headers=manager_headers).status_code == 200
    assert client.delete(f"/api/analysis-types/{analysis_type['id']}", headers=manager_headers).status_code == 403
