import uuid

from conftest import add_member, client, create_project, create_sample, derive, register_workspace


def test_sample_create_and_update(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    sample = create_sample(
        client, ctx, project["id"], label="S-001", type="serum", metadata={"volume_ml": 5}
    )
    assert sample["sample_id"] == "S-001"
    assert sample["metadata"] == {"volume_ml": 5}
    assert sample["status"] == "created"
    assert sample["project_name"] == project["name"]

    upd = client.patch(
        f"/api/samples/{sample['id']}",
        json={"status": "processing", "metadata": {"volume_ml": 4}},
        headers=ctx["headers"],
    )
    assert upd.status_code == 200
    assert upd.json()["status"] == "processing"
    assert upd.json()["metadata"] == {"volume_ml": 4}

    empty = client.patch(f"/api/samples/{sample['id']}", json={}, headers=ctx["headers"])
    assert empty.status_code == 400


def test_sample_field_limits(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    long_label = client.post(
        "/api/samples",
        json={"project_id": project["id"], "sample_id": "x" * 101},
        headers=ctx["headers"],
    )
    assert long_label.status_code == 400
    long_description = client.post(
        "/api/samples",
        json={"project_id": project["id"], "sample_id": "ok", "description": "d" * 2001},
        headers=ctx["headers"],
    )
    assert long_description.status_code == 400


def test_sample_requires_visible_project(client):
    first = register_workspace(client)
    second = register_workspace(client)
    project = create_project(client, second)
    resp = client.post(
        "/api/samples",
        json={"project_id": project["id"], "sample_id": "S"},
        headers=first["headers"],
    )
    assert resp.status_code == 404
    unknown = client.post(
        "/api/samples",
        json={"project_id": str(uuid.uuid4()), "sample_id": "S"},
        headers=first["headers"],
    )
    assert unknown.status_code == 404


def test_sample_filters(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    other = create_project(client, ctx, name="Other")
    a = create_sample(client, ctx, project["id"])
    create_sample(client, ctx, other["id"])
    client.patch(f"/api/samples/{a['id']}", json={"status": "shared"}, headers=ctx["headers"])

    by_project = client.get(
        "/api/samples", params={"project_id": project["id"]}, headers=ctx["headers"]
    ).json()
    assert [s["id"] for s in by_project["items"]] == [a["id"]]
    by_status = client.get("/api/samples", params={"status": "shared"}, headers=ctx["headers"]).json()
    assert [s["id"] for s in by_status["items"]] == [a["id"]]
    assert client.get("/api/samples", headers=ctx["headers"]).json()["total"] == 2


def test_samples_are_workspace_isolated(client):
    first = register_workspace(client)
    second = register_workspace(client)
    project = create_project(client, first)
    sample = create_sample(client, first, project["id"])
    assert client.get(f"/api/samples/{sample['id']}", headers=second["headers"]).status_code == 404
    assert client.get("/api/samples", headers=second["headers"]).json()["items"] == []
    assert client.delete(f"/api/samples/{sample['id']}", headers=second["headers"]).status_code == 404


def test_delete_protected_by_lineage(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    sample = create_sample(client, ctx, project["id"])
    derived = derive(client, ctx, sample["id"])
    assert derived.status_code == 201

    blocked = client.delete(f"/api/samples/{sample['id']}", headers=ctx["headers"])
    assert blocked.status_code == 409
    assert client.get(f"/api/samples/{sample['id']}", headers=ctx["headers"]).status_code == 200

    client.delete(f"/api/derived-samples/{derived.json()['id']}", headers=ctx["headers"])
    assert client.delete(f"/api/samples/{sample['id']}", headers=ctx["headers"]).status_code == 204
    assert client.get(f"/api/samples/{sample['id']}", headers=ctx["headers"]).status_code == 404


def test_cascade_delete_is_admin_only(client):
    ctx = register_workspace(client)
    scientist_headers, _ = add_member(client, ctx["headers"], role="scientist")
    project = create_project(client, ctx)
    sample = create_sample(client, ctx, project["id"])
    first = derive(client, ctx, sample["id"]).json()
    derive(client, ctx, sample["id"], parent_derived_id=first["id"])

    denied = client.delete(
        f"/api/samples/{sample['id']}", params={"cascade": "true"}, headers=scientist_headers
    )
    assert denied.status_code == 403

    resp = client.delete(
        f"/api/samples/{sample['id']}", params={"cascade": "true"}, headers=ctx["headers"]
    )
    assert resp.status_code == 200
    assert resp.json() == {"deleted": 3}
    assert client.get(f"/api/samples/{sample['id']}", headers=ctx["headers"]).status_code == 404
    assert client.get(f"/api/derived-samples/{first['id']}", headers=ctx["headers"]).status_code == 404
