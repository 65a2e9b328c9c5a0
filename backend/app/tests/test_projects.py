from conftest import add_member, client, create_project, create_sample, register_workspace


def test_project_flow(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx, name="Stability")
    assert project["client_org_name"] == ctx["org"]["name"]
    assert project["executing_org_name"] == ctx["org"]["name"]
    assert project["status"] == "active"
    assert project["workflow_mode"] == "trial_first"

    upd = client.patch(
        f"/api/projects/{project['id']}",
        json={"status": "completed", "description": "done"},
        headers=ctx["headers"],
    )
    assert upd.status_code == 200
    assert upd.json()["status"] == "completed"

    completed = client.get(
        "/api/projects", params={"status": "completed"}, headers=ctx["headers"]
    ).json()
    assert [p["id"] for p in completed["items"]] == [project["id"]]

    assert client.delete(f"/api/projects/{project['id']}", headers=ctx["headers"]).status_code == 204
    assert client.get(f"/api/projects/{project['id']}", headers=ctx["headers"]).status_code == 404
    assert client.get("/api/projects", headers=ctx["headers"]).json()["total"] == 0


def test_project_requires_workspace_orgs(client):
    first = register_workspace(client)
    second = register_workspace(client)
    resp = client.post(
        "/api/projects",
        json={
            "name": "Bad",
            "client_org_id": second["org"]["id"],
            "executing_org_id": first["org"]["id"],
        },
        headers=first["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Client organization not found in workspace"


def test_update_requires_a_field(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    resp = client.patch(f"/api/projects/{project['id']}", json={}, headers=ctx["headers"])
    assert resp.status_code == 400


def test_viewer_cannot_mutate(client):
    ctx = register_workspace(client)
    viewer_headers, _ = add_member(client, ctx["headers"], role="viewer")
    resp = client.post(
        "/api/projects",
        json={
            "name": "Nope",
            "client_org_id": ctx["org"]["id"],
            "executing_org_id": ctx["org"]["id"],
        },
        headers=viewer_headers,
    )
    assert resp.status_code == 403
    project = create_project(client, ctx)
    assert client.get(f"/api/projects/{project['id']}", headers=viewer_headers).status_code == 200
    assert client.delete(f"/api/projects/{project['id']}", headers=viewer_headers).status_code == 403


def test_pagination_has_no_duplicates(client):
    ctx = register_workspace(client)
    created = {create_project(client, ctx, name=f"P{i}")["id"] for i in range(7)}
    seen = []
    offset = 0
    while True:
        page = client.get(
            "/api/projects", params={"limit": 3, "offset": offset}, headers=ctx["headers"]
        ).json()
        assert page["total"] == 7
        assert page["limit"] == 3
        assert page["offset"] == offset
        if not page["items"]:
            break
        seen.extend(p["id"] for p in page["items"])
        offset += 3
    assert len(seen) == len(set(seen)) == 7
    assert set(seen) == created


def test_projects_are_workspace_isolated(client):
    first = register_workspace(client)
    second = register_workspace(client)
    project = create_project(client, first)
    assert client.get(f"/api/projects/{project['id']}", headers=second["headers"]).status_code == 404
    assert client.get("/api/projects", headers=second["headers"]).json()["total"] == 0
    resp = client.patch(
        f"/api/projects/{project['id']}", json={"name": "Hijack"}, headers=second["headers"]
    )
    assert resp.status_code == 404


def test_project_samples(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    other = create_project(client, ctx, name="Other")
    sample = create_sample(client, ctx, project["id"])
    create_sample(client, ctx, other["id"])
    listed = client.get(f"/api/projects/{project['id']}/samples", headers=ctx["headers"]).json()
    assert listed["total"] == 1
    assert listed["items"][0]["id"] == sample["id"]
    assert listed["items"][0]["project_name"] == project["name"]
