import uuid

from conftest import add_member, client, create_project, create_sample, register_workspace

URL = "/api/access"


def _grant(client, headers, user_id, object_type, object_id, level="read"):
    return client.post(
        f"{URL}/grant",
        json={
            "user_id": user_id,
            "object_type": object_type,
            "object_id": object_id,
            "access_level": level,
        },
        headers=headers,
    )


def test_grant_lookup_and_revoke(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    member_headers, member = add_member(client, ctx["headers"], role="viewer")

    granted = _grant(client, ctx["headers"], member["id"], "project", project["id"], "write")
    assert granted.status_code == 201, granted.text
    assert granted.json()["access_level"] == "write"
    assert granted.json()["granted_by"] == ctx["user"]["id"]

    mine = client.get(f"{URL}/project/{project['id']}/me", headers=member_headers).json()
    assert mine == {"object_type": "project", "object_id": project["id"], "access_level": "write"}
    admin_view = client.get(f"{URL}/project/{project['id']}/me", headers=ctx["headers"]).json()
    assert admin_view["access_level"] is None

    listed = client.get(f"{URL}/project/{project['id']}", headers=ctx["headers"]).json()
    assert [g["user_id"] for g in listed] == [member["id"]]

    updated = client.patch(
        f"{URL}/project/{project['id']}/{member['id']}",
        json={"access_level": "admin"},
        headers=ctx["headers"],
    )
    assert updated.status_code == 200
    assert updated.json()["access_level"] == "admin"

    revoked = client.delete(f"{URL}/project/{project['id']}/{member['id']}", headers=ctx["headers"])
    assert revoked.status_code == 204
    assert client.get(f"{URL}/project/{project['id']}/me", headers=member_headers).json()["access_level"] is None
    again = client.delete(f"{URL}/project/{project['id']}/{member['id']}", headers=ctx["headers"])
    assert again.status_code == 404

    actions = {l["action"] for l in client.get("/api/audit", headers=ctx["headers"]).json()["items"]}
    assert {"grant_access", "update_access", "revoke_access"} <= actions


def test_duplicate_grant_conflicts(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    sample = create_sample(client, ctx, project["id"])
    _, member = add_member(client, ctx["headers"])
    assert _grant(client, ctx["headers"], member["id"], "sample", sample["id"]).status_code == 201
    dup = _grant(client, ctx["headers"], member["id"], "sample", sample["id"], "admin")
    assert dup.status_code == 409


def test_only_managers_grant(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    scientist_headers, scientist = add_member(client, ctx["headers"])
    manager_headers, _ = add_member(client, ctx["headers"], role="manager")

    denied = _grant(client, scientist_headers, scientist["id"], "project", project["id"])
    assert denied.status_code == 403
    allowed = _grant(client, manager_headers, scientist["id"], "project", project["id"])
    assert allowed.status_code == 201
    remove = client.delete(
        f"{URL}/project/{project['id']}/{scientist['id']}", headers=scientist_headers
    )
    assert remove.status_code == 403


def test_grants_stay_inside_workspace(client):
    ctx = register_workspace(client)
    other = register_workspace(client)
    project = create_project(client, ctx)
    foreign_project = create_project(client, other)
    _, member = add_member(client, ctx["headers"])

    assert _grant(client, ctx["headers"], other["user"]["id"], "project", project["id"]).status_code == 404
    assert _grant(client, ctx["headers"], member["id"], "project", foreign_project["id"]).status_code == 404
    assert _grant(client, ctx["headers"], member["id"], "batch", str(uuid.uuid4())).status_code == 404
    assert client.get(f"{URL}/project/{project['id']}", headers=other["headers"]).status_code == 404


def test_unknown_object_type_rejected(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    _, member = add_member(client, ctx["headers"])
    assert _grant(client, ctx["headers"], member["id"], "invoice", project["id"]).status_code == 400
    assert client.get(f"{URL}/invoice/{project['id']}", headers=ctx["headers"]).status_code == 400
