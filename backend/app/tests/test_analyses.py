import uuid

from conftest import (
    client,
    create_analysis_type,
    create_batch,
    create_project,
    create_sample,
    derive,
    register_workspace,
)


def _setup(client, ctx, **batch_fields):
    project = create_project(client, ctx)
    sample = create_sample(client, ctx, project["id"])
    derived = derive(client, ctx, sample["id"]).json()
    batch = create_batch(client, ctx, [derived["id"]], **batch_fields)
    analysis_type = create_analysis_type(client, ctx)
    return batch, analysis_type


def _upload(client, ctx, batch, analysis_type, **extra):
    payload = {
        "batch_id": batch["id"],
        "analysis_type_id": analysis_type["id"],
        "results": {"purity": 98.1},
        "file_checksum": "abc123",
    }
    payload.update(extra)
    return client.post("/api/analyses", json=payload, headers=ctx["headers"])


def test_upload_defaults(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)
    resp = _upload(client, ctx, batch, analysis_type)
    assert resp.status_code == 201
    analysis = resp.json()
    assert analysis["is_authoritative"] is True
    assert analysis["status"] == "pending"
    assert analysis["executed_by_org_id"] == batch["executed_by_org_id"]
    assert analysis["source_org_id"] == analysis["executed_by_org_id"]
    assert analysis["uploaded_by"] == ctx["user"]["id"]
    assert analysis["analysis_type_name"] == analysis_type["name"]
    assert analysis["supersedes_id"] is None


def test_second_authoritative_upload_conflicts(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)
    first = _upload(client, ctx, batch, analysis_type).json()

    conflict = _upload(client, ctx, batch, analysis_type, results={"purity": 97.0})
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["existing_analysis_id"] == first["id"]

    alternate = _upload(client, ctx, batch, analysis_type, is_authoritative=False)
    assert alternate.status_code == 201
    assert alternate.json()["is_authoritative"] is False

    authoritative = client.get(
        "/api/analyses",
        params={"batch_id": batch["id"], "authoritative_only": "true"},
        headers=ctx["headers"],
    ).json()
    assert [a["id"] for a in authoritative["items"]] == [first["id"]]
    everything = client.get(
        "/api/analyses", params={"batch_id": batch["id"]}, headers=ctx["headers"]
    ).json()
    assert everything["total"] == 2


def test_upload_validation(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)

    missing = client.post(
        "/api/analyses",
        json={"batch_id": str(uuid.uuid4()), "analysis_type_id": analysis_type["id"]},
        headers=ctx["headers"],
    )
    assert missing.status_code == 404

    unknown_type = _upload(client, ctx, batch, {"id": str(uuid.uuid4())})
    assert unknown_type.status_code == 400

    external = _upload(client, ctx, batch, analysis_type, execution_mode="external")
    assert external.status_code == 400
    platform_ref = _upload(client, ctx, batch, analysis_type, external_reference="EXT-1")
    assert platform_ref.status_code == 400

    client.delete(f"/api/analysis-types/{analysis_type['id']}", headers=ctx["headers"])
    inactive = _upload(client, ctx, batch, analysis_type)
    assert inactive.status_code == 400


def test_upload_rejected_for_closed_batch(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx, status="completed")
    resp = _upload(client, ctx, batch, analysis_type)
    assert resp.status_code == 400


def test_foreign_batch_is_forbidden(client):
    first = register_workspace(client)
    second = register_workspace(client)
    batch, _ = _setup(client, second)
    analysis_type = create_analysis_type(client, first)
    resp = _upload(client, first, batch, analysis_type)
    assert resp.status_code == 403


def test_results_are_immutable(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)
    analysis = _upload(client, ctx, batch, analysis_type).json()
    url = f"/api/analyses/{analysis['id']}"

    for body in (
        {"results": {"purity": 50}},
        {"file_checksum": "tampered"},
        {"status": "completed", "file_path": "/tmp/x"},
    ):
        resp = client.patch(url, json=body, headers=ctx["headers"])
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Analysis results are immutable"

    unknown = client.patch(url, json={"colour": "red"}, headers=ctx["headers"])
    assert unknown.status_code == 400

    ok = client.patch(url, json={"status": "completed"}, headers=ctx["headers"])
    assert ok.status_code == 200
    assert ok.json()["status"] == "completed"
    assert ok.json()["results"] == {"purity": 98.1}
    assert ok.json()["file_checksum"] == "abc123"


def test_revision_moves_authority(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)
    original = _upload(client, ctx, batch, analysis_type).json()

    revised = client.post(
        f"/api/analyses/{original['id']}/revise",
        json={"results": {"purity": 99.0}},
        headers=ctx["headers"],
    )
    assert revised.status_code == 201
    revision = revised.json()
    assert revision["supersedes_id"] == original["id"]
    assert revision["is_authoritative"] is True
    assert revision["revision_reason"] == "Correction"
    assert revision["status"] == "pending"
    assert revision["batch_id"] == batch["id"]
    assert revision["results"] == {"purity": 99.0}

    before = client.get(f"/api/analyses/{original['id']}", headers=ctx["headers"]).json()
    assert before["is_authoritative"] is False
    assert before["results"] == {"purity": 98.1}

    again = client.post(
        f"/api/analyses/{original['id']}/revise",
        json={"results": {"purity": 1}},
        headers=ctx["headers"],
    )
    assert again.status_code == 409

    second = client.post(
        f"/api/analyses/{revision['id']}/revise",
        json={"results": {"purity": 99.5}, "revision_reason": "Recalibrated"},
        headers=ctx["headers"],
    ).json()
    chain = client.get(f"/api/analyses/{revision['id']}/revisions", headers=ctx["headers"]).json()
    assert [a["id"] for a in chain] == [original["id"], revision["id"], second["id"]]
    assert [a["is_authoritative"] for a in chain] == [False, False, True]
    assert second["revision_reason"] == "Recalibrated"


def test_deleted_middle_revision_keeps_chain_linear(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)
    first = _upload(client, ctx, batch, analysis_type).json()
    middle = client.post(
        f"/api/analyses/{first['id']}/revise", json={"results": {"purity": 98.5}}, headers=ctx["headers"]
    ).json()
    latest = client.post(
        f"/api/analyses/{middle['id']}/revise", json={"results": {"purity": 99.0}}, headers=ctx["headers"]
    ).json()
    assert client.delete(f"/api/analyses/{middle['id']}", headers=ctx["headers"]).status_code == 204

    chain = client.get(f"/api/analyses/{latest['id']}/revisions", headers=ctx["headers"]).json()
    assert [a["id"] for a in chain] == [first["id"], latest["id"]]
    from_root = client.get(f"/api/analyses/{first['id']}/revisions", headers=ctx["headers"]).json()
    assert [a["id"] for a in from_root] == [first["id"], latest["id"]]

    fork = client.post(
        f"/api/analyses/{first['id']}/revise", json={"results": {"purity": 1}}, headers=ctx["headers"]
    )
    assert fork.status_code == 409
    assert fork.json()["detail"]["existing_analysis_id"] == middle["id"]


def test_revision_of_non_authoritative_stays_non_authoritative(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)
    primary = _upload(client, ctx, batch, analysis_type).json()
    alternate = _upload(client, ctx, batch, analysis_type, is_authoritative=False).json()
    revision = client.post(
        f"/api/analyses/{alternate['id']}/revise", json={"results": {}}, headers=ctx["headers"]
    ).json()
    assert revision["is_authoritative"] is False
    assert client.get(f"/api/analyses/{primary['id']}", headers=ctx["headers"]).json()["is_authoritative"] is True


def test_authority_toggle(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)
    primary = _upload(client, ctx, batch, analysis_type).json()
    alternate = _upload(client, ctx, batch, analysis_type, is_authoritative=False).json()

    promote = client.post(
        f"/api/analyses/{alternate['id']}/authority",
        json={"is_authoritative": True},
        headers=ctx["headers"],
    )
    assert promote.status_code == 409
    assert promote.json()["detail"]["existing_analysis_id"] == primary["id"]

    demote = client.post(
        f"/api/analyses/{primary['id']}/authority",
        json={"is_authoritative": False},
        headers=ctx["headers"],
    )
    assert demote.status_code == 200
    assert demote.json()["is_authoritative"] is False

    promote = client.post(
        f"/api/analyses/{alternate['id']}/authority",
        json={"is_authoritative": True},
        headers=ctx["headers"],
    )
    assert promote.status_code == 200
    authoritative = client.get(
        "/api/analyses",
        params={"batch_id": batch["id"], "authoritative_only": "true"},
        headers=ctx["headers"],
    ).json()
    assert authoritative["total"] == 1


def test_soft_delete_releases_authority(client):
    ctx = register_workspace(client)
    batch, analysis_type = _setup(client, ctx)
    analysis = _upload(client, ctx, batch, analysis_type).json()
    assert client.delete(f"/api/analyses/{analysis['id']}", headers=ctx["headers"]).status_code == 204
    assert client.get(f"/api/analyses/{analysis['id']}", headers=ctx["headers"]).status_code == 404
    replacement = _upload(client, ctx, batch, analysis_type)
    assert replacement.status_code == 201


def test_analyses_are_workspace_isolated(client):
    first = register_workspace(client)
    second = register_workspace(client)
    batch, analysis_type = _setup(client, first)
    analysis = _upload(client, first, batch, analysis_type).json()
    assert client.get(f"/api/analyses/{analysis['id']}", headers=second["headers"]).status_code == 404
    assert client.get("/api/analyses", headers=second["headers"]).json()["total"] == 0
