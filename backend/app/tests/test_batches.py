import re
import uuid

from conftest import (
    client,
    create_batch,
    create_project,
    create_sample,
    derive,
    register_workspace,
)


def _derived_ids(client, ctx, count):
    project = create_project(client, ctx)
    sample = create_sample(client, ctx, project["id"])
    return [derive(client, ctx, sample["id"]).json()["id"] for _ in range(count)]


def test_batch_generated_label_and_sequence(client):
    ctx = register_workspace(client)
    ids = _derived_ids(client, ctx, 3)
    ordered = [ids[2], ids[0], ids[1]]
    batch = create_batch(client, ctx, ordered, description="run 1")
    assert re.fullmatch(r"BATCH-\d+-[a-z0-9]{9}", batch["batch_id"])
    assert batch["sample_count"] == 3
    assert batch["status"] == "created"
    assert batch["executed_by_org_id"] == ctx["org"]["id"]

    items = client.get(f"/api/batches/{batch['id']}/items", headers=ctx["headers"]).json()
    assert [i["derived_id"] for i in items] == ordered
    assert [i["sequence"] for i in items] == [1, 2, 3]


def test_batch_rejects_unknown_samples(client):
    ctx = register_workspace(client)
    ids = _derived_ids(client, ctx, 1)
    before = client.get("/api/batches", headers=ctx["headers"]).json()["total"]
    resp = client.post(
        "/api/batches",
        json={"sample_ids": ids + [str(uuid.uuid4())]},
        headers=ctx["headers"],
    )
    assert resp.status_code == 400
    assert client.get("/api/batches", headers=ctx["headers"]).json()["total"] == before


def test_batch_rejects_foreign_samples(client):
    first = register_workspace(client)
    second = register_workspace(client)
    foreign = _derived_ids(client, second, 1)
    resp = client.post("/api/batches", json={"sample_ids": foreign}, headers=first["headers"])
    assert resp.status_code == 400


def test_external_batch_requires_reference(client):
    ctx = register_workspace(client)
    resp = client.post("/api/batches", json={"execution_mode": "external"}, headers=ctx["headers"])
    assert resp.status_code == 400
    ok = create_batch(client, ctx, execution_mode="external", external_reference="PO-77")
    assert ok["external_reference"] == "PO-77"


def test_status_changes_stamp_timestamps(client):
    ctx = register_workspace(client)
    batch = create_batch(client, ctx, batch_id="B-1")
    assert batch["batch_id"] == "B-1"
    assert batch["sent_at"] is None

    sent = client.patch(f"/api/batches/{batch['id']}", json={"status": "sent"}, headers=ctx["headers"])
    assert sent.status_code == 200
    assert sent.json()["sent_at"] is not None
    assert sent.json()["completed_at"] is None

    done = client.patch(
        f"/api/batches/{batch['id']}", json={"status": "completed"}, headers=ctx["headers"]
    ).json()
    assert done["completed_at"] is not None

    listed = client.get("/api/batches", params={"status": "completed"}, headers=ctx["headers"]).json()
    assert [b["id"] for b in listed["items"]] == [batch["id"]]


def test_add_and_remove_items(client):
    ctx = register_workspace(client)
    ids = _derived_ids(client, ctx, 3)
    batch = create_batch(client, ctx, ids[:1])

    added = client.post(
        f"/api/batches/{batch['id']}/items", json={"sample_ids": ids[1:]}, headers=ctx["headers"]
    )
    assert added.status_code == 201
    assert [i["sequence"] for i in added.json()] == [2, 3]

    dup = client.post(
        f"/api/batches/{batch['id']}/items", json={"sample_ids": [ids[0]]}, headers=ctx["headers"]
    )
    assert dup.status_code == 409

    removed = client.delete(f"/api/batches/{batch['id']}/items/{ids[1]}", headers=ctx["headers"])
    assert removed.status_code == 204
    items = client.get(f"/api/batches/{batch['id']}/items", headers=ctx["headers"]).json()
    assert [i["derived_id"] for i in items] == [ids[0], ids[2]]
    assert client.get(f"/api/batches/{batch['id']}", headers=ctx["headers"]).json()["sample_count"] == 2

    missing = client.delete(f"/api/batches/{batch['id']}/items/{ids[1]}", headers=ctx["headers"])
    assert missing.status_code == 404


def test_batch_soft_delete_and_isolation(client):
    first = register_workspace(client)
    second = register_workspace(client)
    batch = create_batch(client, first)
    assert client.get(f"/api/batches/{batch['id']}", headers=second["headers"]).status_code == 404
    assert client.delete(f"/api/batches/{batch['id']}", headers=first["headers"]).status_code == 204
    assert client.get(f"/api/batches/{batch['id']}", headers=first["headers"]).status_code == 404
