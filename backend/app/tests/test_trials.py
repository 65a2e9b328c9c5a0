from conftest import client, create_project, create_sample, register_workspace


def test_trial_crud(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    base = f"/api/projects/{project['id']}/trials"
    created = client.post(
        base,
        json={"name": "T1", "objective": "baseline", "measurements": {"ph": 7.2}},
        headers=ctx["headers"],
    )
    assert created.status_code == 201
    trial = created.json()
    assert trial["status"] == "planned"
    assert trial["measurements"] == {"ph": 7.2}

    fetched = client.get(f"{base}/{trial['id']}", headers=ctx["headers"])
    assert fetched.json()["name"] == "T1"

    upd = client.patch(f"{base}/{trial['id']}", json={"status": "running"}, headers=ctx["headers"])
    assert upd.status_code == 200
    assert upd.json()["status"] == "running"

    assert client.delete(f"{base}/{trial['id']}", headers=ctx["headers"]).status_code == 204
    assert client.get(f"{base}/{trial['id']}", headers=ctx["headers"]).status_code == 404
    assert client.get(base, headers=ctx["headers"]).json() == []


def test_bulk_create_is_atomic(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    base = f"/api/projects/{project['id']}/trials"
    bulk = client.post(
        f"{base}/bulk",
        json={"trials": [{"name": "A"}, {"name": "B"}, {"name": "C"}]},
        headers=ctx["headers"],
    )
    assert bulk.status_code == 201
    assert [t["name"] for t in bulk.json()] == ["A", "B", "C"]

    broken = client.post(
        f"{base}/bulk",
        json={"trials": [{"name": "D"}, {"name": ""}]},
        headers=ctx["headers"],
    )
    assert broken.status_code == 400
    names = {t["name"] for t in client.get(base, headers=ctx["headers"]).json()}
    assert names == {"A", "B", "C"}


def test_parameter_template_upsert(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    url = f"/api/projects/{project['id']}/trials/parameter-template"
    empty = client.get(url, headers=ctx["headers"])
    assert empty.status_code == 200
    assert empty.json()["columns"] == []

    first = client.put(url, json={"columns": ["temp", "ph"]}, headers=ctx["headers"])
    assert first.json()["columns"] == ["temp", "ph"]
    second = client.put(url, json={"columns": ["ph", "temp", "rpm"]}, headers=ctx["headers"])
    assert second.json()["columns"] == ["ph", "temp", "rpm"]
    assert client.get(url, headers=ctx["headers"]).json()["columns"] == ["ph", "temp", "rpm"]


def test_trial_samples_and_project_scope(client):
    ctx = register_workspace(client)
    project = create_project(client, ctx)
    other = create_project(client, ctx, name="Other")
    trial = client.post(
        f"/api/projects/{project['id']}/trials", json={"name": "T"}, headers=ctx["headers"]
    ).json()

    sample = create_sample(client, ctx, project["id"], trial_id=trial["id"])
    listed = client.get(
        f"/api/projects/{project['id']}/trials/{trial['id']}/samples", headers=ctx["headers"]
    ).json()
    assert [s["id"] for s in listed["items"]] == [sample["id"]]

    wrong = client.post(
        "/api/samples",
        json={"project_id": other["id"], "sample_id": "X", "trial_id": trial["id"]},
        headers=ctx["headers"],
    )
    assert wrong.status_code == 400

    missing = client.get(
        f"/api/projects/{other['id']}/trials/{trial['id']}", headers=ctx["headers"]
    )
    assert missing.status_code == 404
