from conftest import (
    add_member,
    client,
    create_analysis_type,
    create_project,
    create_sample,
    register_workspace,
)

URL = "/api/analysis-requests"


def _pair(client):
    sponsor = register_workspace(client)
    lab = register_workspace(client, workspace_type="cro")
    project = create_project(client, sponsor)
    sample = create_sample(client, sponsor, project["id"])
    analysis_type = create_analysis_type(client, sponsor)
    return sponsor, lab, sample, analysis_type


def _send(client, sponsor, lab, sample, analysis_type, **extra):
    payload = {
        "to_workspace_id": lab["workspace"]["id"],
        "sample_id": sample["id"],
        "analysis_type_id": analysis_type["id"],
        "description": "Purity by HPLC",
    }
    payload.update(extra)
    return client.post(URL, json=payload, headers=sponsor["headers"])


def test_request_lands_in_lab_inbox(client):
    sponsor, lab, sample, analysis_type = _pair(client)
    resp = _send(client, sponsor, lab, sample, analysis_type, priority="high")
    assert resp.status_code == 201, resp.text
    sent = resp.json()
    assert sent["status"] == "pending"
    assert sent["from_workspace_id"] == sponsor["workspace"]["id"]
    assert sent["sample_identifier"] == sample["sample_id"]
    assert sent["analysis_type_name"] == analysis_type["name"]
    assert sent["created_by"] == sponsor["user"]["id"]

    incoming = client.get(f"{URL}/incoming", headers=lab["headers"]).json()
    assert [r["id"] for r in incoming["items"]] == [sent["id"]]
    outgoing = client.get(f"{URL}/outgoing", headers=sponsor["headers"]).json()
    assert [r["id"] for r in outgoing["items"]] == [sent["id"]]
    assert client.get(f"{URL}/incoming", headers=sponsor["headers"]).json()["total"] == 0

    filtered = client.get(f"{URL}/incoming", params={"priority": "low"}, headers=lab["headers"])
    assert filtered.json()["total"] == 0

    inbox = client.get("/api/notifications", headers=lab["headers"]).json()["items"]
    assert inbox[0]["title"] == "New analysis request"
    assert inbox[0]["priority"] == "high"


def test_request_target_must_be_a_lab(client):
    sponsor, _, sample, analysis_type = _pair(client)
    research = register_workspace(client)
    not_lab = _send(client, sponsor, research, sample, analysis_type)
    assert not_lab.status_code == 400
    own = _send(client, sponsor, sponsor, sample, analysis_type)
    assert own.status_code == 400


def test_request_requires_own_sample(client):
    sponsor, lab, _, analysis_type = _pair(client)
    other = register_workspace(client)
    foreign_sample = create_sample(client, other, create_project(client, other)["id"])
    resp = _send(client, sponsor, lab, foreign_sample, analysis_type)
    assert resp.status_code == 404


def test_accept_and_complete(client):
    sponsor, lab, sample, analysis_type = _pair(client)
    sent = _send(client, sponsor, lab, sample, analysis_type).json()
    tech_headers, tech = add_member(client, lab["headers"])

    by_sponsor = client.post(f"{URL}/{sent['id']}/accept", json={}, headers=sponsor["headers"])
    assert by_sponsor.status_code == 403
    by_tech = client.post(f"{URL}/{sent['id']}/accept", json={}, headers=tech_headers)
    assert by_tech.status_code == 403

    accepted = client.post(
        f"{URL}/{sent['id']}/accept", json={"assigned_to": tech["id"]}, headers=lab["headers"]
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert accepted.json()["accepted_at"] is not None
    shared = client.get(f"/api/samples/{sample['id']}", headers=sponsor["headers"]).json()
    assert shared["status"] == "shared"

    again = client.post(f"{URL}/{sent['id']}/accept", json={}, headers=lab["headers"])
    assert again.status_code == 400

    running = client.patch(
        f"{URL}/{sent['id']}/status", json={"status": "in_progress"}, headers=tech_headers
    )
    assert running.status_code == 200
    done = client.patch(
        f"{URL}/{sent['id']}/status",
        json={"status": "completed", "notes": "Report attached"},
        headers=tech_headers,
    )
    assert done.status_code == 200
    assert done.json()["completed_at"] is not None
    assert done.json()["notes"] == "Report attached"

    titles = [n["title"] for n in client.get("/api/notifications", headers=sponsor["headers"]).json()["items"]]
    assert {"Analysis request accepted", "Analysis request completed"} <= set(titles)


def test_status_updates_follow_workflow(client):
    sponsor, lab, sample, analysis_type = _pair(client)
    sent = _send(client, sponsor, lab, sample, analysis_type).json()
    early = client.patch(
        f"{URL}/{sent['id']}/status", json={"status": "completed"}, headers=lab["headers"]
    )
    assert early.status_code == 400

    client.post(f"{URL}/{sent['id']}/accept", json={}, headers=lab["headers"])
    bystander_headers, _ = add_member(client, lab["headers"])
    denied = client.patch(
        f"{URL}/{sent['id']}/status", json={"status": "in_progress"}, headers=bystander_headers
    )
    assert denied.status_code == 403


def test_reject_and_cancel(client):
    sponsor, lab, sample, analysis_type = _pair(client)
    first = _send(client, sponsor, lab, sample, analysis_type).json()
    rejected = client.post(
        f"{URL}/{first['id']}/reject", json={"notes": "No capacity"}, headers=lab["headers"]
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["notes"] == "No capacity"
    assert client.post(f"{URL}/{first['id']}/cancel", headers=sponsor["headers"]).status_code == 400

    second = _send(client, sponsor, lab, sample, analysis_type).json()
    assert client.post(f"{URL}/{second['id']}/cancel", headers=lab["headers"]).status_code == 403
    cancelled = client.post(f"{URL}/{second['id']}/cancel", headers=sponsor["headers"])
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert client.post(f"{URL}/{second['id']}/accept", json={}, headers=lab["headers"]).status_code == 400


def test_requests_hidden_from_uninvolved_workspaces(client):
    sponsor, lab, sample, analysis_type = _pair(client)
    sent = _send(client, sponsor, lab, sample, analysis_type).json()
    outsider = register_workspace(client, workspace_type="analyzer")
    assert client.get(f"{URL}/{sent['id']}", headers=outsider["headers"]).status_code == 404
    assert client.post(f"{URL}/{sent['id']}/accept", json={}, headers=outsider["headers"]).status_code == 404
    assert client.get(f"{URL}/{sent['id']}", headers=lab["headers"]).status_code == 200
