import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from app.main import app
from app.database import Base, get_db
from app import notify

SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

PASSWORD = "secret-pass"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def clear_outbox():
    notify.EMAIL_OUTBOX.clear()
    yield
    notify.EMAIL_OUTBOX.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}@example.com"


def register_workspace(
    client, *, email: str | None = None, company: str | None = None, workspace_type: str = "research"
):
    """
    purpose: register a fresh workspace admin and return auth headers plus workspace context
    outputs: dict(headers, email, user, workspace, org)
    status: active
    """

    email = email or unique_email("admin")
    resp = client.post(
        "/api/auth/register",
        json={
            "email": email,
            "password": PASSWORD,
            "full_name": "Lab Admin",
            "company_name": company or f"Lab {uuid.uuid4().hex[:6]}",
            "workspace_type": workspace_type,
        },
    )
    assert resp.status_code == 200, resp.text
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    user = client.get("/api/users/me", headers=headers).json()
    workspace = client.get("/api/workspaces/current", headers=headers).json()
    orgs = client.get("/api/organizations", headers=headers).json()["items"]
    return {
        "headers": headers,
        "email": email,
        "user": user,
        "workspace": workspace,
        "org": orgs[0],
    }


def add_member(client, admin_headers, role: str = "scientist"):
    """
    purpose: create a workspace member with ``role`` through the admin API and log them in
    depends_on: register_workspace
    outputs: tuple(headers dict, user dict)
    status: active
    """

    email = unique_email(role)
    created = client.post(
        "/api/users",
        json={"email": email, "password": PASSWORD, "role": role},
        headers=admin_headers,
    )
    assert created.status_code == 201, created.text
    login = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200, login.text
    return {"Authorization": f"Bearer {login.json()['access_token']}"}, created.json()


def create_project(client, ctx, name: str = "Stability study"):
    resp = client.post(
        "/api/projects",
        json={
            "name": name,
            "client_org_id": ctx["org"]["id"],
            "executing_org_id": ctx["org"]["id"],
        },
        headers=ctx["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_sample(client, ctx, project_id: str, label: str | None = None, **extra):
    payload = {"project_id": project_id, "sample_id": label or f"S-{uuid.uuid4().hex[:6]}"}
    payload.update(extra)
    resp = client.post("/api/samples", json=payload, headers=ctx["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


def derive(client, ctx, sample_id: str, label: str | None = None, **extra):
    payload = {"derived_id": label or f"D-{uuid.uuid4().hex[:6]}"}
    payload.update(extra)
    return client.post(f"/api/samples/{sample_id}/derived", json=payload, headers=ctx["headers"])


def create_batch(client, ctx, derived_ids=(), **extra):
    payload = {"sample_ids": list(derived_ids)}
    payload.update(extra)
    resp = client.post("/api/batches", json=payload, headers=ctx["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_analysis_type(client, ctx, name: str | None = None):
    resp = client.post(
        "/api/analysis-types",
        json={"name": name or f"HPLC {uuid.uuid4().hex[:6]}", "category": "chromatography"},
        headers=ctx["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
