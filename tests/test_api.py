import pytest
from fastapi.testclient import TestClient

from api.main import app
from ktlo.data import save_records


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def data_dir(tmp_path, monkeypatch, task_records, db_records):
    monkeypatch.setenv("KTLO_DATA_DIR", str(tmp_path))
    save_records(task_records, tmp_path / "ktlo-data.json")
    save_records(db_records, tmp_path / "aurora-data.json")
    return tmp_path


def test_meta_lists(client, data_dir):
    assert client.get("/meta/fiscal-years").json() == {"values": ["All", "FY25", "FY24"]}
    assert client.get("/meta/environments").json() == {"values": ["All", "dev", "prod"]}


def test_tasks_default_to_latest_fiscal_year(client, data_dir):
    resp = client.post("/tasks", json={})
    assert resp.status_code == 200
    body = resp.json()
    assert body["filters"]["fiscal_year"] == "FY25"
    assert body["metrics"]["total"] == 5
    assert body["missing"] is False
    assert body["message"] is None
    assert set(body["specs"]) == {"status", "assignee", "urgency"}


def test_tasks_with_filters(client, data_dir):
    resp = client.post(
        "/tasks",
        json={"fiscal_year": "All", "search": "alice", "active": {"category": "status", "value": "Completed"}},
    )
    body = resp.json()
    assert body["metrics"]["total"] == 2
    assert [row["item"] for row in body["table"]] == ["Upgrade EKS"]


def test_databases_with_table_filter(client, data_dir):
    resp = client.post("/databases", json={"environment": "prod", "active": {"category": "version", "value": "15"}})
    assert resp.status_code == 200
    body = resp.json()
    assert body["metrics"]["total"] == 4
    assert [row["instance_id"] for row in body["table"]] == ["prod-app-1", "prod-app-2"]
    assert set(body["specs"]) == {"version", "environment", "owner", "eol"}


def test_unknown_environment_falls_back_to_all(client, data_dir):
    body = client.post("/databases", json={"environment": "qa"}).json()
    assert body["filters"]["environment"] == "All"
    assert body["metrics"]["total"] == 10


def test_missing_artifacts_are_reported(client, tmp_path, monkeypatch):
    monkeypatch.setenv("KTLO_DATA_DIR", str(tmp_path))
    body = client.post("/databases", json={}).json()
    assert body["missing"] is True
    assert "ktlo-extract-databases" in body["message"]
    assert body["empty"] is True
    assert body["metrics"]["total"] == 0


def test_export_databases_csv(client, data_dir):
    resp = client.post("/export/databases", json={"environment": "prod"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0].split(",")[:3] == ["environment", "auto_minor_version_upgrade", "instance_id"]
    assert len(lines) == 5


def test_export_tasks_csv(client, data_dir):
    resp = client.post("/export/tasks", json={"fiscal_year": "All"})
    assert resp.headers["content-disposition"] == "attachment; filename=ktlo-tasks.csv"
    assert len(resp.text.strip().splitlines()) == 7
