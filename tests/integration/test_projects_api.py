#  AgentBoard - Projects API Integration Tests
#
#  CRUD, identifier generation, and edits refused while executing.
#
#  Depends on: agentboard/routes/projects.py, tests/conftest.py
#  Used by:    pytest

import pytest

from agentboard.routes.projects import generate_identifier
from tests.conftest import create_test_project, create_test_task


class TestGenerateIdentifier:
    @pytest.mark.parametrize("name,expected", [
        ("Agent Board", "AB"),
        ("my cool web app thing", "MCWA"),
        ("hello-world app!", "HA"),
        ("!!!", "PRJ"),
        ("", "PRJ"),
    ])
    def test_initials(self, name, expected):
        assert generate_identifier(name) == expected


class TestCreateProject:
    async def test_create_returns_201(self, app_client):
        resp = await app_client.post("/api/projects", json={
            "name": "Test Project",
            "description": "Build something",
        })
        assert resp.status_code == 201
        data = resp.json()
        assert data["name"] == "Test Project"
        assert data["identifier"] == "TP"
        assert data["mode"] == "build"
        assert data["status"] == "idle"
        assert data["tasks"] == []

    async def test_explicit_identifier_and_mode(self, app_client):
        resp = await app_client.post("/api/projects", json={
            "name": "Survey", "identifier": "SRV", "mode": "research",
        })
        assert resp.status_code == 201
        assert (resp.json()["identifier"], resp.json()["mode"]) == ("SRV", "research")

    async def test_create_missing_name_returns_422(self, app_client):
        resp = await app_client.post("/api/projects", json={"description": "no name"})
        assert resp.status_code == 422

    async def test_invalid_mode_returns_422(self, app_client):
        resp = await app_client.post("/api/projects", json={"name": "X", "mode": "deploy"})
        assert resp.status_code == 422


class TestListProjects:
    async def test_list_empty(self, app_client):
        resp = await app_client.get("/api/projects")
        assert resp.status_code == 200
        assert resp.json() == []

    async def test_newest_first_with_tasks(self, app_client, tmp_db):
        await create_test_project(tmp_db, "old", "Old", created_at=1000.0)
        await create_test_project(tmp_db, "new", "New", created_at=2000.0)
        await create_test_task(tmp_db, "t2", "old", position=1)
        await create_test_task(tmp_db, "t1", "old", position=0)

        data = (await app_client.get("/api/projects")).json()
        assert [p["id"] for p in data] == ["new", "old"]
        assert data[0]["tasks"] == []
        assert [t["id"] for t in data[1]["tasks"]] == ["t1", "t2"]


class TestGetProject:
    async def test_get(self, app_client, tmp_db):
        await create_test_project(tmp_db, "proj1")
        await create_test_task(tmp_db, "t1", "proj1")
        resp = await app_client.get("/api/projects/proj1")
        assert resp.status_code == 200
        assert [t["id"] for t in resp.json()["tasks"]] == ["t1"]

    async def test_get_nonexistent_returns_404(self, app_client):
        resp = await app_client.get("/api/projects/nonexistent")
        assert resp.status_code == 404


class TestUpdateProject:
    async def test_update_fields(self, app_client, tmp_db):
        await create_test_project(tmp_db, "proj1")
        resp = await app_client.patch("/api/projects/proj1", json={
            "name": "Renamed", "mode": "research",
        })
        assert resp.status_code == 200
        assert (resp.json()["name"], resp.json()["mode"]) == ("Renamed", "research")

    async def test_empty_update_returns_400(self, app_client, tmp_db):
        await create_test_project(tmp_db, "proj1")
        resp = await app_client.patch("/api/projects/proj1", json={})
        assert resp.status_code == 400

    async def test_refused_while_executing(self, app_client, tmp_db):
        await create_test_project(tmp_db, "proj1", status="executing")
        resp = await app_client.patch("/api/projects/proj1", json={"name": "X"})
        assert resp.status_code == 409

    async def test_status_writable_when_not_executing(self, app_client, tmp_db):
        await create_test_project(tmp_db, "proj1", status="failed")
        resp = await app_client.patch("/api/projects/proj1", json={"status": "idle"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "idle"

    async def test_cannot_mark_executing(self, app_client, tmp_db):
        await create_test_project(tmp_db, "proj1")
        resp = await app_client.patch("/api/projects/proj1", json={"status": "executing"})
        assert resp.status_code == 400
        row = await tmp_db.fetchone("SELECT status FROM projects WHERE id = 'proj1'")
        assert row["status"] == "idle"


class TestDeleteProject:
    async def test_delete_cascades(self, app_client, tmp_db):
        await create_test_project(tmp_db, "proj1")
        await create_test_task(tmp_db, "t1", "proj1")
        await app_client.post("/api/projects/proj1/logs", json={"type": "info", "content": "note"})

        resp = await app_client.delete("/api/projects/proj1")
        assert resp.status_code == 204
        assert (await app_client.get("/api/projects/proj1")).status_code == 404
        assert await tmp_db.fetchall("SELECT * FROM tasks") == []
        assert await tmp_db.fetchall("SELECT * FROM execution_logs") == []

    async def test_delete_nonexistent_returns_404(self, app_client):
        resp = await app_client.delete("/api/projects/nonexistent")
        assert resp.status_code == 404

    async def test_delete_refused_while_executing(self, app_client, tmp_db):
        await create_test_project(tmp_db, "proj1", status="executing")
        resp = await app_client.delete("/api/projects/proj1")
        assert resp.status_code == 409
