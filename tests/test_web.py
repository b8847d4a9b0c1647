"""Tests for the JSON HTTP API."""

import pytest
from starlette.testclient import TestClient

from founder_engine.core import employees as employees_mod
from founder_engine.core import tasks as tasks_mod
from founder_engine.core.store import EntityStore
from founder_engine.integrations.generation import GenerationResult
from founder_engine.web.app import create_app


class StubGenerator:
    async def generate(self, request):
        return GenerationResult(code="def handler():\n    return 200\n", model_used="stub")


@pytest.fixture
def store():
    store = EntityStore()
    employees_mod.hire_employee(store, "engineer", "Ada Chen")
    tasks_mod.create_task(store, "Setup database", description="Create tables", priority="high")
    tasks_mod.create_task(store, "Build API", estimated_ticks=2)
    return store


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


class TestStateAPI:
    def test_state(self, client):
        resp = client.get("/api/state")
        assert resp.status_code == 200
        data = resp.json()
        assert data["tick"] == 0
        assert data["funds"] == 90_000
        assert data["counts"]["tasks"] == 2

    def test_tick(self, client):
        resp = client.post("/api/tick", json={"count": 3})
        assert resp.json() == {"tick": 3, "paused": False}

    def test_tick_rejects_non_numeric_count(self, client):
        resp = client.post("/api/tick", json={"count": "many"})
        assert resp.status_code == 400
        assert "count" in resp.json()["error"]
        assert client.post("/api/tick", json={"count": True}).status_code == 400
        assert client.get("/api/state").json()["tick"] == 0

    def test_pause(self, client):
        assert client.post("/api/pause").json() == {"paused": True}
        assert client.post("/api/tick").json()["tick"] == 0
        assert client.post("/api/pause", json={"paused": False}).json() == {"paused": False}


class TestTasksAPI:
    def test_list_tasks(self, client):
        data = client.get("/api/tasks").json()
        assert [t["id"] for t in data] == ["setup-database", "build-api"]

    def test_create_task(self, client):
        resp = client.post("/api/tasks", json={"title": "Write tests", "type": "infrastructure"})
        assert resp.status_code == 201
        assert resp.json()["id"] == "write-tests"

    def test_create_task_validation(self, client):
        assert client.post("/api/tasks", json={}).status_code == 400
        assert client.post("/api/tasks", json={"title": "X", "priority": "urgent"}).status_code == 400

    def test_malformed_fields_are_rejected(self, client):
        resp = client.post("/api/tasks", json={"title": "x", "estimated_ticks": "abc"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "estimated_ticks must be an integer"
        assert client.post("/api/tasks", json={"title": ["x"]}).status_code == 400
        assert client.post("/api/tasks", json={"title": "x", "type": ["bug"]}).status_code == 400
        assert client.post("/api/tasks/build-api/assign", json={"employee_id": ["emp-1"]}).status_code == 400
        assert client.get("/api/tasks").json()[-1]["id"] == "build-api"

    def test_get_missing_task(self, client):
        assert client.get("/api/tasks/nonexistent").status_code == 404

    def test_assign_and_progress(self, client):
        resp = client.post("/api/tasks/build-api/assign", json={"employee_id": "emp-1"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "in_progress"

        client.post("/api/tick", json={"count": 2})
        task = client.get("/api/tasks/build-api").json()
        assert task["status"] == "review"
        assert task["completed_at"] == 2

    def test_assign_busy_employee(self, client):
        client.post("/api/tasks/build-api/assign", json={"employee_id": "emp-1"})
        resp = client.post("/api/tasks/setup-database/assign", json={"employee_id": "emp-1"})
        assert resp.status_code == 400

    def test_assign_unknown_employee(self, client):
        resp = client.post("/api/tasks/build-api/assign", json={"employee_id": "emp-9"})
        assert resp.status_code == 404

    def test_status_done(self, client, store):
        client.post("/api/tasks/build-api/assign", json={"employee_id": "emp-1"})
        resp = client.post("/api/tasks/build-api/status", json={"status": "done"})
        assert resp.json()["status"] == "done"
        assert store.get_employee("emp-1").status == "idle"

    def test_invalid_status(self, client):
        resp = client.post("/api/tasks/build-api/status", json={"status": "shipped"})
        assert resp.status_code == 400


class TestTeamAPI:
    def test_hire(self, client):
        resp = client.post("/api/employees", json={"role": "designer", "name": "Bo Lee"})
        assert resp.status_code == 201
        assert resp.json()["id"] == "emp-2"

    def test_hire_unknown_role(self, client):
        assert client.post("/api/employees", json={"role": "ceo"}).status_code == 400

    def test_hire_without_funds(self, client, store):
        store.funds = 100
        resp = client.post("/api/employees", json={"role": "engineer"})
        assert resp.status_code == 400
        assert "Not enough money" in resp.json()["error"]

    def test_fire(self, client):
        client.post("/api/tasks/build-api/assign", json={"employee_id": "emp-1"})
        assert client.delete("/api/employees/emp-1").status_code == 200
        assert client.get("/api/tasks/build-api").json()["status"] == "todo"
        assert client.delete("/api/employees/emp-1").status_code == 404

    def test_memory(self, client):
        data = client.get("/api/employees/emp-1/memory").json()
        assert data["memory"] == []
        assert "Experience of Ada Chen" in data["context"]


class TestQueueAPI:
    def test_process_without_generator(self, client):
        assert client.post("/api/queue/process").status_code == 400

    def test_process_with_generator(self, store):
        store.ai_enabled = True
        client = TestClient(create_app(store, StubGenerator()))
        client.post("/api/tasks/build-api/assign", json={"employee_id": "emp-1"})
        assert len(client.get("/api/queue").json()["items"]) == 1

        data = client.post("/api/queue/process").json()
        assert data == {"processed": True, "queue_length": 0}
        task = client.get("/api/tasks/build-api").json()
        assert task["ai_work_completed"] is True
        assert task["artifacts"][0]["type"] == "code"


class TestMissionsAPI:
    def test_create_and_get(self, client):
        resp = client.post("/api/missions", json={
            "name": "User Authentication",
            "priority": "critical",
            "tasks": [{"title": "Build login flow", "estimated_ticks": 300}],
        })
        assert resp.status_code == 201
        mission = resp.json()
        assert mission["branch_name"] == "mission/user-authentication"

        data = client.get(f"/api/missions/{mission['id']}").json()
        assert data["progress"] == 0.0
        assert data["tasks"][0]["priority"] == "critical"

    def test_lifecycle(self, client):
        mission_id = client.post("/api/missions", json={"name": "Landing"}).json()["id"]
        assert client.post(f"/api/missions/{mission_id}/start").json()["status"] == "active"
        assert client.post(f"/api/missions/{mission_id}/start").status_code == 400
        resp = client.post(f"/api/missions/{mission_id}/status", json={"status": "planning"})
        assert resp.status_code == 400
        resp = client.post(f"/api/missions/{mission_id}/pr", json={"url": "https://x.test/pr/5", "number": 5})
        assert resp.json()["status"] == "review"
        assert client.post(f"/api/missions/{mission_id}/complete").json()["status"] == "completed"
        assert client.get("/api/state").json()["stats"]["features_shipped"] == 1

    def test_malformed_mission_fields(self, client):
        assert client.post("/api/missions", json={"name": 42}).status_code == 400
        bad_task = {"title": "Schema", "estimated_ticks": "soon"}
        resp = client.post("/api/missions", json={"name": "Backend", "tasks": [bad_task]})
        assert resp.status_code == 400
        assert client.post("/api/missions", json={"name": "Backend", "tasks": "Schema"}).status_code == 400
        assert client.get("/api/missions").json() == []

        mission_id = client.post("/api/missions", json={"name": "Landing"}).json()["id"]
        resp = client.post(f"/api/missions/{mission_id}/pr", json={"url": "https://x.test/pr/5", "number": "five"})
        assert resp.status_code == 400
        assert client.get(f"/api/missions/{mission_id}").json()["status"] == "planning"

    def test_malformed_epic_and_hire(self, client):
        assert client.post("/api/epics", json={"name": {"x": 1}}).status_code == 400
        assert client.post("/api/employees", json={"role": ["engineer"]}).status_code == 400

    def test_missing_mission(self, client):
        assert client.get("/api/missions/mission-404").status_code == 404
        assert client.post("/api/missions/mission-404/start").status_code == 404

    def test_mission_tasks(self, client):
        mission_id = client.post("/api/missions", json={"name": "Backend"}).json()["id"]
        resp = client.post(f"/api/missions/{mission_id}/tasks", json={"task_id": "build-api"})
        assert resp.json()["task_ids"] == ["build-api"]
        resp = client.delete(f"/api/missions/{mission_id}/tasks/build-api")
        assert resp.json()["task_ids"] == []


class TestAdvisorAPI:
    def test_evaluate_and_approve(self, client, store):
        store.tasks.clear()
        proposals = client.post("/api/advisor/evaluate").json()
        mission = next(p for p in proposals if p["type"] == "mission")
        assert mission["payload"]["mission_name"] == "Core Database Setup"

        resp = client.post(f"/api/proposals/{mission['id']}/approve")
        assert resp.json()["status"] == "approved"
        assert client.post(f"/api/proposals/{mission['id']}/approve").status_code == 400
        assert len(client.get("/api/missions").json()) == 1

    def test_dismiss(self, client, store):
        store.tasks.clear()
        proposals = client.post("/api/advisor/evaluate").json()
        proposal_id = proposals[0]["id"]
        assert client.delete(f"/api/proposals/{proposal_id}").status_code == 200
        assert client.delete(f"/api/proposals/{proposal_id}").status_code == 404

    def test_thoughts(self, client):
        client.post("/api/advisor/evaluate")
        thoughts = client.get("/api/advisor/thoughts").json()
        assert thoughts[0]["kind"] == "observation"


class TestUpgradesAPI:
    def test_purchase(self, client):
        resp = client.post("/api/upgrades/better-ide/purchase")
        assert resp.json()["purchased"] is True
        assert client.post("/api/upgrades/better-ide/purchase").status_code == 400
        assert client.post("/api/upgrades/jetpack/purchase").status_code == 404

    def test_notifications(self, client):
        notes = client.get("/api/notifications").json()
        assert notes
        assert client.post("/api/notifications/read").json()["marked"] == len(notes)
        assert client.get("/api/notifications", params={"unread": "1"}).json() == []
        assert client.delete(f"/api/notifications/{notes[0]['id']}").status_code == 200


class TestAutopilotAPI:
    def test_toggle_and_set(self, client):
        assert client.post("/api/autopilot").json() == {"autopilot": True}
        assert client.get("/api/state").json()["autopilot"] is True
        assert client.post("/api/autopilot", json={"enabled": False}).json() == {"autopilot": False}

    def test_autopilot_tick_hires(self, client, store):
        client.post("/api/autopilot", json={"enabled": True})
        client.post("/api/tick")
        assert [e.role for e in store.employees.values()] == ["engineer", "designer"]

    def test_quick_assign(self, client, store):
        resp = client.post("/api/tasks/setup-database/quick-assign")
        assert resp.json()["assignee_id"] == "emp-1"

        resp = client.post("/api/tasks/build-api/quick-assign")
        assert resp.status_code == 400
        assert "No idle employee" in resp.json()["error"]
        assert client.post("/api/tasks/ghost/quick-assign").status_code == 404

    def test_generate_tasks(self, client, store):
        assert client.post("/api/advisor/generate-tasks").status_code == 400
        client.post("/api/employees", json={"role": "pm"})
        resp = client.post("/api/advisor/generate-tasks")
        assert resp.status_code == 201
        assert len(resp.json()) == 2
