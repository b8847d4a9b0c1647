"""Tests for task management and the assignment matcher."""

import pytest

from founder_engine.core import employees as employees_mod
from founder_engine.core import tasks as tasks_mod
from founder_engine.core.store import EntityStore


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def engineer(store):
    return employees_mod.hire_employee(store, "engineer", "Ada Chen")


class TestSlugify:
    def test_basic(self):
        assert tasks_mod.slugify("Hello World") == "hello-world"

    def test_special_chars(self):
        assert tasks_mod.slugify("Auth: Login & Signup!") == "auth-login-signup"

    def test_multiple_spaces(self):
        assert tasks_mod.slugify("  too   many   spaces  ") == "too-many-spaces"

    def test_truncation(self):
        assert len(tasks_mod.slugify("a" * 100)) <= 60


class TestTaskCRUD:
    def test_create_task(self, store):
        task = tasks_mod.create_task(store, "Build login page", type="feature", priority="high", estimated_ticks=50)
        assert task.id == "build-login-page"
        assert task.status == "backlog"
        assert task.priority == "high"
        assert task.estimated_ticks == 50
        assert task.progress_ticks == 0
        assert task.ai_work_started is False

    def test_create_duplicate_gets_suffix(self, store):
        t1 = tasks_mod.create_task(store, "Build login page")
        t2 = tasks_mod.create_task(store, "Build login page")
        assert t1.id == "build-login-page"
        assert t2.id == "build-login-page-2"

    def test_create_rejects_invalid_fields(self, store):
        assert tasks_mod.create_task(store, "X", type="research") is None
        assert tasks_mod.create_task(store, "X", priority="urgent") is None
        assert tasks_mod.create_task(store, "X", estimated_ticks=0) is None
        assert store.tasks == {}

    def test_created_at_uses_tick(self, store):
        store.tick = 42
        task = tasks_mod.create_task(store, "Later task")
        assert task.created_at == 42

    def test_get_nonexistent_task(self, store):
        assert tasks_mod.get_task(store, "nonexistent") is None

    def test_list_tasks_orders_by_priority_then_age(self, store):
        tasks_mod.create_task(store, "Low one", priority="low")
        tasks_mod.create_task(store, "Critical one", priority="critical")
        store.tick = 5
        tasks_mod.create_task(store, "Critical two", priority="critical")
        ids = [t.id for t in tasks_mod.list_tasks(store)]
        assert ids == ["critical-one", "critical-two", "low-one"]

    def test_list_tasks_by_status(self, store):
        tasks_mod.create_task(store, "Task A")
        tasks_mod.create_task(store, "Task B", status="todo")
        todos = tasks_mod.list_tasks(store, status="todo")
        assert [t.id for t in todos] == ["task-b"]


class TestAssignment:
    def test_assign_binds_both_sides(self, store, engineer):
        tasks_mod.create_task(store, "Build API")
        task = tasks_mod.assign_task(store, "build-api", engineer.id)
        assert task.status == "in_progress"
        assert task.assignee_id == engineer.id
        employee = store.get_employee(engineer.id)
        assert employee.status == "working"
        assert employee.current_task_id == "build-api"

    def test_assign_missing_entities_is_noop(self, store, engineer):
        tasks_mod.create_task(store, "Build API")
        assert tasks_mod.assign_task(store, "nope", engineer.id) is None
        assert tasks_mod.assign_task(store, "build-api", "emp-999") is None
        assert store.get_task("build-api").status == "backlog"
        assert store.get_employee(engineer.id).status == "idle"

    def test_busy_employee_cannot_take_second_task(self, store, engineer):
        tasks_mod.create_task(store, "First")
        tasks_mod.create_task(store, "Second")
        tasks_mod.assign_task(store, "first", engineer.id)
        assert tasks_mod.assign_task(store, "second", engineer.id) is None
        assert store.get_task("second").assignee_id is None

    def test_done_task_cannot_be_assigned(self, store, engineer):
        tasks_mod.create_task(store, "Shipped", status="done")
        assert tasks_mod.assign_task(store, "shipped", engineer.id) is None

    def test_reassign_frees_previous_assignee(self, store, engineer):
        other = employees_mod.hire_employee(store, "engineer", "Bo Lee")
        tasks_mod.create_task(store, "Build API")
        tasks_mod.assign_task(store, "build-api", engineer.id)
        tasks_mod.assign_task(store, "build-api", other.id)
        assert store.get_employee(engineer.id).status == "idle"
        assert store.get_employee(engineer.id).current_task_id is None
        assert store.get_task("build-api").assignee_id == other.id

    def test_assign_does_not_queue_ai_work_when_disabled(self, store, engineer):
        tasks_mod.create_task(store, "Build API")
        task = tasks_mod.assign_task(store, "build-api", engineer.id)
        assert task.ai_work_started is False
        assert store.ai_queue == []

    def test_assign_queues_ai_work_when_enabled(self, engineer, store):
        store.ai_enabled = True
        tasks_mod.create_task(store, "Build API", priority="high")
        task = tasks_mod.assign_task(store, "build-api", engineer.id)
        assert task.ai_work_started is True
        assert [i.task_id for i in store.ai_queue] == ["build-api"]
        assert store.ai_queue[0].priority == 2

    def test_unassign(self, store, engineer):
        tasks_mod.create_task(store, "Build API")
        tasks_mod.assign_task(store, "build-api", engineer.id)
        task = tasks_mod.unassign_task(store, "build-api")
        assert task.status == "todo"
        assert task.assignee_id is None
        assert store.get_employee(engineer.id).status == "idle"

    def test_unassign_without_assignee_is_noop(self, store):
        tasks_mod.create_task(store, "Build API")
        assert tasks_mod.unassign_task(store, "build-api") is None
        assert store.get_task("build-api").status == "backlog"


class TestQuickAssign:
    def test_prefers_matching_role(self, store, engineer):
        designer = employees_mod.hire_employee(store, "designer")
        tasks_mod.create_task(store, "Color palette", type="design")

        task = tasks_mod.quick_assign(store, "color-palette")

        assert task.assignee_id == designer.id
        assert store.get_employee(engineer.id).status == "idle"

    def test_falls_back_to_any_idle_employee(self, store, engineer):
        tasks_mod.create_task(store, "Launch tweet", type="marketing")
        assert tasks_mod.quick_assign(store, "launch-tweet").assignee_id == engineer.id

    def test_warns_when_nobody_is_idle(self, store, engineer):
        tasks_mod.create_task(store, "First")
        tasks_mod.create_task(store, "Second")
        tasks_mod.assign_task(store, "first", engineer.id)

        assert tasks_mod.quick_assign(store, "second") is None
        assert store.notifications[-1].level == "warning"
        assert "Second" in store.notifications[-1].message

    def test_missing_or_done_task(self, store, engineer):
        assert tasks_mod.quick_assign(store, "ghost") is None
        tasks_mod.create_task(store, "Shipped", status="done")
        assert tasks_mod.quick_assign(store, "shipped") is None


class TestStatusUpdates:
    def test_done_frees_assignee_and_counts(self, store, engineer):
        tasks_mod.create_task(store, "Build API")
        tasks_mod.assign_task(store, "build-api", engineer.id)
        task = tasks_mod.update_task_status(store, "build-api", "done")
        assert task.status == "done"
        assert task.assignee_id == engineer.id
        assert store.get_employee(engineer.id).status == "idle"
        assert store.stats.tasks_completed == 1

    def test_done_counts_only_once(self, store):
        tasks_mod.create_task(store, "Build API")
        tasks_mod.update_task_status(store, "build-api", "done")
        tasks_mod.update_task_status(store, "build-api", "done")
        assert store.stats.tasks_completed == 1

    def test_other_transitions_have_no_side_effects(self, store, engineer):
        store.ai_enabled = True
        tasks_mod.create_task(store, "Build API")
        tasks_mod.assign_task(store, "build-api", engineer.id)
        tasks_mod.update_task_status(store, "build-api", "review")
        tasks_mod.update_task_status(store, "build-api", "in_progress")
        assert store.get_employee(engineer.id).status == "working"
        assert len(store.ai_queue) == 1
        assert store.stats.tasks_completed == 0

    def test_invalid_status(self, store):
        tasks_mod.create_task(store, "Build API")
        assert tasks_mod.update_task_status(store, "build-api", "archived") is None
        assert tasks_mod.update_task_status(store, "missing", "done") is None


class TestArtifacts:
    def test_add_artifact(self, store, engineer):
        tasks_mod.create_task(store, "Build API")
        artifact = tasks_mod.add_task_artifact(
            store, "build-api", "code", "api.py", "print('hi')", engineer.id,
            language="python", file_path="src/api.py",
        )
        task = store.get_task("build-api")
        assert task.artifacts == [artifact]
        assert artifact.created_by == engineer.id

    def test_add_artifact_to_missing_task(self, store):
        assert tasks_mod.add_task_artifact(store, "nope", "code", "x", "y", "emp-1") is None


class TestChangeEvents:
    def test_events_dispatched_after_command(self, store):
        seen = []
        store.subscribe(lambda e: seen.append((e.kind, e.entity_id)))
        tasks_mod.create_task(store, "Build API")
        assert ("task", "build-api") in seen

    def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        tasks_mod.create_task(store, "Build API")
        assert seen == []

    def test_failing_subscriber_does_not_break_commands(self, store):
        def boom(event):
            raise RuntimeError("boom")

        store.subscribe(boom)
        assert tasks_mod.create_task(store, "Build API") is not None
