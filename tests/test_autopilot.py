"""Tests for autopilot and PM backlog generation."""

import random

import pytest

from founder_engine.core import autopilot as autopilot_mod
from founder_engine.core import clock
from founder_engine.core import employees as employees_mod
from founder_engine.core import tasks as tasks_mod
from founder_engine.core.store import EntityStore

IDEA_TITLES = {title for title, _ in autopilot_mod.PM_TASK_IDEAS}


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def rng():
    return random.Random(7)


class TestToggle:
    def test_toggle(self, store):
        assert autopilot_mod.toggle_autopilot(store) is True
        assert store.notifications[-1].level == "success"
        assert autopilot_mod.toggle_autopilot(store) is False
        assert "manual control" in store.notifications[-1].message

    def test_set_same_value_is_quiet(self, store):
        autopilot_mod.set_autopilot(store, False)
        assert store.notifications == []


class TestPMGenerateTasks:
    def test_requires_idle_pm(self, store):
        employees_mod.hire_employee(store, "engineer")
        assert autopilot_mod.pm_generate_tasks(store) == []
        assert store.notifications[-1].message == "No available PMs to generate tasks"
        assert store.notifications[-1].level == "warning"

    def test_busy_pm_does_not_plan(self, store):
        pm = employees_mod.hire_employee(store, "pm")
        tasks_mod.create_task(store, "Roadmap")
        tasks_mod.assign_task(store, "roadmap", pm.id)
        assert autopilot_mod.pm_generate_tasks(store) == []

    def test_creates_backlog_tasks(self, store, rng):
        pm = employees_mod.hire_employee(store, "pm", "Priya Shah")

        created = autopilot_mod.pm_generate_tasks(store, rng=rng)

        assert len(created) == autopilot_mod.IDEAS_PER_PM
        for task in created:
            assert task.title in IDEA_TITLES
            assert task.status == "backlog"
            assert task.description == "Task created by Priya Shah"
            assert 60 <= task.estimated_ticks < 140
        assert store.notifications[-1].message == "Priya Shah added 2 task(s) to the backlog!"
        assert store.get_employee(pm.id).status == "idle"

    def test_skips_ideas_already_on_the_board(self, store, rng):
        employees_mod.hire_employee(store, "pm")
        titles = sorted(IDEA_TITLES)
        for title in titles[1:]:
            tasks_mod.create_task(store, title.upper())

        created = autopilot_mod.pm_generate_tasks(store, count=3, rng=rng)

        assert [t.title for t in created] == [titles[0]]

    def test_no_ideas_left(self, store):
        employees_mod.hire_employee(store, "pm", "Priya Shah")
        for title in IDEA_TITLES:
            tasks_mod.create_task(store, title)

        assert autopilot_mod.pm_generate_tasks(store) == []
        assert store.notifications[-1].message == "Priya Shah has no new task ideas right now"
        assert store.notifications[-1].level == "info"


class TestRunAutopilot:
    def test_noop_when_off(self, store):
        autopilot_mod.run_autopilot(store)
        assert store.employees == {}
        assert store.funds == 100_000

    def test_hires_missing_roles_in_order(self, store, rng):
        store.autopilot = True
        for _ in range(4):
            autopilot_mod.run_autopilot(store, rng=rng)

        assert [e.role for e in store.employees.values()] == ["engineer", "designer", "pm"]
        assert store.funds == 75_000

    def test_no_hire_at_funds_floor(self, store):
        store.autopilot = True
        store.funds = autopilot_mod.HIRE_FUNDS_FLOOR
        autopilot_mod.run_autopilot(store)
        assert store.employees == {}

    def test_idle_employees_pick_up_matching_work(self, store):
        engineer = employees_mod.hire_employee(store, "engineer")
        designer = employees_mod.hire_employee(store, "designer")
        store.funds = 1_000
        tasks_mod.create_task(store, "Login form")
        tasks_mod.create_task(store, "Color palette", type="design")
        store.autopilot = True

        autopilot_mod.run_autopilot(store)

        assert store.get_task("login-form").assignee_id == engineer.id
        assert store.get_task("color-palette").assignee_id == designer.id

    def test_approves_reviews(self, store):
        engineer = employees_mod.hire_employee(store, "engineer")
        store.funds = 1_000
        tasks_mod.create_task(store, "Login form")
        tasks_mod.assign_task(store, "login-form", engineer.id)
        tasks_mod.update_task_status(store, "login-form", "review")
        store.autopilot = True

        autopilot_mod.run_autopilot(store)

        assert store.get_task("login-form").status == "done"
        assert store.stats.tasks_completed == 1

    def test_pm_plans_only_when_work_runs_low(self, store, rng):
        employees_mod.hire_employee(store, "pm")
        store.funds = 1_000
        for title in ("Alpha", "Beta", "Gamma"):
            tasks_mod.create_task(store, title)
        store.autopilot = True

        autopilot_mod.run_autopilot(store, rng=rng)
        assert len(store.tasks) == 3

        store.tasks.clear()
        store.update_employee("emp-1", status="idle", current_task_id=None)
        autopilot_mod.run_autopilot(store, rng=rng)
        assert len(store.tasks) == 2
        assert {t.title for t in store.tasks.values()} <= IDEA_TITLES


class TestClockIntegration:
    def test_tick_runs_autopilot(self, store):
        autopilot_mod.set_autopilot(store, True)
        clock.tick(store)
        assert [e.role for e in store.employees.values()] == ["engineer"]

    def test_paused_tick_does_not(self, store):
        autopilot_mod.set_autopilot(store, True)
        clock.set_paused(store, True)
        clock.tick(store)
        assert store.employees == {}
