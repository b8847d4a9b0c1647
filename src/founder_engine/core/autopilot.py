"""Autopilot: the team runs itself on every tick.

``run_autopilot`` is called from ``tick`` once the clock has advanced. Each
pass hires the first missing role while the team is small, lets an idle PM
add backlog ideas when work runs low, hands pending tasks to idle employees
and approves everything sitting in review.
"""

import logging
import random

from founder_engine.core.employees import hire_employee
from founder_engine.core.tasks import (
    create_task,
    list_tasks,
    pending_tasks,
    quick_assign,
    update_task_status,
)

logger = logging.getLogger(__name__)

MIN_TEAM_SIZE = 3
HIRE_FUNDS_FLOOR = 20_000
HIRE_ORDER = ("engineer", "designer", "pm")
MIN_QUEUED_AI_WORK = 2
MIN_PENDING_TASKS = 3
IDEAS_PER_PM = 2

PM_TASK_IDEAS = [
    ("User authentication flow", "feature"),
    ("Dashboard analytics widget", "feature"),
    ("Mobile responsive design", "design"),
    ("API rate limiting", "infrastructure"),
    ("Onboarding tutorial", "feature"),
    ("Dark mode support", "design"),
    ("Email notification system", "feature"),
    ("Performance optimization", "infrastructure"),
    ("Social media sharing", "marketing"),
    ("User settings page", "feature"),
    ("Search functionality", "feature"),
    ("Landing page redesign", "marketing"),
    ("Database backup system", "infrastructure"),
    ("Accessibility improvements", "design"),
    ("Payment integration", "feature"),
    ("Admin dashboard", "feature"),
    ("SEO optimization", "marketing"),
    ("Error logging system", "infrastructure"),
    ("User feedback form", "feature"),
    ("Animation polish", "design"),
]

IDEA_PRIORITIES = ("low", "medium", "medium", "high")


def toggle_autopilot(store) -> bool:
    return set_autopilot(store, not store.autopilot)


def set_autopilot(store, enabled: bool) -> bool:
    with store.transaction():
        if store.autopilot != enabled:
            store.autopilot = enabled
            store.emit("autopilot")
            if enabled:
                store.notify("Autopilot ON: the team is working autonomously", "success")
            else:
                store.notify("Autopilot OFF: manual control", "info")
        return store.autopilot


def pm_generate_tasks(store, count: int = IDEAS_PER_PM, rng: random.Random | None = None) -> list:
    """Have the first idle PM add backlog tasks drawn from ideas not yet on the board.

    Returns the created tasks. Without an idle PM a warning is raised; with no
    unused ideas left an info notification is raised instead.
    """
    rng = rng or random
    with store.transaction():
        pm = next((e for e in store.employees.values() if e.role == "pm" and e.status == "idle"), None)
        if not pm:
            store.notify("No available PMs to generate tasks", "warning")
            return []

        existing = {t.title.lower() for t in store.tasks.values()}
        ideas = [(title, type) for title, type in PM_TASK_IDEAS if title.lower() not in existing]
        if not ideas:
            store.notify(f"{pm.name} has no new task ideas right now", "info")
            return []

        created = []
        for title, type in rng.sample(ideas, min(count, len(ideas))):
            task = create_task(
                store,
                title,
                description=f"Task created by {pm.name}",
                type=type,
                priority=rng.choice(IDEA_PRIORITIES),
                estimated_ticks=60 + rng.randrange(80),
            )
            if task:
                created.append(task)
        store.notify(f"{pm.name} added {len(created)} task(s) to the backlog!", "success")

    logger.info("PM %s generated %d task(s)", pm.id, len(created))
    return created


def run_autopilot(store, rng: random.Random | None = None):
    """One autopilot pass. No-op unless autopilot is on."""
    with store.transaction():
        if not store.autopilot:
            return

        if len(store.employees) < MIN_TEAM_SIZE and store.funds > HIRE_FUNDS_FLOOR:
            roles = {e.role for e in store.employees.values()}
            role = next((r for r in HIRE_ORDER if r not in roles), "engineer")
            hire_employee(store, role)

        idle_pm = any(e.role == "pm" and e.status == "idle" for e in store.employees.values())
        queued = sum(1 for i in store.ai_queue if i.status == "queued")
        if idle_pm and queued < MIN_QUEUED_AI_WORK and len(pending_tasks(store)) < MIN_PENDING_TASKS:
            pm_generate_tasks(store, rng=rng)

        for task in list_tasks(store):
            if task.status not in ("backlog", "todo"):
                continue
            if not any(e.status == "idle" for e in store.employees.values()):
                break
            quick_assign(store, task.id)

        for task in list_tasks(store, status="review"):
            update_task_status(store, task.id, "done")
            logger.info("Autopilot approved %s", task.id)
