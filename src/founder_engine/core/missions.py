"""Missions group tasks under a feature branch; epics group missions."""

import hashlib
import logging
from dataclasses import replace

from founder_engine.core.tasks import create_task, slugify
from founder_engine.db.models import (
    EPIC_STATUSES,
    PRIORITIES,
    PRODUCT_PHASES,
    Epic,
    Mission,
    MissionCommit,
    TaskDefinition,
)

logger = logging.getLogger(__name__)

# Forward order; abandoned sits outside it.
STATUS_ORDER = ("planning", "active", "review", "merging", "completed")


def create_mission(
    store,
    name: str,
    description: str = "",
    priority: str = "medium",
    base_branch: str = "main",
) -> Mission | None:
    """Create a mission in planning with a branch derived from its name."""
    if priority not in PRIORITIES:
        return None
    with store.transaction():
        slug = slugify(name) or "mission"
        mission = Mission(
            id=store.next_id("mission"),
            name=name,
            description=description,
            priority=priority,
            branch_name=f"mission/{slug}",
            base_branch=base_branch,
            created_at=store.tick,
        )
        store.missions[mission.id] = mission
        store.emit("mission", mission.id)
    logger.info("Created mission %s (%s)", mission.id, mission.branch_name)
    return mission


def create_mission_with_tasks(
    store,
    name: str,
    description: str = "",
    priority: str = "medium",
    tasks: list[TaskDefinition] | None = None,
) -> Mission | None:
    """Create a mission and one backlog task per definition, linked in order."""
    with store.transaction():
        mission = create_mission(store, name, description, priority)
        if not mission:
            return None
        task_ids = []
        for definition in tasks or []:
            task = create_task(
                store,
                definition.title,
                description=definition.description,
                type=definition.type,
                priority=definition.priority or priority,
                estimated_ticks=definition.estimated_ticks,
            )
            if task:
                task_ids.append(task.id)
        mission = store.update_mission(mission.id, task_ids=task_ids)
    store.notify(f'Mission "{name}" created with {len(task_ids)} tasks', "success")
    return mission


def get_mission(store, mission_id: str) -> Mission | None:
    return store.get_mission(mission_id)


def list_missions(store, status: str | None = None) -> list[Mission]:
    missions = list(store.missions.values())
    if status:
        missions = [m for m in missions if m.status == status]
    return sorted(missions, key=lambda m: (m.created_at, m.id))


def start_mission(store, mission_id: str) -> Mission | None:
    """Move a planning mission to active and select it."""
    with store.transaction():
        mission = store.get_mission(mission_id)
        if not mission or mission.status != "planning":
            return None
        mission = store.update_mission(mission_id, status="active", started_at=store.tick)
        store.active_mission_id = mission_id
        store.emit("active_mission", mission_id)
    store.notify(f"Mission started: {mission.name} ({mission.branch_name})", "info")
    return mission


def set_active_mission(store, mission_id: str | None) -> Mission | None:
    """Select the mission shown as current. ``None`` clears the selection."""
    with store.transaction():
        if mission_id is None:
            store.active_mission_id = None
            store.emit("active_mission")
            return None
        mission = store.get_mission(mission_id)
        if not mission or mission.status in ("completed", "abandoned"):
            return None
        store.active_mission_id = mission_id
        store.emit("active_mission", mission_id)
        return mission


def add_task_to_mission(store, mission_id: str, task_id: str) -> Mission | None:
    with store.transaction():
        mission = store.get_mission(mission_id)
        if not mission or not store.get_task(task_id):
            return None
        if task_id in mission.task_ids:
            return mission
        return store.update_mission(mission_id, task_ids=mission.task_ids + [task_id])


def remove_task_from_mission(store, mission_id: str, task_id: str) -> Mission | None:
    with store.transaction():
        mission = store.get_mission(mission_id)
        if not mission or task_id not in mission.task_ids:
            return None
        return store.update_mission(mission_id, task_ids=[t for t in mission.task_ids if t != task_id])


def update_mission_status(store, mission_id: str, status: str) -> Mission | None:
    """Advance a mission. Only forward moves are accepted.

    ``abandoned`` and ``completed`` are routed to ``abandon_mission`` and
    ``complete_mission`` so their side effects always apply.
    """
    if status == "abandoned":
        return abandon_mission(store, mission_id)
    if status == "completed":
        return complete_mission(store, mission_id)
    if status not in STATUS_ORDER:
        return None

    with store.transaction():
        mission = store.get_mission(mission_id)
        if not mission or mission.status == "abandoned":
            return None
        if STATUS_ORDER.index(status) <= STATUS_ORDER.index(mission.status):
            logger.info("Ignoring mission %s move %s -> %s", mission_id, mission.status, status)
            return None
        changes = {"status": status}
        if mission.started_at is None:
            changes["started_at"] = store.tick
        mission = store.update_mission(mission_id, **changes)
    logger.info("Mission %s -> %s", mission_id, status)
    return mission


def complete_mission(store, mission_id: str) -> Mission | None:
    """Ship a mission. Terminal; counts one shipped feature."""
    with store.transaction():
        mission = store.get_mission(mission_id)
        if not mission or mission.status in ("completed", "abandoned"):
            return None
        mission = store.update_mission(mission_id, status="completed", completed_at=store.tick)
        store.add_stats(features_shipped=1)
        if store.active_mission_id == mission_id:
            store.active_mission_id = None
            store.emit("active_mission")
        _refresh_epics(store, mission_id)
    store.notify(f"Mission shipped: {mission.name}", "success")
    return mission


def abandon_mission(store, mission_id: str) -> Mission | None:
    """Abandon a mission from any state except completed. Terminal."""
    with store.transaction():
        mission = store.get_mission(mission_id)
        if not mission or mission.status in ("completed", "abandoned"):
            return None
        mission = store.update_mission(mission_id, status="abandoned")
        if store.active_mission_id == mission_id:
            store.active_mission_id = None
            store.emit("active_mission")
    store.notify(f"Mission abandoned: {mission.name}", "warning")
    return mission


def add_mission_commit(
    store,
    mission_id: str,
    sha: str,
    message: str,
    author: str | None = None,
    files_changed: list[str] | None = None,
) -> MissionCommit | None:
    """Append a commit record to a mission. Commits are never reordered or removed."""
    with store.transaction():
        mission = store.get_mission(mission_id)
        if not mission:
            return None
        commit = MissionCommit(
            sha=sha,
            message=message,
            timestamp=store.tick,
            author=author,
            files_changed=list(files_changed or []),
        )
        store.update_mission(mission_id, commits=mission.commits + [commit])
        store.add_stats(commits_created=1)
    logger.info("Mission %s commit %s: %s", mission_id, sha[:7], message)
    return commit


def commit_task_artifacts(
    store,
    mission_id: str,
    task_id: str,
    author: str | None = None,
) -> MissionCommit | None:
    """Record a task's code artifacts as one commit on the mission branch.

    Returns None when the mission or task is unknown, the task is not part of
    the mission, or the task has no code artifacts.
    """
    with store.transaction():
        mission = store.get_mission(mission_id)
        task = store.get_task(task_id)
        if not mission or not task or task_id not in mission.task_ids:
            return None
        code = [a for a in task.artifacts if a.type == "code"]
        if not code:
            return None

        files = [a.file_path or a.title for a in code]
        digest = hashlib.sha1()
        digest.update(mission.branch_name.encode())
        digest.update(str(len(mission.commits)).encode())
        for artifact in code:
            digest.update(artifact.id.encode())
            digest.update(artifact.content.encode())
        prefix = {"bug": "fix", "infrastructure": "chore", "design": "style", "marketing": "docs"}
        message = f"{prefix.get(task.type, 'feat')}: {task.title}"
        author = author or _author_name(store, code[0].created_by)
        return add_mission_commit(store, mission_id, digest.hexdigest()[:12], message, author, files)


def set_mission_pr(store, mission_id: str, url: str, number: int) -> Mission | None:
    """Attach a pull request. Planning and active missions move to review."""
    with store.transaction():
        mission = store.get_mission(mission_id)
        if not mission or mission.status in ("completed", "abandoned"):
            return None
        changes = {"pull_request_url": url, "pull_request_number": number}
        if mission.status in ("planning", "active"):
            changes["status"] = "review"
            if mission.started_at is None:
                changes["started_at"] = store.tick
        mission = store.update_mission(mission_id, **changes)
    store.notify(f"PR #{number} opened for {mission.name}", "info")
    return mission


def mission_progress(store, mission_id: str) -> float | None:
    """Fraction of the mission's tasks that are done (0.0 for an empty mission)."""
    mission = store.get_mission(mission_id)
    if not mission:
        return None
    tasks = [store.get_task(t) for t in mission.task_ids]
    tasks = [t for t in tasks if t]
    if not tasks:
        return 0.0
    return sum(1 for t in tasks if t.status == "done") / len(tasks)


def _author_name(store, employee_id: str) -> str:
    employee = store.get_employee(employee_id)
    return employee.name if employee else employee_id


# ── Epics ───────────────────────────────────────────────────────────────────


def create_epic(
    store,
    name: str,
    description: str = "",
    phase: str = "mvp",
    priority: str = "medium",
) -> Epic | None:
    if phase not in PRODUCT_PHASES or priority not in PRIORITIES:
        return None
    with store.transaction():
        epic = Epic(
            id=store.next_id("epic"),
            name=name,
            description=description,
            phase=phase,
            priority=priority,
            created_at=store.tick,
        )
        store.epics[epic.id] = epic
        store.emit("epic", epic.id)
    logger.info("Created epic %s (%s)", epic.id, phase)
    return epic


def list_epics(store, phase: str | None = None) -> list[Epic]:
    epics = list(store.epics.values())
    if phase:
        epics = [e for e in epics if e.phase == phase]
    return sorted(epics, key=lambda e: (e.created_at, e.id))


def add_mission_to_epic(store, epic_id: str, mission_id: str) -> Epic | None:
    with store.transaction():
        epic = store.epics.get(epic_id)
        if not epic or not store.get_mission(mission_id):
            return None
        if mission_id in epic.mission_ids:
            return epic
        return _update_epic(store, epic_id, mission_ids=epic.mission_ids + [mission_id])


def update_epic_status(store, epic_id: str, status: str) -> Epic | None:
    if status not in EPIC_STATUSES:
        return None
    with store.transaction():
        epic = store.epics.get(epic_id)
        if not epic:
            return None
        completed_at = store.tick if status == "completed" else None
        return _update_epic(store, epic_id, status=status, completed_at=completed_at)


def _update_epic(store, epic_id: str, **changes) -> Epic:
    epic = replace(store.epics[epic_id], **changes)
    store.epics[epic_id] = epic
    store.emit("epic", epic_id)
    return epic


def _refresh_epics(store, mission_id: str):
    """Complete any epic whose missions have all shipped."""
    for epic in list(store.epics.values()):
        if mission_id not in epic.mission_ids or epic.status == "completed":
            continue
        missions = [store.get_mission(m) for m in epic.mission_ids]
        if all(m and m.status == "completed" for m in missions):
            update_epic_status(store, epic.id, "completed")
