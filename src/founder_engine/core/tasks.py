"""Task management and the assignment matcher."""

import logging
import re

from founder_engine.db.models import PRIORITIES, TASK_STATUSES, TASK_TYPES, Artifact, Task

logger = logging.getLogger(__name__)

PRIORITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}

ROLE_FOR_TYPE = {
    "feature": "engineer",
    "bug": "engineer",
    "infrastructure": "engineer",
    "design": "designer",
    "marketing": "marketer",
}


def slugify(title: str) -> str:
    """Convert a title to a URL-friendly slug."""
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")[:60]


def create_task(
    store,
    title: str,
    description: str = "",
    type: str = "feature",
    priority: str = "medium",
    estimated_ticks: int = 100,
    status: str = "backlog",
) -> Task | None:
    """Create a new task. Returns None when a field is outside its allowed values."""
    if type not in TASK_TYPES or priority not in PRIORITIES or status not in TASK_STATUSES:
        logger.warning("Rejected task %r: type=%s priority=%s status=%s", title, type, priority, status)
        return None
    if estimated_ticks <= 0:
        logger.warning("Rejected task %r: estimated_ticks must be positive", title)
        return None

    with store.transaction():
        task_id = store.unique_id(store.tasks, slugify(title) or "task")
        task = Task(
            id=task_id,
            title=title,
            description=description,
            type=type,
            status=status,
            priority=priority,
            estimated_ticks=estimated_ticks,
            created_at=store.tick,
        )
        store.tasks[task_id] = task
        store.emit("task", task_id)
    logger.info("Created task %s (%s, %s)", task_id, type, priority)
    return task


def get_task(store, task_id: str) -> Task | None:
    return store.get_task(task_id)


def list_tasks(
    store,
    status: str | None = None,
    assignee_id: str | None = None,
) -> list[Task]:
    """List tasks with optional filters, highest priority first then oldest first."""
    tasks = list(store.tasks.values())
    if status:
        tasks = [t for t in tasks if t.status == status]
    if assignee_id:
        tasks = [t for t in tasks if t.assignee_id == assignee_id]
    return sorted(tasks, key=lambda t: (PRIORITY_RANK[t.priority], t.created_at))


def assign_task(store, task_id: str, employee_id: str) -> Task | None:
    """Bind an idle employee to a task and start it.

    No-op (returns None) when either entity is missing, the task is done,
    or the employee is busy with another task.
    """
    with store.transaction():
        task = store.get_task(task_id)
        employee = store.get_employee(employee_id)
        if not task or not employee:
            return None
        if task.status == "done":
            return None
        if employee.status != "idle" and employee.current_task_id != task_id:
            logger.info("Employee %s is %s, cannot take %s", employee_id, employee.status, task_id)
            return None

        if task.assignee_id and task.assignee_id != employee_id:
            _free_employee(store, task.assignee_id, task_id)

        task = store.update_task(task_id, assignee_id=employee_id, status="in_progress")
        store.update_employee(employee_id, status="working", current_task_id=task_id)

        if store.ai_enabled:
            from founder_engine.core.ai_queue import enqueue_ai_work

            enqueue_ai_work(store, task_id, employee_id)
            task = store.get_task(task_id)

    store.notify(f'Assigned "{task.title}" to {employee.name}', "success")
    return task


def quick_assign(store, task_id: str) -> Task | None:
    """Assign a task to an idle employee, preferring the role that fits its type.

    Falls back to any idle employee. With nobody idle a warning notification is
    raised and None returned.
    """
    with store.transaction():
        task = store.get_task(task_id)
        if not task or task.status == "done":
            return None
        idle = [e for e in store.employees.values() if e.status == "idle"]
        role = ROLE_FOR_TYPE.get(task.type)
        employee = next((e for e in idle if e.role == role), idle[0] if idle else None)
        if not employee:
            store.notify(f'No idle employee available for "{task.title}"', "warning")
            return None
        logger.info("Quick assigning %s to %s (%s)", task_id, employee.id, employee.role)
        return assign_task(store, task_id, employee.id)


def unassign_task(store, task_id: str) -> Task | None:
    """Return a task to todo and free its assignee. No-op if unassigned."""
    with store.transaction():
        task = store.get_task(task_id)
        if not task or not task.assignee_id:
            return None
        _free_employee(store, task.assignee_id, task_id)
        task = store.update_task(task_id, assignee_id=None, status="todo")
    logger.info("Unassigned task %s", task_id)
    return task


def update_task_status(store, task_id: str, status: str) -> Task | None:
    """Set a task's status. Moving to done also frees the assignee."""
    if status not in TASK_STATUSES:
        return None
    with store.transaction():
        task = store.get_task(task_id)
        if not task:
            return None
        old_status = task.status
        task = store.update_task(task_id, status=status)

        if status == "done" and old_status != "done":
            if task.assignee_id:
                _free_employee(store, task.assignee_id, task_id)
            store.add_stats(tasks_completed=1)
            store.notify(f"Task completed: {task.title}", "success")

    logger.info("Task %s: %s -> %s", task_id, old_status, status)
    return task


def add_task_artifact(
    store,
    task_id: str,
    type: str,
    title: str,
    content: str,
    created_by: str,
    language: str | None = None,
    file_path: str | None = None,
    model_used: str | None = None,
) -> Artifact | None:
    """Append a generated artifact to a task."""
    with store.transaction():
        task = store.get_task(task_id)
        if not task:
            return None
        artifact = Artifact(
            id=store.next_id("artifact"),
            type=type,
            title=title,
            content=content,
            created_by=created_by,
            created_at=store.tick,
            language=language,
            file_path=file_path,
            model_used=model_used,
        )
        store.update_task(task_id, artifacts=task.artifacts + [artifact])
        return artifact


def pending_tasks(store) -> list[Task]:
    """Tasks nobody has picked up yet (backlog or todo)."""
    return [t for t in store.tasks.values() if t.status in ("backlog", "todo")]


def _free_employee(store, employee_id: str, task_id: str):
    employee = store.get_employee(employee_id)
    if employee and employee.current_task_id == task_id:
        store.update_employee(employee_id, status="idle", current_task_id=None)
