"""Background artifact generation: a priority queue with one job in flight.

``enqueue_ai_work`` is called by the assignment matcher. ``process_one`` is the
only coroutine in the engine; it releases the store lock while the generation
call is outstanding and re-reads the task and employee before applying the
result, so ticks and other commands keep running in the meantime.
"""

import logging
import os
from dataclasses import replace

from founder_engine.core.memory import add_employee_memory, get_employee_context, keywords, update_specializations
from founder_engine.core.tasks import add_task_artifact, create_task
from founder_engine.db.models import PRIORITIES, TASK_TYPES, AIWorkItem, Task
from founder_engine.integrations.generation import (
    GenerationRequest,
    GenerationResult,
    Generator,
)

logger = logging.getLogger(__name__)

PRIORITY = {"critical": 1, "high": 2, "medium": 3, "low": 4}
MAX_RETRIES = 2

LANGUAGES = {
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".css": "css",
    ".html": "html",
    ".json": "json",
    ".sql": "sql",
    ".md": "markdown",
    ".sh": "bash",
    ".yml": "yaml",
    ".yaml": "yaml",
}


def enqueue_ai_work(store, task_id: str, employee_id: str) -> AIWorkItem | None:
    """Queue generation for a task. Idempotent per task.

    Rejected when the task or employee is unknown, when AI work already started
    for the task, or when an item for the task is already queued.
    """
    with store.transaction():
        task = store.get_task(task_id)
        if not task or not store.get_employee(employee_id):
            return None
        if task.ai_work_started or any(i.task_id == task_id for i in store.ai_queue):
            return None

        item = AIWorkItem(
            id=store.next_id("ai"),
            task_id=task_id,
            employee_id=employee_id,
            priority=PRIORITY[task.priority],
            added_at=store.tick,
        )
        store.ai_queue = _sorted(store.ai_queue + [item])
        store.update_task(task_id, ai_work_started=True)
        store.emit("ai_queue", item.id)

    logger.info("Queued AI work %s for task %s (priority %d)", item.id, task_id, item.priority)
    return item


def list_queue(store) -> list[AIWorkItem]:
    return list(store.ai_queue)


def restore_queue(store):
    """Re-mark in-flight items as queued after a restart."""
    with store.transaction():
        restored = 0
        items = []
        for item in store.ai_queue:
            if item.status == "in_progress":
                item = replace(item, status="queued")
                restored += 1
            items.append(item)
        store.ai_queue = _sorted(items)
        store.ai_in_flight = None
    if restored:
        logger.info("Restored %d in-flight AI work item(s) to the queue", restored)


async def process_one(store, generator: Generator, model: str | None = None) -> bool:
    """Run the head of the queue through the generator.

    Returns True when a job was attempted, False when this call was a no-op
    (generation disabled, a job already in flight, or nothing queued).
    """
    with store.transaction():
        if not store.ai_enabled or store.ai_in_flight or not store.ai_queue:
            return False
        head = store.ai_queue[0]
        item = replace(head, status="in_progress")
        store.ai_queue = [item] + store.ai_queue[1:]
        store.ai_in_flight = item.id
        store.emit("ai_queue", item.id)

        task = store.get_task(item.task_id)
        employee = store.get_employee(item.employee_id)
        if not task or not employee:
            logger.warning("Dropping AI work %s: task or employee no longer exists", item.id)
            _drop_orphan(store, item, task)
            return True

        request = GenerationRequest(
            task_id=task.id,
            task_title=task.title,
            task_description=task.description,
            task_type=task.type,
            role=employee.role,
            project_context=_project_context(store),
            specializations=list(employee.specializations),
            employee_context=get_employee_context(store, employee.id, task.title),
            existing_task_titles=[t.title for t in store.tasks.values()],
            model=model,
        )

    logger.info("Generating %s for task %s as %s", item.id, task.id, employee.role)
    try:
        result = await generator.generate(request)
    except Exception as e:
        _handle_failure(store, item.id, e)
        return True

    _apply_result(store, item.id, result)
    return True


def _handle_failure(store, item_id: str, error: Exception):
    with store.transaction():
        item = _find(store, item_id)
        store.ai_in_flight = None
        if not item:
            return
        task = store.get_task(item.task_id)
        if not task or not store.get_employee(item.employee_id):
            logger.warning("AI work %s failed and its task or employee is gone: %s", item_id, error)
            _drop_orphan(store, item, task)
            return
        if item.retries < MAX_RETRIES:
            retried = replace(item, status="queued", retries=item.retries + 1)
            rest = [i for i in store.ai_queue if i.id != item_id]
            store.ai_queue = _sorted(rest + [retried])
            store.emit("ai_queue", item_id)
            logger.warning(
                "AI work %s for task %s failed (attempt %d): %s",
                item_id, item.task_id, item.retries + 1, error,
            )
        else:
            _remove(store, item_id)
            logger.error(
                "AI work %s for task %s failed after %d retries, dropping: %s",
                item_id, item.task_id, MAX_RETRIES, error,
            )


def _apply_result(store, item_id: str, result: GenerationResult):
    with store.transaction():
        item = _find(store, item_id)
        store.ai_in_flight = None
        if not item:
            return
        _remove(store, item_id)

        task = store.get_task(item.task_id)
        employee = store.get_employee(item.employee_id)
        if not task or not employee:
            logger.warning("AI work %s finished but its task or employee is gone", item_id)
            _drop_orphan(store, item, task)
            return

        lines = INTERPRETERS[employee.role](store, task, employee.id, result)

        store.update_task(
            task.id,
            progress_ticks=task.estimated_ticks,
            status="done" if task.status == "done" else "review",
            ai_work_completed=True,
            completed_at=task.completed_at if task.completed_at is not None else store.tick,
        )
        store.update_employee(employee.id, tasks_completed=employee.tasks_completed + 1)
        add_employee_memory(
            store,
            employee.id,
            f"Completed {task.type} task: {task.title}",
            kind="task",
            importance=0.7 if task.priority in ("high", "critical") else 0.5,
            task_id=task.id,
            tags=[task.type] + keywords(task.title)[:3],
        )
        update_specializations(store, employee.id)
        if lines:
            store.add_stats(lines_of_code_generated=lines)
        store.notify(f'{employee.name} finished AI work on "{task.title}"', "success")

    logger.info("AI work %s complete for task %s", item_id, task.id)


# ── Role interpreters ────────────────────────────────────────────────────────
# Each returns the number of generated code lines.


def _engineer(store, task: Task, employee_id: str, result: GenerationResult) -> int:
    lines = 0
    if result.files:
        for f in result.files:
            add_task_artifact(
                store, task.id, "code", f.path or task.title, f.content, employee_id,
                language=language_for(f.path), file_path=f.path or None, model_used=result.model_used,
            )
            lines += _count_lines(f.content)
    elif result.code:
        add_task_artifact(
            store, task.id, "code", task.title, result.code, employee_id,
            model_used=result.model_used,
        )
        lines += _count_lines(result.code)
    return lines


def _designer(store, task: Task, employee_id: str, result: GenerationResult) -> int:
    content = result.description
    if result.css:
        content = f"{content}\n\n```css\n{result.css}\n```" if content else result.css
    add_task_artifact(
        store, task.id, "design", f"Design: {task.title}", content, employee_id,
        language="css" if result.css else None, model_used=result.model_used,
    )
    return 0


def _marketer(store, task: Task, employee_id: str, result: GenerationResult) -> int:
    content = f"# {result.headline}\n\n{result.body}\n\n**{result.cta}**".strip()
    add_task_artifact(
        store, task.id, "copy", result.headline or task.title, content, employee_id,
        model_used=result.model_used,
    )
    return 0


def _pm(store, task: Task, employee_id: str, result: GenerationResult) -> int:
    for definition in result.tasks:
        create_task(
            store,
            definition.title,
            description=definition.description,
            type=definition.type if definition.type in TASK_TYPES else "feature",
            priority=definition.priority if definition.priority in PRIORITIES else task.priority,
            estimated_ticks=max(1, definition.estimated_ticks),
        )
    return 0


INTERPRETERS = {
    "engineer": _engineer,
    "designer": _designer,
    "marketer": _marketer,
    "pm": _pm,
}


# ── Helpers ─────────────────────────────────────────────────────────────────


def language_for(path: str | None) -> str | None:
    if not path:
        return None
    return LANGUAGES.get(os.path.splitext(path)[1].lower())


def _count_lines(content: str) -> int:
    return len([line for line in content.splitlines() if line.strip()])


def _sorted(items: list[AIWorkItem]) -> list[AIWorkItem]:
    return sorted(items, key=lambda i: i.priority)


def _find(store, item_id: str) -> AIWorkItem | None:
    return next((i for i in store.ai_queue if i.id == item_id), None)


def _remove(store, item_id: str):
    store.ai_queue = [i for i in store.ai_queue if i.id != item_id]
    if store.ai_in_flight == item_id:
        store.ai_in_flight = None
    store.emit("ai_queue", item_id)


def _drop_orphan(store, item: AIWorkItem, task: Task | None):
    """Drop an item whose task or employee is gone so the task can be queued again.

    A task that was already handed to someone else is queued for them straight away.
    """
    _remove(store, item.id)
    if not task or task.ai_work_completed:
        return
    store.update_task(task.id, ai_work_started=False)
    assignee_id = task.assignee_id
    if store.ai_enabled and task.status == "in_progress" and assignee_id and store.get_employee(assignee_id):
        enqueue_ai_work(store, task.id, assignee_id)


def _project_context(store) -> str:
    mission = store.get_mission(store.active_mission_id) if store.active_mission_id else None
    done = [t.title for t in store.tasks.values() if t.status == "done"]
    parts = []
    if mission:
        parts.append(f"Active mission: {mission.name} - {mission.description}")
    if done:
        parts.append("Shipped so far: " + ", ".join(done[:10]))
    return "\n".join(parts)
