"""Per-employee experience memory and the specializations derived from it."""

import re
from collections import Counter

from founder_engine.db.models import MemoryRecord

MAX_MEMORIES = 50
MAX_SPECIALIZATIONS = 5

_STOPWORDS = {
    "a", "an", "and", "add", "build", "create", "for", "from", "in", "of", "on",
    "set", "the", "to", "up", "with", "make", "write",
}


def add_employee_memory(
    store,
    employee_id: str,
    content: str,
    kind: str = "task",
    importance: float = 0.5,
    task_id: str | None = None,
    tags: list[str] | None = None,
) -> MemoryRecord | None:
    """Append a memory record, keeping only the newest MAX_MEMORIES."""
    with store.transaction():
        employee = store.get_employee(employee_id)
        if not employee:
            return None
        record = MemoryRecord(
            id=store.next_id("mem"),
            kind=kind,
            content=content,
            importance=max(0.0, min(1.0, importance)),
            created_at=store.tick,
            task_id=task_id,
            tags=list(tags or []),
        )
        memory = (employee.memory + [record])[-MAX_MEMORIES:]
        store.update_employee(employee_id, memory=memory)
        return record


def update_specializations(store, employee_id: str) -> list[str]:
    """Recompute specializations as the most frequent memory tags."""
    with store.transaction():
        employee = store.get_employee(employee_id)
        if not employee:
            return []
        counts = Counter(tag for record in employee.memory for tag in record.tags)
        specializations = [tag for tag, _ in counts.most_common(MAX_SPECIALIZATIONS)]
        store.update_employee(employee_id, specializations=specializations)
        return specializations


def recall(store, employee_id: str, query: str, limit: int = 5) -> list[MemoryRecord]:
    """Memories most relevant to ``query``, ranked by overlap then importance."""
    employee = store.get_employee(employee_id)
    if not employee:
        return []
    words = set(keywords(query))

    def score(record: MemoryRecord) -> tuple:
        haystack = set(record.tags) | set(keywords(record.content))
        return (len(words & haystack), record.importance, record.created_at)

    ranked = sorted(employee.memory, key=score, reverse=True)
    if words:
        ranked = [r for r in ranked if words & (set(r.tags) | set(keywords(r.content)))] or ranked
    return ranked[:limit]


def get_employee_context(store, employee_id: str, task_title: str | None = None) -> str:
    """Render an employee's experience as prompt context. Empty for unknown ids."""
    employee = store.get_employee(employee_id)
    if not employee:
        return ""

    parts = [f"## Experience of {employee.name} ({employee.role})"]
    parts.append(f"Tasks Completed: {employee.tasks_completed}")
    if employee.specializations:
        parts.append(f"Specializations: {', '.join(employee.specializations)}")

    if task_title:
        memories = recall(store, employee_id, task_title)
    else:
        memories = sorted(employee.memory, key=lambda r: r.importance, reverse=True)[:5]

    if memories:
        parts.append("Relevant memories:")
        for record in memories:
            parts.append(f"- {record.content}")

    return "\n".join(parts)


def keywords(text: str) -> list[str]:
    """Lowercase content words of ``text`` in order of appearance, without repeats."""
    seen = []
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        if len(word) > 2 and word not in _STOPWORDS and word not in seen:
            seen.append(word)
    return seen
