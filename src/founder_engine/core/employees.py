"""Hiring, firing and team queries."""

import logging
import random
from dataclasses import dataclass

from founder_engine.db.models import Employee

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmployeeTemplate:
    role: str
    base_salary: int
    title: str
    description: str


EMPLOYEE_TEMPLATES = {
    "pm": EmployeeTemplate(
        "pm", 8000, "Product Manager",
        "Breaks down the idea into actionable tasks and manages priorities.",
    ),
    "designer": EmployeeTemplate(
        "designer", 7000, "Designer",
        "Creates UI/UX designs and generates CSS for the product.",
    ),
    "engineer": EmployeeTemplate(
        "engineer", 10000, "Engineer",
        "Writes code, builds features, and fixes bugs.",
    ),
    "marketer": EmployeeTemplate(
        "marketer", 6000, "Marketer",
        "Writes launch copy, headlines and calls to action.",
    ),
}

FIRST_NAMES = [
    "Alex", "Jordan", "Sam", "Taylor", "Casey", "Morgan", "Riley", "Quinn",
    "Avery", "Charlie", "Dakota", "Finley", "Harper", "Hayden", "Jamie", "Jesse",
    "Kai", "Logan", "Max", "Parker", "Peyton", "Reese", "River", "Rowan",
]

LAST_NAMES = [
    "Chen", "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller",
    "Davis", "Rodriguez", "Martinez", "Anderson", "Taylor", "Thomas", "Moore", "Lee",
]


def generate_name(rng: random.Random | None = None) -> str:
    rng = rng or random
    return f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"


def hire_employee(store, role: str, name: str | None = None) -> Employee | None:
    """Hire an employee, paying the first salary from the funds pool.

    Returns None for an unknown role or when funds are insufficient; the latter
    also produces an error notification.
    """
    template = EMPLOYEE_TEMPLATES.get(role)
    if not template:
        return None

    with store.transaction():
        if store.funds < template.base_salary:
            store.notify(
                f"Not enough money to hire a {template.title} (need ${template.base_salary:,})",
                "error",
            )
            return None

        employee = Employee(
            id=store.next_id("emp"),
            name=name or generate_name(),
            role=role,
            salary=template.base_salary,
            hired_at=store.tick,
        )
        store.employees[employee.id] = employee
        store.funds -= template.base_salary
        store.add_stats(total_expenses=template.base_salary)
        if store.pending_hire_role == role:
            store.pending_hire_role = None
        store.emit("employee", employee.id)
        store.notify(f"Hired {employee.name} as {template.title}!", "success")

    logger.info("Hired %s (%s) for $%d", employee.id, role, template.base_salary)
    return employee


def fire_employee(store, employee_id: str) -> Employee | None:
    """Remove an employee, returning any owned task to todo first."""
    with store.transaction():
        employee = store.get_employee(employee_id)
        if not employee:
            return None

        owned = [t for t in store.tasks.values() if t.assignee_id == employee_id]
        for task in owned:
            if task.status in ("review", "done"):
                continue
            store.update_task(task.id, assignee_id=None, status="todo")

        # an in-flight item is left to process_one, which drops it on re-read
        dropped = [
            item for item in store.ai_queue
            if item.employee_id == employee_id and item.status == "queued"
        ]
        if dropped:
            store.ai_queue = [item for item in store.ai_queue if item not in dropped]
            for item in dropped:
                store.update_task(item.task_id, ai_work_started=False)
            store.emit("ai_queue")

        del store.employees[employee_id]
        store.emit("employee", employee_id)
        store.notify(f"{employee.name} has left the company.", "info")

    logger.info("Fired %s", employee_id)
    return employee


def list_employees(
    store,
    role: str | None = None,
    status: str | None = None,
) -> list[Employee]:
    employees = list(store.employees.values())
    if role:
        employees = [e for e in employees if e.role == role]
    if status:
        employees = [e for e in employees if e.status == status]
    return sorted(employees, key=lambda e: (e.hired_at, e.id))


def idle_employees(store) -> list[Employee]:
    return list_employees(store, status="idle")
