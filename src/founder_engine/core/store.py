"""Entity store shared by the clock, the AI work queue and the advisory loop.

All collections live in memory. Every command runs inside ``transaction()``,
which holds a re-entrant lock, and entities are swapped for new versions via
``dataclasses.replace`` rather than mutated, so a reader holding a reference
always sees a complete entity. Change events queued during a transaction are
dispatched to subscribers after the outermost transaction releases the lock.
"""

import logging
import threading
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import replace

from founder_engine.core.upgrades import default_upgrades
from founder_engine.db.models import (
    AIWorkItem,
    ChangeEvent,
    Employee,
    Epic,
    GameStats,
    Mission,
    Notification,
    ProductState,
    Proposal,
    Task,
    Thought,
    Upgrade,
)

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 50

_LEVEL_TO_LOG = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class EntityStore:
    """Holds every simulation collection plus the shared counters."""

    def __init__(
        self,
        funds: int = 100_000,
        ai_enabled: bool = False,
        evaluation_interval: int = 120,
    ):
        self._lock = threading.RLock()
        self._depth = 0
        self._pending: list[ChangeEvent] = []
        self._subscribers: list[Callable[[ChangeEvent], None]] = []

        self.counters: dict[str, int] = {}
        self.tick = 0
        self.paused = False
        self.funds = funds
        self.ai_enabled = ai_enabled
        self.stats = GameStats()

        self.tasks: dict[str, Task] = {}
        self.employees: dict[str, Employee] = {}
        self.missions: dict[str, Mission] = {}
        self.epics: dict[str, Epic] = {}
        self.proposals: dict[str, Proposal] = {}
        self.upgrades: dict[str, Upgrade] = {u.id: u for u in default_upgrades()}
        self.ai_queue: list[AIWorkItem] = []
        self.ai_in_flight: str | None = None
        self.thoughts: list[Thought] = []
        self.notifications: list[Notification] = []

        self.active_mission_id: str | None = None
        self.pending_hire_role: str | None = None

        self.advisor_enabled = True
        self.autopilot = False
        self.last_evaluation = 0
        self.evaluation_interval = evaluation_interval
        self.product_state: ProductState | None = None

    # ── Transactions & events ───────────────────────────────────────────────

    @contextmanager
    def transaction(self):
        """Run a block atomically with respect to the other loops."""
        with self._lock:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
                if self._depth == 0:
                    events, self._pending = self._pending, []
                else:
                    events = []
        for event in events:
            self._dispatch(event)

    def subscribe(self, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        """Register an observer for change events. Returns an unsubscribe callable."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, kind: str, entity_id: str | None = None):
        with self.transaction():
            self._pending.append(ChangeEvent(kind=kind, entity_id=entity_id, tick=self.tick))

    def _dispatch(self, event: ChangeEvent):
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber failed on %s", event.kind)

    # ── Ids ─────────────────────────────────────────────────────────────────

    def next_id(self, prefix: str) -> str:
        with self._lock:
            value = self.counters.get(prefix, 0) + 1
            self.counters[prefix] = value
            return f"{prefix}-{value}"

    def unique_id(self, existing: dict, base: str) -> str:
        """Return ``base`` or ``base-N`` so that it is not a key of ``existing``."""
        if base not in existing:
            return base
        i = 2
        while f"{base}-{i}" in existing:
            i += 1
        return f"{base}-{i}"

    # ── Notifications ───────────────────────────────────────────────────────

    def notify(self, message: str, level: str = "info") -> Notification:
        """Append a user-facing notification and emit a change event for it."""
        with self.transaction():
            note = Notification(
                id=self.next_id("note"),
                message=message,
                level=level,
                tick=self.tick,
            )
            self.notifications = (self.notifications + [note])[-MAX_NOTIFICATIONS:]
            self.emit("notification", note.id)
        logger.log(_LEVEL_TO_LOG.get(level, logging.INFO), "[%s] %s", level, message)
        return note

    def get_notification(self, note_id: str) -> Notification | None:
        return next((n for n in self.notifications if n.id == note_id), None)

    def dismiss_notification(self, note_id: str) -> bool:
        with self.transaction():
            before = len(self.notifications)
            self.notifications = [n for n in self.notifications if n.id != note_id]
            return len(self.notifications) < before

    def mark_notifications_read(self) -> int:
        with self.transaction():
            unread = sum(1 for n in self.notifications if not n.read)
            self.notifications = [replace(n, read=True) for n in self.notifications]
            return unread

    # ── Entity access ───────────────────────────────────────────────────────

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def get_employee(self, employee_id: str) -> Employee | None:
        return self.employees.get(employee_id)

    def get_mission(self, mission_id: str) -> Mission | None:
        return self.missions.get(mission_id)

    def get_proposal(self, proposal_id: str) -> Proposal | None:
        return self.proposals.get(proposal_id)

    def update_task(self, task_id: str, **changes) -> Task | None:
        with self.transaction():
            task = self.tasks.get(task_id)
            if not task:
                return None
            task = replace(task, **changes)
            self.tasks[task_id] = task
            self.emit("task", task_id)
            return task

    def update_employee(self, employee_id: str, **changes) -> Employee | None:
        with self.transaction():
            employee = self.employees.get(employee_id)
            if not employee:
                return None
            employee = replace(employee, **changes)
            self.employees[employee_id] = employee
            self.emit("employee", employee_id)
            return employee

    def update_mission(self, mission_id: str, **changes) -> Mission | None:
        with self.transaction():
            mission = self.missions.get(mission_id)
            if not mission:
                return None
            mission = replace(mission, **changes)
            self.missions[mission_id] = mission
            self.emit("mission", mission_id)
            return mission

    def update_proposal(self, proposal_id: str, **changes) -> Proposal | None:
        with self.transaction():
            proposal = self.proposals.get(proposal_id)
            if not proposal:
                return None
            proposal = replace(proposal, **changes)
            self.proposals[proposal_id] = proposal
            self.emit("proposal", proposal_id)
            return proposal

    def add_stats(self, **increments):
        with self.transaction():
            self.stats = replace(
                self.stats,
                **{k: getattr(self.stats, k) + v for k, v in increments.items()},
            )
            self.emit("stats")
