"""SQLite persistence for the entity store: schema, snapshots and sessions."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict, replace
from pathlib import Path

from founder_engine.config import Config
from founder_engine.core.ai_queue import restore_queue
from founder_engine.core.store import EntityStore
from founder_engine.db.models import (
    PAYLOAD_TYPES,
    AIWorkItem,
    Artifact,
    Employee,
    Epic,
    GameStats,
    MemoryRecord,
    Mission,
    MissionCommit,
    Notification,
    Proposal,
    Task,
    TaskDefinition,
    Thought,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    type TEXT NOT NULL CHECK (type IN ('feature', 'bug', 'design', 'marketing', 'infrastructure')),
    status TEXT NOT NULL CHECK (status IN ('backlog', 'todo', 'in_progress', 'review', 'done')),
    priority TEXT NOT NULL CHECK (priority IN ('low', 'medium', 'high', 'critical')),
    assignee_id TEXT,
    estimated_ticks INTEGER NOT NULL,
    progress_ticks INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL DEFAULT 0,
    completed_at INTEGER,
    ai_work_started INTEGER NOT NULL DEFAULT 0,
    ai_work_completed INTEGER NOT NULL DEFAULT 0,
    artifacts TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS employees (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('engineer', 'designer', 'pm', 'marketer')),
    status TEXT NOT NULL DEFAULT 'idle',
    salary INTEGER NOT NULL DEFAULT 0,
    current_task_id TEXT,
    hired_at INTEGER NOT NULL DEFAULT 0,
    tasks_completed INTEGER NOT NULL DEFAULT 0,
    memory TEXT NOT NULL DEFAULT '[]',
    specializations TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS missions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    priority TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('planning', 'active', 'review', 'merging', 'completed', 'abandoned')),
    branch_name TEXT NOT NULL,
    base_branch TEXT NOT NULL DEFAULT 'main',
    task_ids TEXT NOT NULL DEFAULT '[]',
    created_at INTEGER NOT NULL DEFAULT 0,
    started_at INTEGER,
    completed_at INTEGER,
    commits TEXT NOT NULL DEFAULT '[]',
    pull_request_url TEXT,
    pull_request_number INTEGER
);

CREATE TABLE IF NOT EXISTS epics (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    status TEXT NOT NULL,
    priority TEXT NOT NULL,
    phase TEXT NOT NULL,
    mission_ids TEXT NOT NULL DEFAULT '[]',
    created_at INTEGER NOT NULL DEFAULT 0,
    completed_at INTEGER
);

CREATE TABLE IF NOT EXISTS proposals (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL CHECK (type IN ('mission', 'hire', 'tech')),
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    reasoning TEXT DEFAULT '',
    priority TEXT NOT NULL,
    created_at INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL CHECK (status IN ('pending', 'approved', 'rejected')),
    payload TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ai_queue (
    position INTEGER PRIMARY KEY,
    id TEXT NOT NULL UNIQUE,
    task_id TEXT NOT NULL UNIQUE,
    employee_id TEXT NOT NULL,
    priority INTEGER NOT NULL,
    added_at INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL CHECK (status IN ('queued', 'in_progress')),
    retries INTEGER NOT NULL DEFAULT 0 CHECK (retries BETWEEN 0 AND 2)
);

CREATE TABLE IF NOT EXISTS upgrades (
    id TEXT PRIMARY KEY,
    unlocked INTEGER NOT NULL,
    purchased INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS thoughts (
    position INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    kind TEXT NOT NULL,
    message TEXT NOT NULL,
    tick INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS notifications (
    position INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    message TEXT NOT NULL,
    level TEXT NOT NULL,
    tick INTEGER NOT NULL DEFAULT 0,
    read INTEGER NOT NULL DEFAULT 0
);
"""

_TABLES = (
    "state", "tasks", "employees", "missions", "epics", "proposals",
    "ai_queue", "upgrades", "thoughts", "notifications",
)


def init_db(db_path: Path) -> sqlite3.Connection:
    """Initialize the database, creating tables if needed."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.executescript(SCHEMA)
    conn.commit()
    return conn


@contextmanager
def get_db(db_path: Path):
    """Context manager for database connections."""
    conn = init_db(db_path)
    try:
        yield conn
    finally:
        conn.close()


# ── Save ────────────────────────────────────────────────────────────────────


def save_store(conn: sqlite3.Connection, store: EntityStore):
    """Write a full snapshot of the store, replacing the previous one."""
    with store.transaction():
        state = {
            "tick": store.tick,
            "paused": store.paused,
            "funds": store.funds,
            "stats": asdict(store.stats),
            "counters": store.counters,
            "active_mission_id": store.active_mission_id,
            "pending_hire_role": store.pending_hire_role,
            "advisor_enabled": store.advisor_enabled,
            "autopilot": store.autopilot,
            "last_evaluation": store.last_evaluation,
        }
        tasks = [
            (
                t.id, t.title, t.description, t.type, t.status, t.priority, t.assignee_id,
                t.estimated_ticks, t.progress_ticks, t.created_at, t.completed_at,
                int(t.ai_work_started), int(t.ai_work_completed),
                json.dumps([asdict(a) for a in t.artifacts]),
            )
            for t in store.tasks.values()
        ]
        employees = [
            (
                e.id, e.name, e.role, e.status, e.salary, e.current_task_id, e.hired_at,
                e.tasks_completed, json.dumps([asdict(m) for m in e.memory]),
                json.dumps(e.specializations),
            )
            for e in store.employees.values()
        ]
        missions = [
            (
                m.id, m.name, m.description, m.priority, m.status, m.branch_name, m.base_branch,
                json.dumps(m.task_ids), m.created_at, m.started_at, m.completed_at,
                json.dumps([asdict(c) for c in m.commits]), m.pull_request_url, m.pull_request_number,
            )
            for m in store.missions.values()
        ]
        epics = [
            (
                e.id, e.name, e.description, e.status, e.priority, e.phase,
                json.dumps(e.mission_ids), e.created_at, e.completed_at,
            )
            for e in store.epics.values()
        ]
        proposals = [
            (
                p.id, p.type, p.title, p.description, p.reasoning, p.priority, p.created_at,
                p.status, json.dumps(asdict(p.payload)),
            )
            for p in store.proposals.values()
        ]
        queue = [
            (i, item.id, item.task_id, item.employee_id, item.priority, item.added_at, item.status, item.retries)
            for i, item in enumerate(store.ai_queue)
        ]
        upgrades = [(u.id, int(u.unlocked), int(u.purchased)) for u in store.upgrades.values()]
        thoughts = [(i, t.id, t.kind, t.message, t.tick) for i, t in enumerate(store.thoughts)]
        notifications = [
            (i, n.id, n.message, n.level, n.tick, int(n.read))
            for i, n in enumerate(store.notifications)
        ]

    with conn:
        for table in _TABLES:
            conn.execute(f"DELETE FROM {table}")
        conn.executemany(
            "INSERT INTO state (key, value) VALUES (?, ?)",
            [(k, json.dumps(v)) for k, v in state.items()],
        )
        conn.executemany("INSERT INTO tasks VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)", tasks)
        conn.executemany("INSERT INTO employees VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)", employees)
        conn.executemany("INSERT INTO missions VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)", missions)
        conn.executemany("INSERT INTO epics VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)", epics)
        conn.executemany("INSERT INTO proposals VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)", proposals)
        conn.executemany("INSERT INTO ai_queue VALUES (?, ?, ?, ?, ?, ?, ?, ?)", queue)
        conn.executemany("INSERT INTO upgrades VALUES (?, ?, ?)", upgrades)
        conn.executemany("INSERT INTO thoughts VALUES (?, ?, ?, ?, ?)", thoughts)
        conn.executemany("INSERT INTO notifications VALUES (?, ?, ?, ?, ?, ?)", notifications)

    logger.debug("Saved snapshot at tick %d (%d tasks, %d queued)", store.tick, len(tasks), len(queue))


# ── Load ────────────────────────────────────────────────────────────────────


def load_store(conn: sqlite3.Connection, config: Config | None = None) -> EntityStore:
    """Rebuild a store from the last snapshot, or a fresh one if there is none.

    Runtime settings (AI switch, evaluation interval, starting funds for a new
    game) come from ``config``; in-flight AI work is re-queued.
    """
    config = config or Config()
    store = EntityStore(
        funds=config.starting_funds,
        ai_enabled=config.ai_enabled,
        evaluation_interval=config.evaluation_interval,
    )

    state = {row["key"]: json.loads(row["value"]) for row in conn.execute("SELECT * FROM state")}
    if not state:
        return store

    store.tick = state["tick"]
    store.paused = state["paused"]
    store.funds = state["funds"]
    store.stats = GameStats(**state["stats"])
    store.counters = dict(state["counters"])
    store.active_mission_id = state.get("active_mission_id")
    store.pending_hire_role = state.get("pending_hire_role")
    store.advisor_enabled = state.get("advisor_enabled", True)
    store.autopilot = state.get("autopilot", False)
    store.last_evaluation = state.get("last_evaluation", 0)

    for row in conn.execute("SELECT * FROM tasks ORDER BY rowid"):
        task = _row_to_task(row)
        store.tasks[task.id] = task
    for row in conn.execute("SELECT * FROM employees ORDER BY rowid"):
        employee = _row_to_employee(row)
        store.employees[employee.id] = employee
    for row in conn.execute("SELECT * FROM missions ORDER BY rowid"):
        mission = _row_to_mission(row)
        store.missions[mission.id] = mission
    for row in conn.execute("SELECT * FROM epics ORDER BY rowid"):
        epic = _row_to_epic(row)
        store.epics[epic.id] = epic
    for row in conn.execute("SELECT * FROM proposals ORDER BY rowid"):
        proposal = _row_to_proposal(row)
        store.proposals[proposal.id] = proposal

    store.ai_queue = [
        AIWorkItem(
            id=row["id"],
            task_id=row["task_id"],
            employee_id=row["employee_id"],
            priority=row["priority"],
            added_at=row["added_at"],
            status=row["status"],
            retries=row["retries"],
        )
        for row in conn.execute("SELECT * FROM ai_queue ORDER BY position")
    ]
    for row in conn.execute("SELECT * FROM upgrades"):
        if row["id"] in store.upgrades:
            store.upgrades[row["id"]] = replace(
                store.upgrades[row["id"]],
                unlocked=bool(row["unlocked"]),
                purchased=bool(row["purchased"]),
            )
    store.thoughts = [
        Thought(id=row["id"], kind=row["kind"], message=row["message"], tick=row["tick"])
        for row in conn.execute("SELECT * FROM thoughts ORDER BY position")
    ]
    store.notifications = [
        Notification(
            id=row["id"], message=row["message"], level=row["level"],
            tick=row["tick"], read=bool(row["read"]),
        )
        for row in conn.execute("SELECT * FROM notifications ORDER BY position")
    ]

    restore_queue(store)
    logger.debug("Loaded snapshot at tick %d", store.tick)
    return store


@contextmanager
def session(db_path: Path, config: Config | None = None):
    """Load the store, yield it, and save it back if the block succeeds."""
    with get_db(db_path) as conn:
        store = load_store(conn, config)
        yield store
        save_store(conn, store)


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        type=row["type"],
        status=row["status"],
        priority=row["priority"],
        assignee_id=row["assignee_id"],
        estimated_ticks=row["estimated_ticks"],
        progress_ticks=row["progress_ticks"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
        artifacts=[Artifact(**a) for a in json.loads(row["artifacts"])],
        ai_work_started=bool(row["ai_work_started"]),
        ai_work_completed=bool(row["ai_work_completed"]),
    )


def _row_to_employee(row: sqlite3.Row) -> Employee:
    return Employee(
        id=row["id"],
        name=row["name"],
        role=row["role"],
        status=row["status"],
        salary=row["salary"],
        current_task_id=row["current_task_id"],
        hired_at=row["hired_at"],
        memory=[MemoryRecord(**m) for m in json.loads(row["memory"])],
        tasks_completed=row["tasks_completed"],
        specializations=json.loads(row["specializations"]),
    )


def _row_to_mission(row: sqlite3.Row) -> Mission:
    return Mission(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        priority=row["priority"],
        status=row["status"],
        branch_name=row["branch_name"],
        base_branch=row["base_branch"],
        task_ids=json.loads(row["task_ids"]),
        created_at=row["created_at"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        commits=[MissionCommit(**c) for c in json.loads(row["commits"])],
        pull_request_url=row["pull_request_url"],
        pull_request_number=row["pull_request_number"],
    )


def _row_to_epic(row: sqlite3.Row) -> Epic:
    return Epic(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        status=row["status"],
        priority=row["priority"],
        phase=row["phase"],
        mission_ids=json.loads(row["mission_ids"]),
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )


def _row_to_proposal(row: sqlite3.Row) -> Proposal:
    data = json.loads(row["payload"])
    if row["type"] == "mission":
        data["tasks"] = [TaskDefinition(**t) for t in data.get("tasks", [])]
    return Proposal(
        id=row["id"],
        type=row["type"],
        title=row["title"],
        payload=PAYLOAD_TYPES[row["type"]](**data),
        description=row["description"],
        reasoning=row["reasoning"],
        priority=row["priority"],
        created_at=row["created_at"],
        status=row["status"],
    )
