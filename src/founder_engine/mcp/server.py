"""MCP server exposing the founder engine command surface as tools."""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass

from mcp.server.fastmcp import Context, FastMCP

from founder_engine.config import Config, get_config
from founder_engine.core import advisor as advisor_mod
from founder_engine.core import ai_queue as queue_mod
from founder_engine.core import autopilot as autopilot_mod
from founder_engine.core import clock as clock_mod
from founder_engine.core import employees as employees_mod
from founder_engine.core import memory as memory_mod
from founder_engine.core import missions as missions_mod
from founder_engine.core import tasks as tasks_mod
from founder_engine.core import upgrades as upgrades_mod
from founder_engine.core.clock import SimulationRunner
from founder_engine.core.store import EntityStore
from founder_engine.db.engine import init_db, load_store, save_store
from founder_engine.db.models import TaskDefinition
from founder_engine.integrations import slack as slack_mod
from founder_engine.integrations.generation import ClaudeCliGenerator, Generator


@dataclass
class AppContext:
    store: EntityStore
    db: sqlite3.Connection
    config: Config
    generator: Generator | None = None
    runner: SimulationRunner | None = None


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Load the saved game on startup, run the loops, save on shutdown."""
    config = get_config()
    db = init_db(config.db_path)
    store = load_store(db, config)
    generator = ClaudeCliGenerator(config.claude_binary, config.generation_model) if config.ai_enabled else None

    notifier = None
    if config.slack_bot_token and config.slack_channel:
        notifier = slack_mod.SlackNotifier(config.slack_bot_token, config.slack_channel)
        notifier.attach(store)

    runner = SimulationRunner(
        store,
        generator,
        tick_interval=config.tick_interval,
        queue_interval=config.queue_interval,
        on_tick=lambda _tick: save_store(db, store),
        model=config.generation_model,
    )
    runner.start()

    try:
        yield AppContext(store=store, db=db, config=config, generator=generator, runner=runner)
    finally:
        runner.stop()
        if notifier:
            notifier.detach()
        save_store(db, store)
        db.close()


mcp = FastMCP("founder-engine", lifespan=app_lifespan)


def _ctx(ctx: Context) -> AppContext:
    """Extract AppContext from MCP Context."""
    return ctx.request_context.lifespan_context


def _store(ctx: Context) -> EntityStore:
    return _ctx(ctx).store


# ── Clock Tools ───────────────────────────────────────────────────────────────


@mcp.tool()
def get_state(ctx: Context) -> dict:
    """Company overview: tick, funds, stats, active mission and queue size."""
    store = _store(ctx)
    return {
        "tick": store.tick,
        "paused": store.paused,
        "funds": store.funds,
        "stats": asdict(store.stats),
        "active_mission_id": store.active_mission_id,
        "pending_hire_role": store.pending_hire_role,
        "queue_length": len(store.ai_queue),
        "ai_in_flight": store.ai_in_flight,
        "autopilot": store.autopilot,
        "employees": len(store.employees),
        "tasks": len(store.tasks),
    }


@mcp.tool()
def advance_ticks(ctx: Context, count: int = 1) -> dict:
    """Advance the simulation clock by `count` ticks (no-op while paused)."""
    store = _store(ctx)
    for _ in range(max(0, count)):
        clock_mod.tick(store)
    return {"tick": store.tick, "paused": store.paused}


@mcp.tool()
def toggle_pause(ctx: Context) -> dict:
    """Pause or resume the simulation."""
    return {"paused": clock_mod.toggle_pause(_store(ctx))}


@mcp.tool()
def set_autopilot(ctx: Context, enabled: bool) -> dict:
    """Turn autopilot on or off. While on, every tick staffs the team and moves work along."""
    return {"autopilot": autopilot_mod.set_autopilot(_store(ctx), enabled)}


# ── Task Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def create_task(
    ctx: Context,
    title: str,
    description: str = "",
    type: str = "feature",
    priority: str = "medium",
    estimated_ticks: int = 100,
) -> dict:
    """Create a backlog task. Types: feature, bug, design, marketing, infrastructure."""
    task = tasks_mod.create_task(
        _store(ctx), title, description, type=type, priority=priority, estimated_ticks=estimated_ticks
    )
    if not task:
        return {"error": "Invalid task type, priority or estimate"}
    return asdict(task)


@mcp.tool()
def list_tasks(ctx: Context, status: str | None = None, assignee_id: str | None = None) -> list[dict]:
    """List tasks, highest priority first, optionally filtered by status or assignee."""
    return [asdict(t) for t in tasks_mod.list_tasks(_store(ctx), status=status, assignee_id=assignee_id)]


@mcp.tool()
def get_task(ctx: Context, task_id: str) -> dict:
    """Get a task including its artifacts."""
    task = tasks_mod.get_task(_store(ctx), task_id)
    if not task:
        return {"error": f"Task not found: {task_id}"}
    return asdict(task)


@mcp.tool()
def assign_task(ctx: Context, task_id: str, employee_id: str) -> dict:
    """Assign an idle employee to a task and start it."""
    task = tasks_mod.assign_task(_store(ctx), task_id, employee_id)
    if not task:
        return {"error": f"Could not assign {task_id} to {employee_id}"}
    return asdict(task)


@mcp.tool()
def quick_assign_task(ctx: Context, task_id: str) -> dict:
    """Assign a task to an idle employee whose role fits the task type, or any idle employee."""
    task = tasks_mod.quick_assign(_store(ctx), task_id)
    if not task:
        return {"error": f"No idle employee could take {task_id}"}
    return asdict(task)


@mcp.tool()
def unassign_task(ctx: Context, task_id: str) -> dict:
    """Return a task to todo and free its assignee."""
    task = tasks_mod.unassign_task(_store(ctx), task_id)
    if not task:
        return {"error": f"Task not found or not assigned: {task_id}"}
    return asdict(task)


@mcp.tool()
def update_task_status(ctx: Context, task_id: str, status: str) -> dict:
    """Set a task's status: backlog, todo, in_progress, review, done."""
    task = tasks_mod.update_task_status(_store(ctx), task_id, status)
    if not task:
        return {"error": f"Task not found or invalid status: {task_id}"}
    return asdict(task)


# ── Team Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def hire_employee(ctx: Context, role: str, name: str | None = None) -> dict:
    """Hire an engineer, designer, pm or marketer. The salary is paid from funds."""
    store = _store(ctx)
    employee = employees_mod.hire_employee(store, role, name)
    if not employee:
        return {"error": f"Could not hire {role}", "funds": store.funds}
    return asdict(employee)


@mcp.tool()
def fire_employee(ctx: Context, employee_id: str) -> dict:
    """Let an employee go; their open task returns to todo."""
    employee = employees_mod.fire_employee(_store(ctx), employee_id)
    if not employee:
        return {"error": f"Employee not found: {employee_id}"}
    return {"fired": employee.id, "name": employee.name}


@mcp.tool()
def list_employees(ctx: Context, role: str | None = None, status: str | None = None) -> list[dict]:
    """List the team, optionally filtered by role or status."""
    employees = employees_mod.list_employees(_store(ctx), role=role, status=status)
    return [
        {k: v for k, v in asdict(e).items() if k != "memory"} | {"memory_count": len(e.memory)}
        for e in employees
    ]


@mcp.tool()
def get_employee_context(ctx: Context, employee_id: str, task_title: str | None = None) -> dict:
    """Experience summary used when an employee's AI work is generated."""
    context = memory_mod.get_employee_context(_store(ctx), employee_id, task_title)
    if not context:
        return {"error": f"Employee not found: {employee_id}"}
    return {"employee_id": employee_id, "context": context}


# ── AI Queue Tools ────────────────────────────────────────────────────────────


@mcp.tool()
def list_ai_queue(ctx: Context) -> dict:
    """Show queued AI work in processing order."""
    store = _store(ctx)
    return {"in_flight": store.ai_in_flight, "items": [asdict(i) for i in queue_mod.list_queue(store)]}


@mcp.tool()
async def process_ai_queue(ctx: Context) -> dict:
    """Run the next queued AI job now instead of waiting for the background loop."""
    app = _ctx(ctx)
    if app.generator is None:
        return {"error": "AI generation is disabled (set FE_AI_ENABLED=1)"}
    processed = await queue_mod.process_one(app.store, app.generator, app.config.generation_model)
    return {"processed": processed, "queue_length": len(app.store.ai_queue)}


# ── Mission Tools ─────────────────────────────────────────────────────────────


@mcp.tool()
def create_mission(
    ctx: Context,
    name: str,
    description: str = "",
    priority: str = "medium",
    tasks: list[dict] | None = None,
) -> dict:
    """Create a mission, optionally with tasks given as {title, type, estimated_ticks}."""
    definitions = [
        TaskDefinition(
            title=t["title"],
            type=t.get("type", "feature"),
            estimated_ticks=int(t.get("estimated_ticks", 100)),
            description=t.get("description", ""),
            priority=t.get("priority"),
        )
        for t in tasks or []
        if t.get("title")
    ]
    mission = missions_mod.create_mission_with_tasks(_store(ctx), name, description, priority, definitions)
    if not mission:
        return {"error": f"Invalid priority: {priority}"}
    return asdict(mission)


@mcp.tool()
def list_missions(ctx: Context, status: str | None = None) -> list[dict]:
    """List missions with their progress."""
    store = _store(ctx)
    return [
        asdict(m) | {"progress": missions_mod.mission_progress(store, m.id)}
        for m in missions_mod.list_missions(store, status=status)
    ]


@mcp.tool()
def start_mission(ctx: Context, mission_id: str) -> dict:
    """Move a planning mission to active and make it the current mission."""
    mission = missions_mod.start_mission(_store(ctx), mission_id)
    if not mission:
        return {"error": f"Mission not found or not in planning: {mission_id}"}
    return asdict(mission)


@mcp.tool()
def update_mission_status(ctx: Context, mission_id: str, status: str) -> dict:
    """Advance a mission: active, review, merging, completed, or abandoned."""
    mission = missions_mod.update_mission_status(_store(ctx), mission_id, status)
    if not mission:
        return {"error": f"Invalid transition for {mission_id} to {status}"}
    return asdict(mission)


@mcp.tool()
def add_task_to_mission(ctx: Context, mission_id: str, task_id: str) -> dict:
    """Link an existing task to a mission."""
    mission = missions_mod.add_task_to_mission(_store(ctx), mission_id, task_id)
    if not mission:
        return {"error": f"Mission or task not found: {mission_id}, {task_id}"}
    return asdict(mission)


@mcp.tool()
def commit_task_artifacts(ctx: Context, mission_id: str, task_id: str, author: str | None = None) -> dict:
    """Record a task's generated code as a commit on the mission branch."""
    commit = missions_mod.commit_task_artifacts(_store(ctx), mission_id, task_id, author)
    if not commit:
        return {"error": "Task is not in the mission or has no code artifacts"}
    return asdict(commit)


@mcp.tool()
def set_mission_pr(ctx: Context, mission_id: str, url: str, number: int) -> dict:
    """Attach a pull request to a mission and move it to review."""
    mission = missions_mod.set_mission_pr(_store(ctx), mission_id, url, number)
    if not mission:
        return {"error": f"Mission not found or closed: {mission_id}"}
    return asdict(mission)


# ── Advisor Tools ─────────────────────────────────────────────────────────────


@mcp.tool()
def run_pm_evaluation(ctx: Context) -> dict:
    """Evaluate the product now and return any new proposals."""
    store = _store(ctx)
    proposals = advisor_mod.run_evaluation(store)
    return {
        "product_state": asdict(store.product_state),
        "new_proposals": [asdict(p) for p in proposals],
    }


@mcp.tool()
def pm_generate_tasks(ctx: Context) -> dict:
    """Have an idle PM add backlog tasks from ideas not already on the board."""
    created = autopilot_mod.pm_generate_tasks(_store(ctx))
    if not created:
        return {"error": "No idle PM or no new task ideas"}
    return {"created": [asdict(t) for t in created]}


@mcp.tool()
def list_thoughts(ctx: Context) -> list[dict]:
    """Recent advisor thoughts, oldest first."""
    return [asdict(t) for t in _store(ctx).thoughts]


@mcp.tool()
def list_proposals(ctx: Context, status: str | None = "pending") -> list[dict]:
    """List advisor proposals (pending by default)."""
    return [asdict(p) for p in advisor_mod.list_proposals(_store(ctx), status=status)]


@mcp.tool()
def approve_proposal(ctx: Context, proposal_id: str) -> dict:
    """Approve a pending proposal and carry it out."""
    proposal = advisor_mod.approve_proposal(_store(ctx), proposal_id)
    if not proposal:
        return {"error": f"No pending proposal: {proposal_id}"}
    return asdict(proposal)


@mcp.tool()
def reject_proposal(ctx: Context, proposal_id: str) -> dict:
    """Reject a pending proposal, keeping it on record."""
    proposal = advisor_mod.reject_proposal(_store(ctx), proposal_id)
    if not proposal:
        return {"error": f"No pending proposal: {proposal_id}"}
    return asdict(proposal)


@mcp.tool()
def dismiss_proposal(ctx: Context, proposal_id: str) -> dict:
    """Delete a pending proposal without acting on it."""
    proposal = advisor_mod.dismiss_proposal(_store(ctx), proposal_id)
    if not proposal:
        return {"error": f"No pending proposal: {proposal_id}"}
    return {"dismissed": proposal_id}


# ── Upgrade & Notification Tools ──────────────────────────────────────────────


@mcp.tool()
def list_upgrades(ctx: Context) -> list[dict]:
    """List the upgrade catalogue with purchase state."""
    return [asdict(u) for u in upgrades_mod.list_upgrades(_store(ctx))]


@mcp.tool()
def purchase_upgrade(ctx: Context, upgrade_id: str) -> dict:
    """Buy an upgrade from company funds."""
    store = _store(ctx)
    upgrade = upgrades_mod.purchase_upgrade(store, upgrade_id)
    if not upgrade:
        note = store.notifications[-1].message if store.notifications else "Purchase rejected"
        return {"error": note, "funds": store.funds}
    return asdict(upgrade)


@mcp.tool()
def list_notifications(ctx: Context, unread_only: bool = False) -> list[dict]:
    """Recent notifications, newest last."""
    notes = _store(ctx).notifications
    if unread_only:
        notes = [n for n in notes if not n.read]
    return [asdict(n) for n in notes]


# ── Slack Tools ───────────────────────────────────────────────────────────────


@mcp.tool()
def post_status_update(ctx: Context, channel: str | None = None) -> dict:
    """Post a company status summary to Slack."""
    app = _ctx(ctx)
    channel = channel or app.config.slack_channel
    if not channel:
        return {"error": "No channel specified and FE_SLACK_CHANNEL not set"}

    blocks = slack_mod.format_status_update(app.store)
    try:
        result = slack_mod.send_message(
            app.config.slack_bot_token, channel, f"Status update: tick {app.store.tick}", blocks
        )
        return {"channel": result.channel, "ts": result.ts}
    except slack_mod.SlackError as e:
        return {"error": str(e)}
