"""CLI entry point for the founder engine."""

import asyncio
import json
import logging
import sys
import time
from dataclasses import asdict

import click

from founder_engine.config import get_config
from founder_engine.core import advisor as advisor_mod
from founder_engine.core import ai_queue as queue_mod
from founder_engine.core import autopilot as autopilot_mod
from founder_engine.core import clock as clock_mod
from founder_engine.core import employees as employees_mod
from founder_engine.core import memory as memory_mod
from founder_engine.core import missions as missions_mod
from founder_engine.core import tasks as tasks_mod
from founder_engine.core import upgrades as upgrades_mod
from founder_engine.db.engine import session
from founder_engine.db.models import TaskDefinition
from founder_engine.integrations import slack as slack_mod


def _session():
    config = get_config()
    return session(config.db_path, config)


def _fail(message: str):
    click.echo(message, err=True)
    sys.exit(1)


def _last_problem(store, default: str) -> str:
    """Message of the newest warning/error notification, if the command produced one."""
    note = store.notifications[-1] if store.notifications else None
    if note and note.level in ("warning", "error") and note.tick == store.tick:
        return note.message
    return default


@click.group()
def main():
    """fe - Founder Engine CLI"""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── Clock Commands ────────────────────────────────────────────────────────────


@main.command("state")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def state_command(json_output):
    """Show the company overview."""
    with _session() as store:
        if json_output:
            click.echo(json.dumps({
                "tick": store.tick,
                "paused": store.paused,
                "funds": store.funds,
                "stats": asdict(store.stats),
                "active_mission_id": store.active_mission_id,
                "pending_hire_role": store.pending_hire_role,
                "queue_length": len(store.ai_queue),
                "autopilot": store.autopilot,
            }, indent=2))
            return

        flags = (" (paused)" if store.paused else "") + (" [autopilot]" if store.autopilot else "")
        click.echo(f"Tick {store.tick}{flags}")
        click.echo(f"  Funds: ${store.funds:,}")
        click.echo(f"  Team: {len(store.employees)} | Tasks: {len(store.tasks)} | Missions: {len(store.missions)}")
        stats = store.stats
        click.echo(
            f"  Completed: {stats.tasks_completed} | Shipped: {stats.features_shipped} | "
            f"Commits: {stats.commits_created} | LOC: {stats.lines_of_code_generated}"
        )
        if store.active_mission_id:
            click.echo(f"  Active mission: {store.active_mission_id}")
        if store.pending_hire_role:
            click.echo(f"  Approved hire waiting: {store.pending_hire_role}")
        click.echo(f"  AI queue: {len(store.ai_queue)} item(s)")


@main.command("tick")
@click.option("--count", "-n", default=1, type=int, help="Number of ticks to advance")
def tick_command(count):
    """Advance the simulation clock."""
    with _session() as store:
        for _ in range(count):
            clock_mod.tick(store)
        if store.paused:
            click.echo(f"Simulation is paused at tick {store.tick}")
        else:
            click.echo(f"Tick {store.tick}")


@main.command("pause")
def pause_command():
    """Pause or resume the simulation."""
    with _session() as store:
        paused = clock_mod.toggle_pause(store)
        click.echo("Paused" if paused else "Resumed")


@main.command("autopilot")
@click.option("--on/--off", "enabled", default=None, help="Set instead of toggling")
def autopilot_command(enabled):
    """Let the team hire, plan, pick up work and approve reviews on its own."""
    with _session() as store:
        if enabled is None:
            enabled = autopilot_mod.toggle_autopilot(store)
        else:
            enabled = autopilot_mod.set_autopilot(store, enabled)
        click.echo(f"Autopilot {'on' if enabled else 'off'}")


@main.command("run")
@click.option("--duration", default=None, type=float, help="Stop after this many seconds")
def run_command(duration):
    """Run the clock (and AI queue when enabled) in the foreground."""
    from founder_engine.integrations.generation import ClaudeCliGenerator

    config = get_config()
    generator = ClaudeCliGenerator(config.claude_binary, config.generation_model) if config.ai_enabled else None
    with _session() as store:
        notifier = None
        if config.slack_bot_token and config.slack_channel:
            notifier = slack_mod.SlackNotifier(config.slack_bot_token, config.slack_channel)
            notifier.attach(store)

        runner = clock_mod.SimulationRunner(
            store,
            generator,
            tick_interval=config.tick_interval,
            queue_interval=config.queue_interval,
            model=config.generation_model,
        )
        runner.start()
        click.echo(f"Running from tick {store.tick} (Ctrl-C to stop)")
        started = time.monotonic()
        try:
            while duration is None or time.monotonic() - started < duration:
                time.sleep(0.2)
        except KeyboardInterrupt:
            pass
        finally:
            runner.stop()
            if notifier:
                notifier.detach()
        click.echo(f"Stopped at tick {store.tick}")


# ── Task Commands ─────────────────────────────────────────────────────────────


@main.group("task")
def task_group():
    """Manage tasks."""
    pass


@task_group.command("add")
@click.argument("title")
@click.option("--description", "-d", default="", help="Task description")
@click.option("--type", "-t", "task_type", default="feature", help="feature|bug|design|marketing|infrastructure")
@click.option("--priority", "-p", default="medium", help="low|medium|high|critical")
@click.option("--estimate", "-e", default=100, type=int, help="Estimated ticks")
def task_add(title, description, task_type, priority, estimate):
    """Create a new task."""
    with _session() as store:
        task = tasks_mod.create_task(
            store, title, description, type=task_type, priority=priority, estimated_ticks=estimate
        )
        if not task:
            _fail("Invalid task type, priority or estimate")
        click.echo(f"Created task: {task.id}")
        click.echo(f"  Title: {task.title}")
        click.echo(f"  Type: {task.type} | Priority: {task.priority} | Estimate: {task.estimated_ticks}")


@task_group.command("list")
@click.option("--status", default=None, help="Filter by status")
@click.option("--assignee", default=None, help="Filter by employee ID")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def task_list(status, assignee, json_output):
    """List tasks."""
    with _session() as store:
        tasks = tasks_mod.list_tasks(store, status=status, assignee_id=assignee)

        if json_output:
            click.echo(json.dumps([asdict(t) for t in tasks], indent=2))
            return

        if not tasks:
            click.echo("No tasks found.")
            return

        status_icons = {
            "backlog": "·",
            "todo": "○",
            "in_progress": "●",
            "review": "◐",
            "done": "✓",
        }

        for task in tasks:
            icon = status_icons.get(task.status, "?")
            who = f" @{task.assignee_id}" if task.assignee_id else ""
            ai = " [ai]" if task.ai_work_started else ""
            click.echo(
                f"  {icon} {task.priority:<8} {task.id}: {task.title} "
                f"({task.status} {task.progress_ticks}/{task.estimated_ticks}){who}{ai}"
            )


@task_group.command("show")
@click.argument("task_id")
def task_show(task_id):
    """Show task details."""
    with _session() as store:
        task = tasks_mod.get_task(store, task_id)
        if not task:
            _fail(f"Task not found: {task_id}")

        click.echo(f"Task: {task.id}")
        click.echo(f"  Title: {task.title}")
        click.echo(f"  Type: {task.type} | Priority: {task.priority}")
        click.echo(f"  Status: {task.status}")
        click.echo(f"  Progress: {task.progress_ticks}/{task.estimated_ticks}")
        if task.description:
            click.echo(f"  Description: {task.description}")
        if task.assignee_id:
            click.echo(f"  Assignee: {task.assignee_id}")
        if task.completed_at is not None:
            click.echo(f"  Completed at: tick {task.completed_at}")
        if task.ai_work_started:
            click.echo(f"  AI work: {'completed' if task.ai_work_completed else 'started'}")
        if task.artifacts:
            click.echo("  Artifacts:")
            for a in task.artifacts:
                where = f" ({a.file_path})" if a.file_path else ""
                click.echo(f"    - [{a.type}] {a.title}{where}")


@task_group.command("assign")
@click.argument("task_id")
@click.argument("employee_id")
def task_assign(task_id, employee_id):
    """Assign a task to an idle employee."""
    with _session() as store:
        if not store.get_task(task_id):
            _fail(f"Task not found: {task_id}")
        if not store.get_employee(employee_id):
            _fail(f"Employee not found: {employee_id}")
        task = tasks_mod.assign_task(store, task_id, employee_id)
        if not task:
            _fail(f"Could not assign {task_id}: employee is busy or task is done")
        click.echo(f"Task '{task_id}' assigned to {employee_id}")
        if task.ai_work_started:
            click.echo("  Queued for AI work")


@task_group.command("quick-assign")
@click.argument("task_id")
def task_quick_assign(task_id):
    """Assign a task to the best-fitting idle employee."""
    with _session() as store:
        if not store.get_task(task_id):
            _fail(f"Task not found: {task_id}")
        task = tasks_mod.quick_assign(store, task_id)
        if not task:
            _fail(_last_problem(store, f"Could not assign {task_id}"))
        employee = store.get_employee(task.assignee_id)
        click.echo(f"Task '{task_id}' assigned to {employee.id} ({employee.name}, {employee.role})")


@task_group.command("unassign")
@click.argument("task_id")
def task_unassign(task_id):
    """Return a task to todo and free its assignee."""
    with _session() as store:
        task = tasks_mod.unassign_task(store, task_id)
        if not task:
            _fail(f"Task not found or not assigned: {task_id}")
        click.echo(f"Task '{task_id}' unassigned")


@task_group.command("status")
@click.argument("task_id")
@click.argument("status", type=click.Choice(["backlog", "todo", "in_progress", "review", "done"]))
def task_status(task_id, status):
    """Update a task's status."""
    with _session() as store:
        task = tasks_mod.update_task_status(store, task_id, status)
        if not task:
            _fail(f"Task not found: {task_id}")
        click.echo(f"Task '{task_id}' -> {status}")


# ── Team Commands ─────────────────────────────────────────────────────────────


@main.group("team")
def team_group():
    """Manage employees."""
    pass


@team_group.command("hire")
@click.argument("role", type=click.Choice(list(employees_mod.EMPLOYEE_TEMPLATES)))
@click.option("--name", default=None, help="Employee name (random if omitted)")
def team_hire(role, name):
    """Hire an employee."""
    with _session() as store:
        employee = employees_mod.hire_employee(store, role, name)
        if not employee:
            _fail(_last_problem(store, f"Could not hire {role}"))
        click.echo(f"Hired {employee.name} ({employee.id}) as {role}")
        click.echo(f"  Funds left: ${store.funds:,}")


@team_group.command("fire")
@click.argument("employee_id")
def team_fire(employee_id):
    """Let an employee go."""
    with _session() as store:
        employee = employees_mod.fire_employee(store, employee_id)
        if not employee:
            _fail(f"Employee not found: {employee_id}")
        click.echo(f"{employee.name} ({employee.id}) has left")


@team_group.command("list")
@click.option("--role", default=None, help="Filter by role")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def team_list(role, json_output):
    """List employees."""
    with _session() as store:
        employees = employees_mod.list_employees(store, role=role)
        if json_output:
            click.echo(json.dumps([asdict(e) for e in employees], indent=2))
            return
        if not employees:
            click.echo("No employees.")
            return
        for e in employees:
            on = f" on {e.current_task_id}" if e.current_task_id else ""
            spec = f" [{', '.join(e.specializations)}]" if e.specializations else ""
            click.echo(f"  {e.id}: {e.name} ({e.role}, {e.status}{on}) done={e.tasks_completed}{spec}")


@team_group.command("memory")
@click.argument("employee_id")
@click.option("--task", "task_title", default=None, help="Rank memories against this task title")
def team_memory(employee_id, task_title):
    """Show an employee's experience context."""
    with _session() as store:
        context = memory_mod.get_employee_context(store, employee_id, task_title)
        if not context:
            _fail(f"Employee not found: {employee_id}")
        click.echo(context)


# ── AI Queue Commands ─────────────────────────────────────────────────────────


@main.group("queue")
def queue_group():
    """Inspect and drive the AI work queue."""
    pass


@queue_group.command("list")
def queue_list():
    """Show queued AI work in processing order."""
    with _session() as store:
        items = queue_mod.list_queue(store)
        if not items:
            click.echo("AI queue is empty.")
            return
        for item in items:
            click.echo(
                f"  {item.id}: task={item.task_id} employee={item.employee_id} "
                f"priority={item.priority} status={item.status} retries={item.retries}"
            )


@queue_group.command("process")
def queue_process():
    """Run the next queued AI job now."""
    from founder_engine.integrations.generation import ClaudeCliGenerator

    config = get_config()
    if not config.ai_enabled:
        _fail("AI generation is disabled (set FE_AI_ENABLED=1)")
    generator = ClaudeCliGenerator(config.claude_binary, config.generation_model)
    with _session() as store:
        processed = asyncio.run(queue_mod.process_one(store, generator, config.generation_model))
        if not processed:
            click.echo("Nothing to process.")
            return
        click.echo(f"Processed one job; {len(store.ai_queue)} left in queue")


# ── Mission Commands ──────────────────────────────────────────────────────────


@main.group("mission")
def mission_group():
    """Manage missions."""
    pass


@mission_group.command("create")
@click.argument("name")
@click.option("--description", "-d", default="", help="Mission description")
@click.option("--priority", "-p", default="medium", help="low|medium|high|critical")
@click.option("--task", "task_titles", multiple=True, help="Task title to create (repeatable)")
def mission_create(name, description, priority, task_titles):
    """Create a mission, optionally with tasks."""
    with _session() as store:
        mission = missions_mod.create_mission_with_tasks(
            store, name, description, priority, [TaskDefinition(title=t) for t in task_titles]
        )
        if not mission:
            _fail(f"Invalid priority: {priority}")
        click.echo(f"Created mission: {mission.id}")
        click.echo(f"  Branch: {mission.branch_name}")
        for task_id in mission.task_ids:
            click.echo(f"  Task: {task_id}")


@mission_group.command("list")
@click.option("--status", default=None, help="Filter by status")
def mission_list(status):
    """List missions."""
    with _session() as store:
        missions = missions_mod.list_missions(store, status=status)
        if not missions:
            click.echo("No missions found.")
            return
        for m in missions:
            progress = missions_mod.mission_progress(store, m.id)
            active = " *" if m.id == store.active_mission_id else ""
            click.echo(f"  {m.id}: {m.name} ({m.status}, {progress:.0%}){active}")


@mission_group.command("show")
@click.argument("mission_id")
def mission_show(mission_id):
    """Show mission details."""
    with _session() as store:
        mission = missions_mod.get_mission(store, mission_id)
        if not mission:
            _fail(f"Mission not found: {mission_id}")
        click.echo(f"Mission: {mission.id}")
        click.echo(f"  Name: {mission.name}")
        click.echo(f"  Status: {mission.status} | Priority: {mission.priority}")
        click.echo(f"  Branch: {mission.branch_name} (from {mission.base_branch})")
        click.echo(f"  Progress: {missions_mod.mission_progress(store, mission_id):.0%}")
        if mission.pull_request_url:
            click.echo(f"  PR #{mission.pull_request_number}: {mission.pull_request_url}")
        if mission.task_ids:
            click.echo("  Tasks:")
            for task_id in mission.task_ids:
                task = store.get_task(task_id)
                if task:
                    click.echo(f"    - {task.id}: {task.title} ({task.status})")
        if mission.commits:
            click.echo("  Commits:")
            for c in mission.commits:
                click.echo(f"    {c.sha[:7]} {c.message}")


@mission_group.command("start")
@click.argument("mission_id")
def mission_start(mission_id):
    """Start a planning mission."""
    with _session() as store:
        mission = missions_mod.start_mission(store, mission_id)
        if not mission:
            _fail(f"Mission not found or not in planning: {mission_id}")
        click.echo(f"Mission '{mission_id}' started on {mission.branch_name}")


@mission_group.command("status")
@click.argument("mission_id")
@click.argument("status", type=click.Choice(["active", "review", "merging", "completed", "abandoned"]))
def mission_status(mission_id, status):
    """Advance a mission's status."""
    with _session() as store:
        mission = missions_mod.update_mission_status(store, mission_id, status)
        if not mission:
            _fail(f"Invalid transition for {mission_id} to {status}")
        click.echo(f"Mission '{mission_id}' -> {mission.status}")


@mission_group.command("complete")
@click.argument("mission_id")
def mission_complete(mission_id):
    """Ship a mission."""
    with _session() as store:
        mission = missions_mod.complete_mission(store, mission_id)
        if not mission:
            _fail(f"Mission not found or closed: {mission_id}")
        click.echo(f"Mission '{mission_id}' shipped")


@mission_group.command("abandon")
@click.argument("mission_id")
def mission_abandon(mission_id):
    """Abandon a mission."""
    with _session() as store:
        mission = missions_mod.abandon_mission(store, mission_id)
        if not mission:
            _fail(f"Mission not found or closed: {mission_id}")
        click.echo(f"Mission '{mission_id}' abandoned")


@mission_group.command("add-task")
@click.argument("mission_id")
@click.argument("task_id")
def mission_add_task(mission_id, task_id):
    """Link an existing task to a mission."""
    with _session() as store:
        mission = missions_mod.add_task_to_mission(store, mission_id, task_id)
        if not mission:
            _fail(f"Mission or task not found: {mission_id}, {task_id}")
        click.echo(f"Task '{task_id}' added to mission '{mission_id}'")


@mission_group.command("commit")
@click.argument("mission_id")
@click.argument("task_id")
@click.option("--author", default=None, help="Commit author (defaults to the artifact creator)")
def mission_commit(mission_id, task_id, author):
    """Record a task's code artifacts as a mission commit."""
    with _session() as store:
        commit = missions_mod.commit_task_artifacts(store, mission_id, task_id, author)
        if not commit:
            _fail("Task is not in the mission or has no code artifacts")
        click.echo(f"[{commit.sha[:7]}] {commit.message}")
        for path in commit.files_changed:
            click.echo(f"  {path}")


@mission_group.command("pr")
@click.argument("mission_id")
@click.argument("url")
@click.argument("number", type=int)
def mission_pr(mission_id, url, number):
    """Attach a pull request to a mission."""
    with _session() as store:
        mission = missions_mod.set_mission_pr(store, mission_id, url, number)
        if not mission:
            _fail(f"Mission not found or closed: {mission_id}")
        click.echo(f"PR #{number} attached to '{mission_id}' ({mission.status})")


# ── Epic Commands ─────────────────────────────────────────────────────────────


@main.group("epic")
def epic_group():
    """Group missions into epics."""
    pass


@epic_group.command("create")
@click.argument("name")
@click.option("--description", "-d", default="", help="Epic description")
@click.option("--phase", default="mvp", type=click.Choice(["mvp", "growth", "scale", "mature"]))
def epic_create(name, description, phase):
    """Create an epic."""
    with _session() as store:
        epic = missions_mod.create_epic(store, name, description, phase)
        click.echo(f"Created epic: {epic.id} ({epic.phase})")


@epic_group.command("list")
def epic_list():
    """List epics."""
    with _session() as store:
        epics = missions_mod.list_epics(store)
        if not epics:
            click.echo("No epics.")
            return
        for e in epics:
            click.echo(f"  {e.id}: {e.name} ({e.status}, {e.phase}) missions={len(e.mission_ids)}")


@epic_group.command("add-mission")
@click.argument("epic_id")
@click.argument("mission_id")
def epic_add_mission(epic_id, mission_id):
    """Attach a mission to an epic."""
    with _session() as store:
        epic = missions_mod.add_mission_to_epic(store, epic_id, mission_id)
        if not epic:
            _fail(f"Epic or mission not found: {epic_id}, {mission_id}")
        click.echo(f"Mission '{mission_id}' added to epic '{epic_id}'")


@epic_group.command("status")
@click.argument("epic_id")
@click.argument("status", type=click.Choice(["planned", "active", "completed", "blocked"]))
def epic_status(epic_id, status):
    """Set an epic's status."""
    with _session() as store:
        epic = missions_mod.update_epic_status(store, epic_id, status)
        if not epic:
            _fail(f"Epic not found: {epic_id}")
        click.echo(f"Epic '{epic_id}' -> {status}")


# ── PM Advisor Commands ───────────────────────────────────────────────────────


@main.group("pm")
def pm_group():
    """PM advisor: evaluations and proposals."""
    pass


@pm_group.command("evaluate")
def pm_evaluate():
    """Evaluate the product now."""
    with _session() as store:
        proposals = advisor_mod.run_evaluation(store)
        state = store.product_state
        click.echo(f"Phase: {state.phase} | Tech debt: {state.tech_debt_score}/100 | Bugs: {state.bug_count}")
        if not proposals:
            click.echo("No new proposals.")
        for p in proposals:
            click.echo(f"  New {p.type} proposal {p.id}: {p.title}")


@pm_group.command("thoughts")
def pm_thoughts():
    """Show recent advisor thoughts."""
    with _session() as store:
        if not store.thoughts:
            click.echo("No thoughts yet.")
            return
        for t in store.thoughts:
            click.echo(f"  [{t.tick}] {t.kind}: {t.message}")


@pm_group.command("proposals")
@click.option("--all", "show_all", is_flag=True, help="Include decided proposals")
def pm_proposals(show_all):
    """List proposals."""
    with _session() as store:
        proposals = advisor_mod.list_proposals(store, status=None if show_all else "pending")
        if not proposals:
            click.echo("No proposals.")
            return
        for p in proposals:
            click.echo(f"  {p.id}: [{p.type}/{p.priority}] {p.title} ({p.status})")
            if p.reasoning:
                click.echo(f"    {p.reasoning}")


@pm_group.command("approve")
@click.argument("proposal_id")
def pm_approve(proposal_id):
    """Approve a proposal and carry it out."""
    with _session() as store:
        proposal = advisor_mod.approve_proposal(store, proposal_id)
        if not proposal:
            _fail(f"No pending proposal: {proposal_id}")
        click.echo(f"Approved: {proposal.title}")
        if proposal.type == "hire":
            click.echo(f"  Run 'fe team hire {proposal.payload.role}' to complete the hire")


@pm_group.command("reject")
@click.argument("proposal_id")
def pm_reject(proposal_id):
    """Reject a proposal."""
    with _session() as store:
        proposal = advisor_mod.reject_proposal(store, proposal_id)
        if not proposal:
            _fail(f"No pending proposal: {proposal_id}")
        click.echo(f"Rejected: {proposal.title}")


@pm_group.command("dismiss")
@click.argument("proposal_id")
def pm_dismiss(proposal_id):
    """Delete a proposal without acting on it."""
    with _session() as store:
        proposal = advisor_mod.dismiss_proposal(store, proposal_id)
        if not proposal:
            _fail(f"No pending proposal: {proposal_id}")
        click.echo(f"Dismissed: {proposal.title}")


@pm_group.command("toggle")
def pm_toggle():
    """Turn periodic evaluations on or off."""
    with _session() as store:
        enabled = advisor_mod.toggle_advisor(store)
        click.echo(f"Advisor {'enabled' if enabled else 'disabled'}")


@pm_group.command("generate")
def pm_generate():
    """Have an idle PM add fresh ideas to the backlog."""
    with _session() as store:
        created = autopilot_mod.pm_generate_tasks(store)
        if not created:
            _fail(_last_problem(store, "No new task ideas right now"))
        for task in created:
            click.echo(f"  {task.id}: {task.title} ({task.type}, {task.priority})")


# ── Upgrade Commands ──────────────────────────────────────────────────────────


@main.group("upgrade")
def upgrade_group():
    """Company upgrades."""
    pass


@upgrade_group.command("list")
def upgrade_list():
    """List upgrades."""
    with _session() as store:
        for u in upgrades_mod.list_upgrades(store):
            if u.purchased:
                state = "owned"
            elif u.unlocked:
                state = f"${u.cost:,}"
            else:
                state = f"locked (needs {', '.join(u.requires)})"
            click.echo(f"  {u.id}: {u.name} [{u.category}] {state}")


@upgrade_group.command("buy")
@click.argument("upgrade_id")
def upgrade_buy(upgrade_id):
    """Buy an upgrade."""
    with _session() as store:
        if upgrade_id not in store.upgrades:
            _fail(f"Upgrade not found: {upgrade_id}")
        upgrade = upgrades_mod.purchase_upgrade(store, upgrade_id)
        if not upgrade:
            _fail(_last_problem(store, f"Could not buy {upgrade_id}"))
        click.echo(f"Purchased {upgrade.name}. Funds left: ${store.funds:,}")


# ── Notification Commands ─────────────────────────────────────────────────────


@main.command("notifications")
@click.option("--mark-read", is_flag=True, help="Mark all notifications as read")
def notifications_command(mark_read):
    """Show recent notifications."""
    with _session() as store:
        if not store.notifications:
            click.echo("No notifications.")
            return
        for n in store.notifications:
            marker = " " if n.read else "*"
            click.echo(f" {marker}[{n.tick}] {n.level}: {n.message}")
        if mark_read:
            store.mark_notifications_read()


# ── Slack Commands ────────────────────────────────────────────────────────────


@main.group("slack")
def slack_group():
    """Slack integration."""
    pass


@slack_group.command("status")
@click.option("--channel", default=None, help="Slack channel (defaults to FE_SLACK_CHANNEL)")
def slack_status(channel):
    """Post a company status summary to Slack."""
    config = get_config()
    channel = channel or config.slack_channel
    if not channel:
        _fail("No channel specified and FE_SLACK_CHANNEL not set")
    with _session() as store:
        blocks = slack_mod.format_status_update(store)
        try:
            result = slack_mod.send_message(
                config.slack_bot_token, channel, f"Status update: tick {store.tick}", blocks
            )
        except slack_mod.SlackError as e:
            _fail(str(e))
        click.echo(f"Posted to {result.channel} (ts: {result.ts})")


# ── Server Commands ───────────────────────────────────────────────────────────


@main.command("ui")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8787, type=int, help="Port to listen on")
def ui_command(host, port):
    """Serve the JSON API with the simulation running."""
    from founder_engine.web.app import run_server

    click.echo(f"Serving API at http://{host}:{port}/api/state")
    run_server(host=host, port=port)


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Start the MCP server (stdio transport)."""
    from founder_engine.mcp.server import mcp

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
