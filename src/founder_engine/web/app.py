"""JSON HTTP API over the simulation engine."""

import contextlib
import json
import logging
from dataclasses import asdict

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

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
from founder_engine.db.models import TaskDefinition

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _store(request: Request):
    return request.app.state.store


async def _body(request: Request) -> dict:
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


class BadRequest(Exception):
    """A malformed request field; answered with a 400."""


async def _bad_request(request: Request, exc: BadRequest) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=400)


def _int_field(data: dict, key: str, default: int | None = None) -> int:
    value = data.get(key, default)
    if value is None:
        raise BadRequest(f"{key} is required")
    if isinstance(value, bool):
        raise BadRequest(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{key} must be an integer") from None


def _text_field(data: dict, key: str, default: str | None = None) -> str:
    value = data.get(key, default)
    if value is None or value == "":
        raise BadRequest(f"{key} is required")
    if not isinstance(value, str):
        raise BadRequest(f"{key} must be a string")
    return value


def _opt_text(data: dict, key: str, default: str | None = None) -> str | None:
    value = data.get(key, default)
    if value is not None and not isinstance(value, str):
        raise BadRequest(f"{key} must be a string")
    return value


def _not_found(kind: str) -> JSONResponse:
    return JSONResponse({"error": f"{kind} not found"}, status_code=404)


def _rejected(store, default: str) -> JSONResponse:
    """400 carrying the newest notification when the command produced one."""
    note = store.notifications[-1] if store.notifications else None
    message = note.message if note and note.tick == store.tick and note.level in ("warning", "error") else default
    return JSONResponse({"error": message}, status_code=400)


def _ok(entity) -> JSONResponse:
    return JSONResponse(asdict(entity))


def _state_dict(store) -> dict:
    return {
        "tick": store.tick,
        "paused": store.paused,
        "funds": store.funds,
        "ai_enabled": store.ai_enabled,
        "stats": asdict(store.stats),
        "active_mission_id": store.active_mission_id,
        "pending_hire_role": store.pending_hire_role,
        "advisor_enabled": store.advisor_enabled,
        "autopilot": store.autopilot,
        "last_evaluation": store.last_evaluation,
        "queue_length": len(store.ai_queue),
        "ai_in_flight": store.ai_in_flight,
        "product_state": asdict(store.product_state) if store.product_state else None,
        "counts": {
            "tasks": len(store.tasks),
            "employees": len(store.employees),
            "missions": len(store.missions),
            "pending_proposals": len(advisor_mod.get_pending_proposals(store)),
        },
    }


# ── Clock ─────────────────────────────────────────────────────────────────────


async def api_state(request: Request):
    return JSONResponse(_state_dict(_store(request)))


async def api_tick(request: Request):
    store = _store(request)
    data = await _body(request)
    count = _int_field(data, "count", 1)
    for _ in range(max(0, count)):
        clock_mod.tick(store)
    return JSONResponse({"tick": store.tick, "paused": store.paused})


async def api_pause(request: Request):
    store = _store(request)
    data = await _body(request)
    if "paused" in data:
        paused = clock_mod.set_paused(store, bool(data["paused"]))
    else:
        paused = clock_mod.toggle_pause(store)
    return JSONResponse({"paused": paused})


async def api_autopilot(request: Request):
    store = _store(request)
    data = await _body(request)
    if "enabled" in data:
        enabled = autopilot_mod.set_autopilot(store, bool(data["enabled"]))
    else:
        enabled = autopilot_mod.toggle_autopilot(store)
    return JSONResponse({"autopilot": enabled})


# ── Tasks ─────────────────────────────────────────────────────────────────────


async def api_list_tasks(request: Request):
    tasks = tasks_mod.list_tasks(
        _store(request),
        status=request.query_params.get("status"),
        assignee_id=request.query_params.get("assignee_id"),
    )
    return JSONResponse([asdict(t) for t in tasks])


async def api_create_task(request: Request):
    store = _store(request)
    data = await _body(request)
    task = tasks_mod.create_task(
        store,
        _text_field(data, "title"),
        description=_opt_text(data, "description") or "",
        type=_opt_text(data, "type", "feature"),
        priority=_opt_text(data, "priority", "medium"),
        estimated_ticks=_int_field(data, "estimated_ticks", 100),
        status=_opt_text(data, "status", "backlog"),
    )
    if not task:
        return JSONResponse({"error": "Invalid task fields"}, status_code=400)
    return JSONResponse(asdict(task), status_code=201)


async def api_get_task(request: Request):
    task = tasks_mod.get_task(_store(request), request.path_params["task_id"])
    if not task:
        return _not_found("Task")
    return _ok(task)


async def api_assign_task(request: Request):
    store = _store(request)
    task_id = request.path_params["task_id"]
    data = await _body(request)
    employee_id = _opt_text(data, "employee_id", "")
    if not store.get_task(task_id):
        return _not_found("Task")
    if not store.get_employee(employee_id):
        return _not_found("Employee")
    task = tasks_mod.assign_task(store, task_id, employee_id)
    if not task:
        return _rejected(store, "Employee is busy or task is done")
    return _ok(task)


async def api_quick_assign(request: Request):
    store = _store(request)
    task_id = request.path_params["task_id"]
    if not store.get_task(task_id):
        return _not_found("Task")
    task = tasks_mod.quick_assign(store, task_id)
    if not task:
        return _rejected(store, "Task is done")
    return _ok(task)


async def api_unassign_task(request: Request):
    store = _store(request)
    task_id = request.path_params["task_id"]
    if not store.get_task(task_id):
        return _not_found("Task")
    task = tasks_mod.unassign_task(store, task_id)
    return _ok(task or store.get_task(task_id))


async def api_task_status(request: Request):
    store = _store(request)
    task_id = request.path_params["task_id"]
    data = await _body(request)
    if not store.get_task(task_id):
        return _not_found("Task")
    task = tasks_mod.update_task_status(store, task_id, _opt_text(data, "status", ""))
    if not task:
        return JSONResponse({"error": f"Invalid status: {data.get('status')}"}, status_code=400)
    return _ok(task)


# ── Team ──────────────────────────────────────────────────────────────────────


async def api_list_employees(request: Request):
    employees = employees_mod.list_employees(
        _store(request),
        role=request.query_params.get("role"),
        status=request.query_params.get("status"),
    )
    return JSONResponse([asdict(e) for e in employees])


async def api_hire(request: Request):
    store = _store(request)
    data = await _body(request)
    role = _opt_text(data, "role", "")
    if role not in employees_mod.EMPLOYEE_TEMPLATES:
        return JSONResponse({"error": f"Unknown role: {role}"}, status_code=400)
    employee = employees_mod.hire_employee(store, role, _opt_text(data, "name"))
    if not employee:
        return _rejected(store, "Hire rejected")
    return JSONResponse(asdict(employee), status_code=201)


async def api_fire(request: Request):
    employee = employees_mod.fire_employee(_store(request), request.path_params["employee_id"])
    if not employee:
        return _not_found("Employee")
    return _ok(employee)


async def api_employee_memory(request: Request):
    store = _store(request)
    employee_id = request.path_params["employee_id"]
    employee = store.get_employee(employee_id)
    if not employee:
        return _not_found("Employee")
    return JSONResponse({
        "employee_id": employee_id,
        "specializations": employee.specializations,
        "memory": [asdict(m) for m in employee.memory],
        "context": memory_mod.get_employee_context(store, employee_id, request.query_params.get("task")),
    })


# ── AI Queue ──────────────────────────────────────────────────────────────────


async def api_list_queue(request: Request):
    store = _store(request)
    return JSONResponse({
        "in_flight": store.ai_in_flight,
        "items": [asdict(i) for i in queue_mod.list_queue(store)],
    })


async def api_process_queue(request: Request):
    store = _store(request)
    generator = request.app.state.generator
    if generator is None:
        return JSONResponse({"error": "No generator configured"}, status_code=400)
    processed = await queue_mod.process_one(store, generator, request.app.state.model)
    return JSONResponse({"processed": processed, "queue_length": len(store.ai_queue)})


# ── Missions ──────────────────────────────────────────────────────────────────


async def api_list_missions(request: Request):
    missions = missions_mod.list_missions(_store(request), status=request.query_params.get("status"))
    return JSONResponse([asdict(m) for m in missions])


async def api_create_mission(request: Request):
    store = _store(request)
    data = await _body(request)
    name = _text_field(data, "name")
    tasks = data.get("tasks", [])
    if not isinstance(tasks, list):
        raise BadRequest("tasks must be a list")
    definitions = [
        TaskDefinition(
            title=_text_field(t, "title"),
            type=_opt_text(t, "type", "feature"),
            estimated_ticks=_int_field(t, "estimated_ticks", 100),
            description=_opt_text(t, "description", ""),
            priority=_opt_text(t, "priority"),
        )
        for t in tasks
        if isinstance(t, dict) and t.get("title")
    ]
    mission = missions_mod.create_mission_with_tasks(
        store,
        name,
        _opt_text(data, "description") or "",
        _opt_text(data, "priority", "medium"),
        definitions,
    )
    if not mission:
        return JSONResponse({"error": "Invalid mission fields"}, status_code=400)
    return JSONResponse(asdict(mission), status_code=201)


async def api_get_mission(request: Request):
    store = _store(request)
    mission_id = request.path_params["mission_id"]
    mission = missions_mod.get_mission(store, mission_id)
    if not mission:
        return _not_found("Mission")
    md = asdict(mission)
    md["progress"] = missions_mod.mission_progress(store, mission_id)
    md["tasks"] = [asdict(t) for t in (store.get_task(i) for i in mission.task_ids) if t]
    return JSONResponse(md)


def _mission_command(func, error: str):
    async def handler(request: Request):
        store = _store(request)
        mission_id = request.path_params["mission_id"]
        if not store.get_mission(mission_id):
            return _not_found("Mission")
        mission = func(store, mission_id)
        if not mission:
            return JSONResponse({"error": error}, status_code=400)
        return _ok(mission)

    return handler


async def api_mission_status(request: Request):
    store = _store(request)
    mission_id = request.path_params["mission_id"]
    data = await _body(request)
    if not store.get_mission(mission_id):
        return _not_found("Mission")
    mission = missions_mod.update_mission_status(store, mission_id, _opt_text(data, "status", ""))
    if not mission:
        return JSONResponse({"error": "Invalid mission transition"}, status_code=400)
    return _ok(mission)


async def api_mission_add_task(request: Request):
    store = _store(request)
    mission_id = request.path_params["mission_id"]
    data = await _body(request)
    if not store.get_mission(mission_id):
        return _not_found("Mission")
    if not store.get_task(_opt_text(data, "task_id", "")):
        return _not_found("Task")
    return _ok(missions_mod.add_task_to_mission(store, mission_id, data["task_id"]))


async def api_mission_remove_task(request: Request):
    store = _store(request)
    mission = missions_mod.remove_task_from_mission(
        store, request.path_params["mission_id"], request.path_params["task_id"]
    )
    if not mission:
        return _not_found("Mission task")
    return _ok(mission)


async def api_mission_commit(request: Request):
    store = _store(request)
    mission_id = request.path_params["mission_id"]
    data = await _body(request)
    if not store.get_mission(mission_id):
        return _not_found("Mission")
    commit = missions_mod.commit_task_artifacts(
        store, mission_id, _opt_text(data, "task_id", ""), _opt_text(data, "author")
    )
    if not commit:
        return JSONResponse({"error": "Task is not in the mission or has no code artifacts"}, status_code=400)
    return JSONResponse(asdict(commit), status_code=201)


async def api_mission_pr(request: Request):
    store = _store(request)
    mission_id = request.path_params["mission_id"]
    data = await _body(request)
    if not store.get_mission(mission_id):
        return _not_found("Mission")
    url = _text_field(data, "url")
    mission = missions_mod.set_mission_pr(store, mission_id, url, _int_field(data, "number"))
    if not mission:
        return JSONResponse({"error": "Mission is closed"}, status_code=400)
    return _ok(mission)


# ── Epics ─────────────────────────────────────────────────────────────────────


async def api_list_epics(request: Request):
    epics = missions_mod.list_epics(_store(request), phase=request.query_params.get("phase"))
    return JSONResponse([asdict(e) for e in epics])


async def api_create_epic(request: Request):
    data = await _body(request)
    epic = missions_mod.create_epic(
        _store(request),
        _text_field(data, "name"),
        _opt_text(data, "description") or "",
        phase=_opt_text(data, "phase", "mvp"),
        priority=_opt_text(data, "priority", "medium"),
    )
    if not epic:
        return JSONResponse({"error": "Invalid epic fields"}, status_code=400)
    return JSONResponse(asdict(epic), status_code=201)


async def api_epic_add_mission(request: Request):
    data = await _body(request)
    epic = missions_mod.add_mission_to_epic(
        _store(request), request.path_params["epic_id"], _opt_text(data, "mission_id", "")
    )
    if not epic:
        return _not_found("Epic or mission")
    return _ok(epic)


async def api_epic_status(request: Request):
    store = _store(request)
    epic_id = request.path_params["epic_id"]
    data = await _body(request)
    if epic_id not in store.epics:
        return _not_found("Epic")
    epic = missions_mod.update_epic_status(store, epic_id, _opt_text(data, "status", ""))
    if not epic:
        return JSONResponse({"error": f"Invalid status: {data.get('status')}"}, status_code=400)
    return _ok(epic)


# ── Advisor ───────────────────────────────────────────────────────────────────


async def api_evaluate(request: Request):
    proposals = advisor_mod.run_evaluation(_store(request))
    return JSONResponse([asdict(p) for p in proposals])


async def api_generate_tasks(request: Request):
    store = _store(request)
    created = autopilot_mod.pm_generate_tasks(store)
    if not created:
        return _rejected(store, "No new task ideas right now")
    return JSONResponse([asdict(t) for t in created], status_code=201)


async def api_thoughts(request: Request):
    return JSONResponse([asdict(t) for t in _store(request).thoughts])


async def api_toggle_advisor(request: Request):
    return JSONResponse({"advisor_enabled": advisor_mod.toggle_advisor(_store(request))})


async def api_list_proposals(request: Request):
    proposals = advisor_mod.list_proposals(_store(request), status=request.query_params.get("status"))
    return JSONResponse([asdict(p) for p in proposals])


def _proposal_command(func):
    async def handler(request: Request):
        store = _store(request)
        proposal_id = request.path_params["proposal_id"]
        if not store.get_proposal(proposal_id):
            return _not_found("Proposal")
        proposal = func(store, proposal_id)
        if not proposal:
            return JSONResponse({"error": "Proposal already decided"}, status_code=400)
        return _ok(proposal)

    return handler


# ── Upgrades & Notifications ──────────────────────────────────────────────────


async def api_list_upgrades(request: Request):
    return JSONResponse([asdict(u) for u in upgrades_mod.list_upgrades(_store(request))])


async def api_purchase_upgrade(request: Request):
    store = _store(request)
    upgrade_id = request.path_params["upgrade_id"]
    if upgrade_id not in store.upgrades:
        return _not_found("Upgrade")
    upgrade = upgrades_mod.purchase_upgrade(store, upgrade_id)
    if not upgrade:
        return _rejected(store, "Purchase rejected")
    return _ok(upgrade)


async def api_notifications(request: Request):
    store = _store(request)
    notes = store.notifications
    if request.query_params.get("unread"):
        notes = [n for n in notes if not n.read]
    return JSONResponse([asdict(n) for n in notes])


async def api_mark_read(request: Request):
    return JSONResponse({"marked": _store(request).mark_notifications_read()})


async def api_dismiss_notification(request: Request):
    if not _store(request).dismiss_notification(request.path_params["note_id"]):
        return _not_found("Notification")
    return JSONResponse({"dismissed": request.path_params["note_id"]})


# ── App ───────────────────────────────────────────────────────────────────────


def create_app(store, generator=None, model: str | None = None, lifespan=None) -> Starlette:
    routes = [
        Route("/api/state", api_state),
        Route("/api/tick", api_tick, methods=["POST"]),
        Route("/api/pause", api_pause, methods=["POST"]),
        Route("/api/autopilot", api_autopilot, methods=["POST"]),
        Route("/api/tasks", api_list_tasks),
        Route("/api/tasks", api_create_task, methods=["POST"]),
        Route("/api/tasks/{task_id}", api_get_task),
        Route("/api/tasks/{task_id}/assign", api_assign_task, methods=["POST"]),
        Route("/api/tasks/{task_id}/quick-assign", api_quick_assign, methods=["POST"]),
        Route("/api/tasks/{task_id}/unassign", api_unassign_task, methods=["POST"]),
        Route("/api/tasks/{task_id}/status", api_task_status, methods=["POST"]),
        Route("/api/employees", api_list_employees),
        Route("/api/employees", api_hire, methods=["POST"]),
        Route("/api/employees/{employee_id}", api_fire, methods=["DELETE"]),
        Route("/api/employees/{employee_id}/memory", api_employee_memory),
        Route("/api/queue", api_list_queue),
        Route("/api/queue/process", api_process_queue, methods=["POST"]),
        Route("/api/missions", api_list_missions),
        Route("/api/missions", api_create_mission, methods=["POST"]),
        Route("/api/missions/{mission_id}", api_get_mission),
        Route(
            "/api/missions/{mission_id}/start",
            _mission_command(missions_mod.start_mission, "Mission is not in planning"),
            methods=["POST"],
        ),
        Route(
            "/api/missions/{mission_id}/complete",
            _mission_command(missions_mod.complete_mission, "Mission is closed"),
            methods=["POST"],
        ),
        Route(
            "/api/missions/{mission_id}/abandon",
            _mission_command(missions_mod.abandon_mission, "Mission is closed"),
            methods=["POST"],
        ),
        Route(
            "/api/missions/{mission_id}/activate",
            _mission_command(missions_mod.set_active_mission, "Mission is closed"),
            methods=["POST"],
        ),
        Route("/api/missions/{mission_id}/status", api_mission_status, methods=["POST"]),
        Route("/api/missions/{mission_id}/tasks", api_mission_add_task, methods=["POST"]),
        Route("/api/missions/{mission_id}/tasks/{task_id}", api_mission_remove_task, methods=["DELETE"]),
        Route("/api/missions/{mission_id}/commits", api_mission_commit, methods=["POST"]),
        Route("/api/missions/{mission_id}/pr", api_mission_pr, methods=["POST"]),
        Route("/api/epics", api_list_epics),
        Route("/api/epics", api_create_epic, methods=["POST"]),
        Route("/api/epics/{epic_id}/missions", api_epic_add_mission, methods=["POST"]),
        Route("/api/epics/{epic_id}/status", api_epic_status, methods=["POST"]),
        Route("/api/advisor/evaluate", api_evaluate, methods=["POST"]),
        Route("/api/advisor/thoughts", api_thoughts),
        Route("/api/advisor/generate-tasks", api_generate_tasks, methods=["POST"]),
        Route("/api/advisor/toggle", api_toggle_advisor, methods=["POST"]),
        Route("/api/proposals", api_list_proposals),
        Route(
            "/api/proposals/{proposal_id}/approve",
            _proposal_command(advisor_mod.approve_proposal),
            methods=["POST"],
        ),
        Route(
            "/api/proposals/{proposal_id}/reject",
            _proposal_command(advisor_mod.reject_proposal),
            methods=["POST"],
        ),
        Route(
            "/api/proposals/{proposal_id}",
            _proposal_command(advisor_mod.dismiss_proposal),
            methods=["DELETE"],
        ),
        Route("/api/upgrades", api_list_upgrades),
        Route("/api/upgrades/{upgrade_id}/purchase", api_purchase_upgrade, methods=["POST"]),
        Route("/api/notifications", api_notifications),
        Route("/api/notifications/read", api_mark_read, methods=["POST"]),
        Route("/api/notifications/{note_id}", api_dismiss_notification, methods=["DELETE"]),
    ]
    app = Starlette(routes=routes, lifespan=lifespan, exception_handlers={BadRequest: _bad_request})
    app.state.store = store
    app.state.generator = generator
    app.state.model = model
    return app


def run_server(host: str = "127.0.0.1", port: int = 8787, config: Config | None = None):
    """Serve the API with the clock and queue running in the background."""
    from founder_engine.db.engine import get_db, load_store, save_store
    from founder_engine.integrations.generation import ClaudeCliGenerator

    config = config or get_config()
    generator = ClaudeCliGenerator(config.claude_binary, config.generation_model) if config.ai_enabled else None

    with get_db(config.db_path) as conn:
        store = load_store(conn, config)

        @contextlib.asynccontextmanager
        async def lifespan(app):
            runner = clock_mod.SimulationRunner(
                store,
                generator,
                tick_interval=config.tick_interval,
                queue_interval=config.queue_interval,
                on_tick=lambda _tick: save_store(conn, store),
                model=config.generation_model,
            )
            runner.start()
            try:
                yield
            finally:
                runner.stop()
                save_store(conn, store)
                logger.info("Saved state at tick %d", store.tick)

        app = create_app(store, generator, config.generation_model, lifespan=lifespan)
        uvicorn.run(app, host=host, port=port)
