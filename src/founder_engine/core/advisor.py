"""Advisory loop: product analysis, thoughts and proposals awaiting approval.

An evaluation reads the store, records what it noticed as thoughts, and may
queue proposals. Nothing here acts on its own; approving a proposal is what
creates a mission, surfaces a hire, or buys an upgrade.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from founder_engine.core.missions import create_mission_with_tasks
from founder_engine.core.tasks import PRIORITY_RANK
from founder_engine.core.upgrades import purchase_upgrade
from founder_engine.db.models import (
    HirePayload,
    Mission,
    MissionPayload,
    ProductState,
    Proposal,
    TaskDefinition,
    TechPayload,
    Thought,
)

logger = logging.getLogger(__name__)

MAX_THOUGHTS = 20
MAX_PENDING_PROPOSALS = 3
MAX_ACTIVE_MISSIONS = 2
MAX_TEAM_FOR_HIRE = 3
HIRE_FUNDS_THRESHOLD = 20_000
TECH_DEBT_THRESHOLD = 60
CORE_ROLES = ("engineer", "designer", "pm")


# ── Product Analysis ────────────────────────────────────────────────────────

_FEATURE_PATTERNS = {
    "has_auth": r"auth|login|signup|session|password",
    "has_database": r"database|schema|model|migration|postgres|mongo",
    "has_api": r"api|endpoint|route|rest|graphql",
    "has_ui": r"component|page|screen|dashboard|interface|ui",
    "has_landing": r"landing|hero|marketing|homepage",
    "has_pricing": r"pricing|payment|stripe|billing|subscription",
    "has_onboarding": r"onboard|tutorial|wizard|guide|welcome",
    "has_analytics": r"analytics|tracking|metrics|dashboard|chart",
    "has_testing": r"test|spec|jest|cypress|coverage",
    "has_ci": r"ci|deploy|pipeline|github action|vercel",
    "has_documentation": r"readme|doc|guide|api doc",
}


def analyze_product_state(store) -> ProductState:
    """Snapshot of what the product has, derived from shipped work. Read-only."""
    tasks = list(store.tasks.values())
    done = [t for t in tasks if t.status == "done"]
    text = " ".join(t.title.lower() for t in done) + " " + " ".join(
        m.name.lower() for m in store.missions.values()
    )
    flags = {name: bool(re.search(pattern, text)) for name, pattern in _FEATURE_PATTERNS.items()}

    feature_count = sum(1 for t in done if t.type == "feature")
    bug_count = sum(1 for t in tasks if t.type == "bug" and t.status != "done")

    avg_age = sum(store.tick - t.created_at for t in done) / len(done) if done else 0
    tech_debt = (
        (0 if flags["has_testing"] else 30)
        + (0 if flags["has_ci"] else 20)
        + bug_count * 5
        + (20 if avg_age > 1000 else 0)
    )

    core = sum(flags[k] for k in ("has_auth", "has_database", "has_api", "has_ui"))
    growth = sum(flags[k] for k in ("has_landing", "has_pricing", "has_onboarding", "has_analytics"))
    if core >= 3 and growth >= 2:
        phase = "scale"
    elif core >= 2 and growth >= 1:
        phase = "growth"
    else:
        phase = "mvp"

    return ProductState(
        phase=phase,
        feature_count=feature_count,
        bug_count=bug_count,
        tech_debt_score=max(0, min(100, tech_debt)),
        completion_ratio=len(done) / len(tasks) if tasks else 0.0,
        elapsed_ticks=store.tick,
        **flags,
    )


# ── Mission Templates ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class MissionTemplate:
    name: str
    description: str
    priority: str
    phases: tuple[str, ...]
    condition: Callable[[ProductState], bool]
    tasks: list[TaskDefinition] = field(default_factory=list)


def _tasks(*specs: tuple[str, str, int]) -> list[TaskDefinition]:
    return [TaskDefinition(title=title, type=type, estimated_ticks=ticks) for title, type, ticks in specs]


MISSION_TEMPLATES = [
    MissionTemplate(
        "Core Database Setup",
        "Set up the database schema and models for the application",
        "critical", ("mvp",),
        lambda s: not s.has_database,
        _tasks(
            ("Design database schema", "infrastructure", 300),
            ("Create database models", "feature", 400),
            ("Set up migrations", "infrastructure", 200),
            ("Add seed data", "infrastructure", 150),
        ),
    ),
    MissionTemplate(
        "User Authentication",
        "Implement secure user authentication with login, signup, and session management",
        "critical", ("mvp",),
        lambda s: s.has_database and not s.has_auth,
        _tasks(
            ("Create user model", "feature", 200),
            ("Build signup flow", "feature", 350),
            ("Build login flow", "feature", 300),
            ("Implement session management", "feature", 250),
            ("Add password reset", "feature", 300),
            ("Design auth UI", "design", 200),
        ),
    ),
    MissionTemplate(
        "API Foundation",
        "Create the core API structure with routes and middleware",
        "high", ("mvp",),
        lambda s: not s.has_api,
        _tasks(
            ("Set up API router", "infrastructure", 200),
            ("Add authentication middleware", "feature", 250),
            ("Create error handling", "feature", 150),
            ("Add request validation", "feature", 200),
            ("Set up CORS", "infrastructure", 100),
        ),
    ),
    MissionTemplate(
        "Core UI Components",
        "Build the foundational UI component library",
        "high", ("mvp",),
        lambda s: not s.has_ui,
        _tasks(
            ("Create design system tokens", "design", 200),
            ("Build Button component", "feature", 150),
            ("Build Input component", "feature", 150),
            ("Build Card component", "feature", 150),
            ("Build Modal component", "feature", 200),
            ("Build Navigation component", "feature", 250),
            ("Add dark mode support", "design", 200),
        ),
    ),
    MissionTemplate(
        "Marketing Landing Page",
        "Create a compelling landing page to attract users",
        "high", ("growth",),
        lambda s: s.phase != "mvp" and not s.has_landing,
        _tasks(
            ("Design landing page layout", "design", 300),
            ("Build hero section", "feature", 250),
            ("Create features showcase", "feature", 300),
            ("Add testimonials section", "feature", 200),
            ("Write landing page copy", "marketing", 250),
            ("Add CTA buttons", "feature", 100),
            ("Implement responsive design", "design", 200),
            ("Add animations", "design", 200),
        ),
    ),
    MissionTemplate(
        "User Onboarding",
        "Guide new users through the product with an onboarding flow",
        "medium", ("growth",),
        lambda s: s.has_auth and not s.has_onboarding,
        _tasks(
            ("Design onboarding flow", "design", 250),
            ("Build welcome screen", "feature", 200),
            ("Create product tour", "feature", 350),
            ("Add tooltips system", "feature", 200),
            ("Track onboarding completion", "feature", 150),
        ),
    ),
    MissionTemplate(
        "Analytics Dashboard",
        "Build analytics to understand user behavior",
        "medium", ("growth", "scale"),
        lambda s: not s.has_analytics,
        _tasks(
            ("Set up analytics tracking", "infrastructure", 250),
            ("Create events schema", "infrastructure", 150),
            ("Build analytics dashboard", "feature", 400),
            ("Add charts and graphs", "feature", 350),
            ("Create metrics API", "feature", 250),
        ),
    ),
    MissionTemplate(
        "Payment Integration",
        "Add payment processing and subscription management",
        "critical", ("scale",),
        lambda s: s.phase == "scale" and not s.has_pricing,
        _tasks(
            ("Integrate Stripe", "feature", 400),
            ("Create pricing page", "feature", 300),
            ("Build checkout flow", "feature", 350),
            ("Add subscription management", "feature", 300),
            ("Handle webhooks", "feature", 250),
            ("Create billing portal", "feature", 250),
        ),
    ),
    MissionTemplate(
        "Testing Suite",
        "Add comprehensive testing to ensure quality",
        "high", ("growth", "scale"),
        lambda s: s.tech_debt_score > 50 and not s.has_testing,
        _tasks(
            ("Set up testing framework", "infrastructure", 200),
            ("Write unit tests for core logic", "infrastructure", 400),
            ("Add integration tests", "infrastructure", 350),
            ("Set up E2E tests", "infrastructure", 300),
            ("Add test coverage reporting", "infrastructure", 150),
        ),
    ),
    MissionTemplate(
        "CI/CD Pipeline",
        "Automate testing and deployment",
        "medium", ("growth", "scale"),
        lambda s: s.has_testing and not s.has_ci,
        _tasks(
            ("Set up GitHub Actions", "infrastructure", 250),
            ("Configure automated testing", "infrastructure", 200),
            ("Add deployment pipeline", "infrastructure", 300),
            ("Set up staging environment", "infrastructure", 250),
            ("Add deployment notifications", "infrastructure", 100),
        ),
    ),
    MissionTemplate(
        "Bug Fixes Sprint",
        "Address accumulated bugs and issues",
        "high", ("mvp", "growth", "scale", "mature"),
        lambda s: s.bug_count >= 3,
        _tasks(
            ("Triage and prioritize bugs", "bug", 100),
            ("Fix critical bugs", "bug", 400),
            ("Fix medium priority bugs", "bug", 300),
            ("Update error handling", "bug", 200),
        ),
    ),
    MissionTemplate(
        "Documentation",
        "Create comprehensive documentation",
        "low", ("growth", "scale", "mature"),
        lambda s: s.feature_count >= 5 and not s.has_documentation,
        _tasks(
            ("Write README", "infrastructure", 150),
            ("Create API documentation", "infrastructure", 300),
            ("Add code comments", "infrastructure", 200),
            ("Create user guide", "marketing", 250),
        ),
    ),
]


def evaluate_next_missions(
    state: ProductState,
    missions: list[Mission],
    limit: int = 3,
) -> list[MissionTemplate]:
    """Templates that fit the product's phase and gaps, most urgent first."""
    existing = {m.name.lower() for m in missions}
    eligible = [
        t for t in MISSION_TEMPLATES
        if state.phase in t.phases and t.condition(state) and t.name.lower() not in existing
    ]
    eligible.sort(key=lambda t: PRIORITY_RANK[t.priority])
    return eligible[:limit]


# ── Thoughts ────────────────────────────────────────────────────────────────


def generate_thoughts(store, state: ProductState) -> list[tuple[str, str]]:
    """(kind, message) pairs describing the current situation."""
    thoughts = [(
        "observation",
        f"Product is in {state.phase.upper()} phase with {state.feature_count} features shipped.",
    )]

    missing = [
        label for flag, label in (
            (state.has_database, "database"),
            (state.has_auth, "authentication"),
            (state.has_api, "API"),
            (state.has_ui, "UI components"),
        ) if not flag
    ]
    if missing:
        thoughts.append(("observation", f"Missing core features: {', '.join(missing)}"))

    employees = list(store.employees.values())
    idle = sum(1 for e in employees if e.status == "idle")
    working = sum(1 for e in employees if e.status == "working")
    thoughts.append(("observation", f"Team: {working} working, {idle} idle out of {len(employees)} total."))

    active = sum(1 for m in store.missions.values() if m.status == "active")
    pending = sum(1 for t in store.tasks.values() if t.status in ("todo", "backlog"))
    if idle > 0 and pending == 0:
        thoughts.append(("priority", f"{idle} idle employees with no pending tasks. Need to generate more work."))
    if active == 0:
        thoughts.append(("priority", "No active missions. Should start a new feature initiative."))
    if state.tech_debt_score > TECH_DEBT_THRESHOLD:
        thoughts.append((
            "priority",
            f"Tech debt is high ({state.tech_debt_score}/100). Consider adding tests and documentation.",
        ))
    if state.bug_count > 0:
        thoughts.append(("priority", f"{state.bug_count} open bugs need attention."))
    return thoughts


def add_thought(store, kind: str, message: str) -> Thought:
    """Record a thought, keeping only the newest MAX_THOUGHTS."""
    with store.transaction():
        thought = Thought(id=store.next_id("thought"), kind=kind, message=message, tick=store.tick)
        store.thoughts = (store.thoughts + [thought])[-MAX_THOUGHTS:]
        store.emit("thought", thought.id)
    logger.debug("[%s] %s", kind, message)
    return thought


# ── Evaluation ──────────────────────────────────────────────────────────────


def maybe_evaluate(store) -> list[Proposal] | None:
    """Run an evaluation when the advisor is on and the interval has elapsed."""
    with store.transaction():
        if not store.advisor_enabled:
            return None
        if store.tick - store.last_evaluation < store.evaluation_interval:
            return None
        return run_evaluation(store)


def run_evaluation(store) -> list[Proposal]:
    """Analyze the company and queue whatever proposals the gates allow."""
    with store.transaction():
        state = analyze_product_state(store)
        store.product_state = state
        store.last_evaluation = store.tick
        store.emit("product_state")

        for kind, message in generate_thoughts(store, state):
            add_thought(store, kind, message)

        created = []
        for propose in (_propose_mission, _propose_hire, _propose_tech):
            proposal = propose(store, state)
            if proposal:
                created.append(proposal)
                add_thought(store, "decision", f"Proposing {proposal.type}: {proposal.title}")

    logger.info("Advisor evaluation at tick %d: phase=%s, %d new proposal(s)", store.tick, state.phase, len(created))
    return created


def _can_propose(store) -> bool:
    return len(get_pending_proposals(store)) < MAX_PENDING_PROPOSALS


def _propose_mission(store, state: ProductState) -> Proposal | None:
    if not _can_propose(store):
        return None
    idle = sum(1 for e in store.employees.values() if e.status == "idle")
    pending_tasks = sum(1 for t in store.tasks.values() if t.status in ("backlog", "todo"))
    active = sum(1 for m in store.missions.values() if m.status == "active")
    if idle == 0 or pending_tasks >= idle or active >= MAX_ACTIVE_MISSIONS:
        return None

    proposed = {
        p.payload.mission_name.lower()
        for p in get_pending_proposals(store)
        if p.type == "mission"
    }
    for template in evaluate_next_missions(state, list(store.missions.values())):
        if template.name.lower() in proposed:
            continue
        tasks = [TaskDefinition(t.title, t.type, t.estimated_ticks, t.description, t.priority) for t in template.tasks]
        return _add_proposal(
            store,
            type="mission",
            title=f"Start mission: {template.name}",
            description=template.description,
            reasoning=(
                f"{idle} idle employee(s) and only {pending_tasks} pending task(s). "
                f"The product is in {state.phase.upper()} phase."
            ),
            priority=template.priority,
            payload=MissionPayload(template.name, template.description, tasks),
        )
    return None


def _propose_hire(store, state: ProductState) -> Proposal | None:
    if not _can_propose(store):
        return None
    if len(store.employees) >= MAX_TEAM_FOR_HIRE or store.funds <= HIRE_FUNDS_THRESHOLD:
        return None
    if any(p.type == "hire" for p in get_pending_proposals(store)):
        return None

    roles = {e.role for e in store.employees.values()}
    role = next((r for r in CORE_ROLES if r not in roles), None)
    if not role:
        return None
    return _add_proposal(
        store,
        type="hire",
        title=f"Hire a {role}",
        description=f"The team has no {role}.",
        reasoning=f"Team of {len(store.employees)} with ${store.funds:,} in the bank.",
        priority="high" if role == "engineer" else "medium",
        payload=HirePayload(role),
    )


def _propose_tech(store, state: ProductState) -> Proposal | None:
    if not _can_propose(store) or state.tech_debt_score <= TECH_DEBT_THRESHOLD:
        return None
    if any(p.type == "tech" for p in get_pending_proposals(store)):
        return None
    upgrade = next(
        (
            u for u in store.upgrades.values()
            if u.category == "engineering" and u.unlocked and not u.purchased and u.cost <= store.funds
        ),
        None,
    )
    if not upgrade:
        return None
    return _add_proposal(
        store,
        type="tech",
        title=f"Buy {upgrade.name}",
        description=upgrade.description,
        reasoning=f"Tech debt is {state.tech_debt_score}/100.",
        priority="medium",
        payload=TechPayload(upgrade.id),
    )


def _add_proposal(store, **fields) -> Proposal:
    proposal = Proposal(id=store.next_id("proposal"), created_at=store.tick, **fields)
    store.proposals[proposal.id] = proposal
    store.emit("proposal", proposal.id)
    logger.info("New %s proposal %s: %s", proposal.type, proposal.id, proposal.title)
    return proposal


# ── Decisions ───────────────────────────────────────────────────────────────


def get_pending_proposals(store) -> list[Proposal]:
    return sorted(
        (p for p in store.proposals.values() if p.status == "pending"),
        key=lambda p: (p.created_at, p.id),
    )


def list_proposals(store, status: str | None = None) -> list[Proposal]:
    proposals = list(store.proposals.values())
    if status:
        proposals = [p for p in proposals if p.status == status]
    return sorted(proposals, key=lambda p: (p.created_at, p.id))


def approve_proposal(store, proposal_id: str) -> Proposal | None:
    """Approve a pending proposal and carry out its payload."""
    with store.transaction():
        proposal = store.get_proposal(proposal_id)
        if not proposal or proposal.status != "pending":
            return None
        proposal = store.update_proposal(proposal_id, status="approved")
        payload = proposal.payload

        if proposal.type == "mission":
            create_mission_with_tasks(
                store,
                payload.mission_name,
                payload.mission_description,
                proposal.priority,
                payload.tasks,
            )
        elif proposal.type == "hire":
            store.pending_hire_role = payload.role
            store.emit("hire_requested")
            store.notify(f"Approved hiring a {payload.role}. Complete the hire to add them.", "info")
        elif proposal.type == "tech":
            purchase_upgrade(store, payload.upgrade_id)

    logger.info("Approved proposal %s (%s)", proposal_id, proposal.type)
    return proposal


def reject_proposal(store, proposal_id: str) -> Proposal | None:
    """Reject a pending proposal, keeping the record."""
    with store.transaction():
        proposal = store.get_proposal(proposal_id)
        if not proposal or proposal.status != "pending":
            return None
        proposal = store.update_proposal(proposal_id, status="rejected")
    logger.info("Rejected proposal %s", proposal_id)
    return proposal


def dismiss_proposal(store, proposal_id: str) -> Proposal | None:
    """Delete a pending proposal without acting on it."""
    with store.transaction():
        proposal = store.get_proposal(proposal_id)
        if not proposal or proposal.status != "pending":
            return None
        del store.proposals[proposal_id]
        store.emit("proposal", proposal_id)
    logger.info("Dismissed proposal %s", proposal_id)
    return proposal


def toggle_advisor(store) -> bool:
    with store.transaction():
        store.advisor_enabled = not store.advisor_enabled
        store.emit("advisor")
        return store.advisor_enabled
