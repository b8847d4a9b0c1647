"""Data models for the founder engine simulation."""

from dataclasses import dataclass, field

TASK_TYPES = ("feature", "bug", "design", "marketing", "infrastructure")
TASK_STATUSES = ("backlog", "todo", "in_progress", "review", "done")
PRIORITIES = ("low", "medium", "high", "critical")

EMPLOYEE_ROLES = ("engineer", "designer", "pm", "marketer")
EMPLOYEE_STATUSES = ("idle", "working", "blocked", "on_break")

MISSION_STATUSES = ("planning", "active", "review", "merging", "completed", "abandoned")
EPIC_STATUSES = ("planned", "active", "completed", "blocked")
PRODUCT_PHASES = ("mvp", "growth", "scale", "mature")

PROPOSAL_TYPES = ("mission", "hire", "tech")
PROPOSAL_STATUSES = ("pending", "approved", "rejected")

NOTIFICATION_LEVELS = ("info", "success", "warning", "error")


@dataclass
class Artifact:
    id: str
    type: str  # code | design | copy | document
    title: str
    content: str
    created_by: str
    created_at: int = 0
    language: str | None = None
    file_path: str | None = None
    model_used: str | None = None


@dataclass
class Task:
    id: str
    title: str
    description: str = ""
    type: str = "feature"
    status: str = "backlog"
    priority: str = "medium"
    assignee_id: str | None = None
    estimated_ticks: int = 1
    progress_ticks: int = 0
    created_at: int = 0
    completed_at: int | None = None
    artifacts: list[Artifact] = field(default_factory=list)
    ai_work_started: bool = False
    ai_work_completed: bool = False


@dataclass
class MemoryRecord:
    id: str
    kind: str = "task"  # task | learning | preference | context
    content: str = ""
    importance: float = 0.5
    created_at: int = 0
    task_id: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class Employee:
    id: str
    name: str
    role: str
    status: str = "idle"
    salary: int = 0
    current_task_id: str | None = None
    hired_at: int = 0
    memory: list[MemoryRecord] = field(default_factory=list)
    tasks_completed: int = 0
    specializations: list[str] = field(default_factory=list)


@dataclass
class AIWorkItem:
    id: str
    task_id: str
    employee_id: str
    priority: int
    added_at: int = 0
    status: str = "queued"  # queued | in_progress
    retries: int = 0


@dataclass
class MissionCommit:
    sha: str
    message: str
    timestamp: int = 0
    author: str | None = None
    files_changed: list[str] = field(default_factory=list)


@dataclass
class Mission:
    id: str
    name: str
    description: str = ""
    priority: str = "medium"
    status: str = "planning"
    branch_name: str = ""
    base_branch: str = "main"
    task_ids: list[str] = field(default_factory=list)
    created_at: int = 0
    started_at: int | None = None
    completed_at: int | None = None
    commits: list[MissionCommit] = field(default_factory=list)
    pull_request_url: str | None = None
    pull_request_number: int | None = None


@dataclass
class Epic:
    id: str
    name: str
    description: str = ""
    status: str = "planned"
    priority: str = "medium"
    phase: str = "mvp"
    mission_ids: list[str] = field(default_factory=list)
    created_at: int = 0
    completed_at: int | None = None


@dataclass
class TaskDefinition:
    title: str
    type: str = "feature"
    estimated_ticks: int = 100
    description: str = ""
    priority: str | None = None


@dataclass
class MissionPayload:
    mission_name: str
    mission_description: str = ""
    tasks: list[TaskDefinition] = field(default_factory=list)


@dataclass
class HirePayload:
    role: str


@dataclass
class TechPayload:
    upgrade_id: str


PAYLOAD_TYPES = {
    "mission": MissionPayload,
    "hire": HirePayload,
    "tech": TechPayload,
}


@dataclass
class Proposal:
    id: str
    type: str
    title: str
    payload: MissionPayload | HirePayload | TechPayload
    description: str = ""
    reasoning: str = ""
    priority: str = "medium"
    created_at: int = 0
    status: str = "pending"

    def __post_init__(self):
        expected = PAYLOAD_TYPES.get(self.type)
        if expected is None:
            raise ValueError(f"Unknown proposal type: {self.type}")
        if not isinstance(self.payload, expected):
            raise ValueError(
                f"Proposal '{self.id}' of type {self.type} needs a {expected.__name__} payload"
            )


@dataclass
class Thought:
    id: str
    kind: str  # observation | priority | decision | action
    message: str
    tick: int = 0


@dataclass
class ProductState:
    phase: str = "mvp"
    has_auth: bool = False
    has_database: bool = False
    has_api: bool = False
    has_ui: bool = False
    has_landing: bool = False
    has_pricing: bool = False
    has_onboarding: bool = False
    has_analytics: bool = False
    has_testing: bool = False
    has_ci: bool = False
    has_documentation: bool = False
    feature_count: int = 0
    bug_count: int = 0
    tech_debt_score: int = 0
    completion_ratio: float = 0.0
    elapsed_ticks: int = 0


@dataclass
class Upgrade:
    id: str
    name: str
    description: str
    category: str
    cost: int
    unlocked: bool = True
    purchased: bool = False
    requires: list[str] = field(default_factory=list)


@dataclass
class Notification:
    id: str
    message: str
    level: str = "info"
    tick: int = 0
    read: bool = False


@dataclass
class GameStats:
    tasks_completed: int = 0
    features_shipped: int = 0
    commits_created: int = 0
    lines_of_code_generated: int = 0
    total_expenses: int = 0


@dataclass
class ChangeEvent:
    kind: str
    entity_id: str | None = None
    tick: int = 0
