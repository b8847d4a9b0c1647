"""Artifact generation through the Claude CLI.

The engine only depends on the ``Generator`` protocol; ``ClaudeCliGenerator``
is the production implementation and shells out to ``claude -p`` the same way
agents are launched elsewhere, reading a JSON envelope from stdout.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

from founder_engine.db.models import TaskDefinition

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when the generation provider fails or returns unusable output."""


@dataclass
class GenerationRequest:
    task_id: str
    task_title: str
    task_description: str
    task_type: str
    role: str
    project_context: str = ""
    specializations: list[str] = field(default_factory=list)
    employee_context: str = ""
    existing_task_titles: list[str] = field(default_factory=list)
    model: str | None = None


@dataclass
class GeneratedFile:
    path: str
    content: str


@dataclass
class GenerationResult:
    code: str = ""
    files: list[GeneratedFile] = field(default_factory=list)
    description: str = ""
    css: str = ""
    headline: str = ""
    body: str = ""
    cta: str = ""
    tasks: list[TaskDefinition] = field(default_factory=list)
    model_used: str | None = None


class Generator(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResult: ...


# ── Prompt Construction ──────────────────────────────────────────────────────

_ROLE_INSTRUCTIONS = {
    "engineer": (
        "You are a senior software engineer. Implement the task.\n"
        'Respond with JSON: {"files": [{"path": "...", "content": "..."}], "code": "..."}'
    ),
    "designer": (
        "You are a product designer. Write a short design spec and the CSS for it.\n"
        'Respond with JSON: {"description": "...", "css": "..."}'
    ),
    "marketer": (
        "You are a startup marketer. Write launch copy for the task.\n"
        'Respond with JSON: {"headline": "...", "body": "...", "cta": "..."}'
    ),
    "pm": (
        "You are a product manager. Break the work into 2-5 follow-up tasks that do "
        "not duplicate existing ones.\n"
        'Respond with JSON: {"tasks": [{"title": "...", "description": "...", '
        '"type": "feature|bug|design|marketing|infrastructure", '
        '"priority": "low|medium|high|critical", "estimated_ticks": 100}]}'
    ),
}


def build_generation_prompt(request: GenerationRequest) -> str:
    """Build the prompt for one task, including the employee's experience."""
    parts = [f"# Task: {request.task_title}", f"Task ID: {request.task_id}"]
    parts.append(f"Type: {request.task_type}")
    if request.task_description:
        parts.append(f"\n## Description\n{request.task_description}")

    if request.project_context:
        parts.append(f"\n## Project Context\n{request.project_context}")

    if request.employee_context:
        parts.append(f"\n{request.employee_context}")
    elif request.specializations:
        parts.append(f"\nSpecializations: {', '.join(request.specializations)}")

    if request.role == "pm" and request.existing_task_titles:
        parts.append("\n## Existing Tasks")
        for title in request.existing_task_titles:
            parts.append(f"- {title}")

    parts.append(f"\n## Instructions\n{_ROLE_INSTRUCTIONS[request.role]}")
    parts.append("Output only the JSON object, no prose.")
    return "\n".join(parts)


# ── Result Parsing ───────────────────────────────────────────────────────────


def parse_result(text: str, model: str | None = None) -> GenerationResult:
    """Parse the JSON object embedded in a model response."""
    data = _extract_json(text)
    files = [
        GeneratedFile(path=str(f.get("path", "")), content=str(f.get("content", "")))
        for f in data.get("files") or []
        if isinstance(f, dict)
    ]
    tasks = []
    for t in data.get("tasks") or []:
        if not isinstance(t, dict) or not t.get("title"):
            continue
        tasks.append(
            TaskDefinition(
                title=str(t["title"]),
                description=str(t.get("description", "")),
                type=str(t.get("type", "feature")),
                priority=t.get("priority"),
                estimated_ticks=int(t.get("estimated_ticks") or t.get("estimatedTicks") or 100),
            )
        )
    code = str(data.get("code") or "")
    if not code and files:
        code = "\n\n".join(f"// {f.path}\n{f.content}" for f in files)
    return GenerationResult(
        code=code,
        files=files,
        description=str(data.get("description") or ""),
        css=str(data.get("css") or ""),
        headline=str(data.get("headline") or ""),
        body=str(data.get("body") or data.get("content") or ""),
        cta=str(data.get("cta") or ""),
        tasks=tasks,
        model_used=model,
    )


def _extract_json(text: str) -> dict:
    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", text, re.DOTALL)
    candidate = fenced.group(1) if fenced else text
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start == -1 or end <= start:
        raise GenerationError("No JSON object in generation output")
    try:
        data = json.loads(candidate[start:end + 1])
    except json.JSONDecodeError as e:
        raise GenerationError(f"Invalid JSON in generation output: {e}") from e
    if not isinstance(data, dict):
        raise GenerationError("Generation output is not a JSON object")
    return data


# ── Claude CLI ───────────────────────────────────────────────────────────────


class ClaudeCliGenerator:
    """Runs ``claude -p`` as a subprocess for every request."""

    def __init__(self, binary: str = "claude", model: str = "sonnet"):
        self.binary = binary
        self.model = model

    def build_command(self, prompt: str, model: str | None = None) -> list[str]:
        cmd = [self.binary, "-p", prompt, "--output-format", "json"]
        if model or self.model:
            cmd += ["--model", model or self.model]
        return cmd

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        prompt = build_generation_prompt(request)
        model = request.model or self.model
        cmd = self.build_command(prompt, model)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GenerationError(f"Could not start {self.binary}: {e}") from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise GenerationError(
                f"{self.binary} exited with {proc.returncode}: {stderr.decode(errors='replace')[:500]}"
            )

        output = stdout.decode(errors="replace")
        try:
            envelope = json.loads(output)
            text = envelope.get("result", output) if isinstance(envelope, dict) else output
            if isinstance(envelope, dict) and envelope.get("is_error"):
                raise GenerationError(f"Provider error: {str(text)[:500]}")
        except json.JSONDecodeError:
            text = output

        logger.debug("Generation for %s returned %d chars", request.task_id, len(text))
        return parse_result(str(text), model)
