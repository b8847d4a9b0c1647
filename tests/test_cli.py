"""Tests for the CLI."""

import json
import os
import re
import tempfile
from pathlib import Path

import pytest
from click.testing import CliRunner

from founder_engine.cli import main


@pytest.fixture
def cli_env():
    """Set up a temp environment for CLI testing."""
    with tempfile.TemporaryDirectory() as tmp:
        env = {
            "FE_DB_PATH": str(Path(tmp) / "test.db"),
            "FE_AI_ENABLED": "0",
            "FE_STARTING_FUNDS": "100000",
            "FE_EVALUATION_INTERVAL": "120",
        }
        old_env = {}
        for k, v in env.items():
            old_env[k] = os.environ.get(k)
            os.environ[k] = v

        yield CliRunner()

        for k, v in old_env.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


class TestCLI:
    def test_help(self, cli_env):
        result = cli_env.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Founder Engine" in result.output

    def test_hire_assign_and_tick_flow(self, cli_env):
        runner = cli_env

        result = runner.invoke(main, ["team", "hire", "engineer", "--name", "Ada Chen"])
        assert result.exit_code == 0
        assert "Hired Ada Chen (emp-1) as engineer" in result.output
        assert "$90,000" in result.output

        result = runner.invoke(main, ["task", "add", "Build login page", "-p", "high", "-e", "2"])
        assert result.exit_code == 0
        assert "Created task: build-login-page" in result.output

        result = runner.invoke(main, ["task", "assign", "build-login-page", "emp-1"])
        assert result.exit_code == 0
        assert "Task 'build-login-page' assigned to emp-1" in result.output

        result = runner.invoke(main, ["tick", "-n", "2"])
        assert result.exit_code == 0
        assert "Tick 2" in result.output

        result = runner.invoke(main, ["task", "show", "build-login-page"])
        assert result.exit_code == 0
        assert "Status: review" in result.output
        assert "Progress: 2/2" in result.output

        result = runner.invoke(main, ["task", "status", "build-login-page", "done"])
        assert result.exit_code == 0

        result = runner.invoke(main, ["state", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["tick"] == 2
        assert data["funds"] == 90_000
        assert data["stats"]["tasks_completed"] == 1

        result = runner.invoke(main, ["team", "list"])
        assert "emp-1: Ada Chen (engineer, idle)" in result.output

    def test_task_list(self, cli_env):
        cli_env.invoke(main, ["task", "add", "Fix crash", "-t", "bug", "-p", "critical"])
        cli_env.invoke(main, ["task", "add", "Write docs", "-p", "low"])
        result = cli_env.invoke(main, ["task", "list"])
        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if line.strip()]
        assert "fix-crash" in lines[0]
        assert "write-docs" in lines[1]

    def test_invalid_task_fields(self, cli_env):
        result = cli_env.invoke(main, ["task", "add", "Nope", "-t", "research"])
        assert result.exit_code == 1

    def test_show_missing_task(self, cli_env):
        result = cli_env.invoke(main, ["task", "show", "ghost"])
        assert result.exit_code == 1
        assert "Task not found" in result.output

    def test_hire_without_funds(self, cli_env):
        result = cli_env.invoke(main, ["team", "hire", "engineer"], env={"FE_STARTING_FUNDS": "5000"})
        assert result.exit_code == 1
        assert "Not enough money" in result.output

    def test_busy_employee(self, cli_env):
        cli_env.invoke(main, ["team", "hire", "engineer"])
        cli_env.invoke(main, ["task", "add", "First"])
        cli_env.invoke(main, ["task", "add", "Second"])
        cli_env.invoke(main, ["task", "assign", "first", "emp-1"])
        result = cli_env.invoke(main, ["task", "assign", "second", "emp-1"])
        assert result.exit_code == 1

    def test_pause_stops_ticks(self, cli_env):
        result = cli_env.invoke(main, ["pause"])
        assert "Paused" in result.output
        result = cli_env.invoke(main, ["tick"])
        assert "paused at tick 0" in result.output

    def test_queue_process_requires_ai(self, cli_env):
        result = cli_env.invoke(main, ["queue", "process"])
        assert result.exit_code == 1
        assert "disabled" in result.output

    def test_queued_ai_work(self, cli_env):
        env = {"FE_AI_ENABLED": "1"}
        cli_env.invoke(main, ["team", "hire", "engineer"], env=env)
        cli_env.invoke(main, ["task", "add", "Build API"], env=env)
        result = cli_env.invoke(main, ["task", "assign", "build-api", "emp-1"], env=env)
        assert "Queued for AI work" in result.output

        result = cli_env.invoke(main, ["queue", "list"], env=env)
        assert "task=build-api" in result.output
        assert "status=queued" in result.output


class TestMissionCLI:
    def test_mission_flow(self, cli_env):
        runner = cli_env
        result = runner.invoke(
            main, ["mission", "create", "Landing Page", "--task", "Hero section", "--task", "Pricing table"]
        )
        assert result.exit_code == 0
        assert "Created mission: mission-1" in result.output
        assert "Branch: mission/landing-page" in result.output
        assert "Task: hero-section" in result.output

        result = runner.invoke(main, ["mission", "start", "mission-1"])
        assert result.exit_code == 0

        result = runner.invoke(main, ["mission", "status", "mission-1", "active"])
        assert result.exit_code == 1

        result = runner.invoke(main, ["mission", "pr", "mission-1", "https://github.com/acme/app/pull/3", "3"])
        assert result.exit_code == 0
        assert "(review)" in result.output

        result = runner.invoke(main, ["mission", "complete", "mission-1"])
        assert result.exit_code == 0

        result = runner.invoke(main, ["mission", "list"])
        assert "mission-1: Landing Page (completed, 0%)" in result.output

    def test_epic_flow(self, cli_env):
        cli_env.invoke(main, ["mission", "create", "Landing Page"])
        result = cli_env.invoke(main, ["epic", "create", "Launch", "--phase", "growth"])
        assert "Created epic: epic-1 (growth)" in result.output
        result = cli_env.invoke(main, ["epic", "add-mission", "epic-1", "mission-1"])
        assert result.exit_code == 0
        result = cli_env.invoke(main, ["epic", "list"])
        assert "missions=1" in result.output


class TestAdvisorCLI:
    def test_evaluate_and_approve(self, cli_env):
        runner = cli_env
        runner.invoke(main, ["team", "hire", "engineer"])

        result = runner.invoke(main, ["pm", "evaluate"])
        assert result.exit_code == 0
        assert "Phase: mvp" in result.output
        assert "New mission proposal proposal-1: Start mission: Core Database Setup" in result.output

        result = runner.invoke(main, ["pm", "approve", "proposal-1"])
        assert result.exit_code == 0
        assert "Approved" in result.output

        result = runner.invoke(main, ["pm", "approve", "proposal-1"])
        assert result.exit_code == 1

        result = runner.invoke(main, ["mission", "list"])
        assert "Core Database Setup (planning, 0%)" in result.output

        result = runner.invoke(main, ["pm", "thoughts"])
        assert "decision" in result.output

    def test_hire_proposal_hint(self, cli_env):
        cli_env.invoke(main, ["team", "hire", "engineer"])
        cli_env.invoke(main, ["pm", "evaluate"])
        result = cli_env.invoke(main, ["pm", "approve", "proposal-2"])
        assert "fe team hire designer" in result.output

    def test_reject_and_list_all(self, cli_env):
        cli_env.invoke(main, ["team", "hire", "engineer"])
        cli_env.invoke(main, ["pm", "evaluate"])
        cli_env.invoke(main, ["pm", "reject", "proposal-1"])
        result = cli_env.invoke(main, ["pm", "proposals"])
        assert "proposal-1" not in result.output
        result = cli_env.invoke(main, ["pm", "proposals", "--all"])
        assert "(rejected)" in result.output


class TestUpgradeCLI:
    def test_buy(self, cli_env):
        result = cli_env.invoke(main, ["upgrade", "buy", "free-snacks"])
        assert result.exit_code == 0
        assert "Purchased Free Snacks. Funds left: $98,000" in result.output

        result = cli_env.invoke(main, ["upgrade", "list"])
        assert "free-snacks: Free Snacks [culture] owned" in result.output

    def test_buy_locked(self, cli_env):
        result = cli_env.invoke(main, ["upgrade", "buy", "testing-suite"])
        assert result.exit_code == 1
        assert "not unlocked" in result.output

    def test_notifications(self, cli_env):
        cli_env.invoke(main, ["upgrade", "buy", "free-snacks"])
        result = cli_env.invoke(main, ["notifications", "--mark-read"])
        assert "Purchased: Free Snacks!" in result.output
        assert "*[0]" in result.output
        result = cli_env.invoke(main, ["notifications"])
        assert "*[0]" not in result.output


class TestAutopilotCLI:
    def test_autopilot_hires_on_tick(self, cli_env):
        result = cli_env.invoke(main, ["autopilot"])
        assert result.exit_code == 0
        assert "Autopilot on" in result.output

        cli_env.invoke(main, ["tick"])
        result = cli_env.invoke(main, ["state"])
        assert "[autopilot]" in result.output
        assert "Team: 1" in result.output

        result = cli_env.invoke(main, ["autopilot", "--off"])
        assert "Autopilot off" in result.output

    def test_quick_assign(self, cli_env):
        cli_env.invoke(main, ["team", "hire", "engineer", "--name", "Ada Chen"])
        cli_env.invoke(main, ["team", "hire", "designer", "--name", "Bo Lee"])
        cli_env.invoke(main, ["task", "add", "Color palette", "-t", "design"])

        result = cli_env.invoke(main, ["task", "quick-assign", "color-palette"])
        assert result.exit_code == 0
        assert "assigned to emp-2 (Bo Lee, designer)" in result.output

        cli_env.invoke(main, ["task", "add", "Another palette", "-t", "design"])
        cli_env.invoke(main, ["task", "assign", "another-palette", "emp-1"])
        cli_env.invoke(main, ["task", "add", "Third palette", "-t", "design"])
        result = cli_env.invoke(main, ["task", "quick-assign", "third-palette"])
        assert result.exit_code == 1
        assert "No idle employee available" in result.output

    def test_pm_generate(self, cli_env):
        result = cli_env.invoke(main, ["pm", "generate"])
        assert result.exit_code == 1
        assert "No available PMs" in result.output

        cli_env.invoke(main, ["team", "hire", "pm"])
        result = cli_env.invoke(main, ["pm", "generate"])
        assert result.exit_code == 0
        assert len(re.findall(r"^  [\w-]+: .+ \(\w+, \w+\)$", result.output, re.MULTILINE)) == 2
