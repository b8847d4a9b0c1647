"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    db_path: Path = field(default_factory=lambda: Path.home() / ".founder_engine" / "state.db")
    ai_enabled: bool = False
    generation_model: str = "sonnet"
    claude_binary: str = "claude"
    starting_funds: int = 100_000
    tick_interval: float = 1.0
    queue_interval: float = 2.0
    evaluation_interval: int = 120
    slack_bot_token: str | None = None
    slack_channel: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if db := os.environ.get("FE_DB_PATH"):
            config.db_path = Path(db)

        if enabled := os.environ.get("FE_AI_ENABLED"):
            config.ai_enabled = _env_flag(enabled)

        if model := os.environ.get("FE_GENERATION_MODEL"):
            config.generation_model = model

        if binary := os.environ.get("FE_CLAUDE_BINARY"):
            config.claude_binary = binary

        if funds := os.environ.get("FE_STARTING_FUNDS"):
            config.starting_funds = int(funds)

        if interval := os.environ.get("FE_TICK_INTERVAL"):
            config.tick_interval = float(interval)

        if interval := os.environ.get("FE_QUEUE_INTERVAL"):
            config.queue_interval = float(interval)

        if interval := os.environ.get("FE_EVALUATION_INTERVAL"):
            config.evaluation_interval = int(interval)

        config.slack_bot_token = os.environ.get("SLACK_BOT_TOKEN")
        config.slack_channel = os.environ.get("FE_SLACK_CHANNEL")

        if level := os.environ.get("FE_LOG_LEVEL"):
            config.log_level = level.upper()

        return config


def get_config() -> Config:
    return Config.from_env()
