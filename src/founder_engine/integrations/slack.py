"""Slack Web API integration."""

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass

from slack_sdk.errors import SlackApiError

from founder_engine.db.models import ChangeEvent

logger = logging.getLogger(__name__)


class SlackError(Exception):
    """Raised when a Slack operation fails."""


@dataclass
class SlackMessage:
    channel: str
    ts: str
    text: str


def get_client(token: str | None):
    """Get a Slack WebClient. Returns None if no token provided."""
    if not token:
        return None
    from slack_sdk import WebClient
    return WebClient(token=token)


def send_message(
    token: str | None,
    channel: str,
    text: str,
    blocks: list[dict] | None = None,
) -> SlackMessage:
    """Send a message to a Slack channel."""
    client = get_client(token)
    if not client:
        raise SlackError("Slack not configured: SLACK_BOT_TOKEN not set")

    response = client.chat_postMessage(
        channel=channel,
        text=text,
        blocks=blocks,
    )

    return SlackMessage(
        channel=response["channel"],
        ts=response["ts"],
        text=text,
    )


LEVEL_EMOJI = {
    "info": ":information_source:",
    "success": ":white_check_mark:",
    "warning": ":warning:",
    "error": ":red_circle:",
}


def format_notification(message: str, level: str, tick: int) -> list[dict]:
    """Format an engine notification as Slack blocks."""
    emoji = LEVEL_EMOJI.get(level, ":grey_question:")
    return [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"{emoji} {message}\n_tick {tick}_"},
        }
    ]


def format_status_update(store) -> list[dict]:
    """Format a company status summary as Slack blocks."""
    counts = {"backlog": 0, "todo": 0, "in_progress": 0, "review": 0, "done": 0}
    for t in store.tasks.values():
        counts[t.status] = counts.get(t.status, 0) + 1

    total = sum(counts.values())
    progress = counts["done"] / total * 100 if total > 0 else 0
    working = sum(1 for e in store.employees.values() if e.status == "working")
    active = store.get_mission(store.active_mission_id) if store.active_mission_id else None

    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f":bar_chart: *Company Status* (tick {store.tick})\n"
                    f":moneybag: Funds: ${store.funds:,} | "
                    f":busts_in_silhouette: Team: {working}/{len(store.employees)} working\n"
                    f":white_check_mark: Done: {counts['done']} | "
                    f":eyes: Review: {counts['review']} | "
                    f":large_blue_circle: In Progress: {counts['in_progress']} | "
                    f":white_circle: Todo/Backlog: {counts['todo'] + counts['backlog']}\n"
                    f"Progress: {progress:.0f}% ({counts['done']}/{total})"
                    + (f"\n:rocket: Mission: *{active.name}* (`{active.branch_name}`)" if active else "")
                ),
            },
        }
    ]


class SlackNotifier:
    """Forwards selected store notifications to a Slack channel.

    Store events only enqueue the message; a sender thread makes the blocking
    Web API calls, so a slow Slack never holds the store lock or the event loop.
    Delivery failures are logged and dropped. ``detach`` sends whatever is
    still queued before stopping the thread.
    """

    def __init__(
        self,
        token: str | None,
        channel: str,
        levels: tuple[str, ...] = ("success", "warning", "error"),
    ):
        self.token = token
        self.channel = channel
        self.levels = levels
        self._store = None
        self._unsubscribe: Callable[[], None] | None = None
        self._outbox: queue.Queue = queue.Queue()
        self._sender: threading.Thread | None = None

    def attach(self, store):
        self.detach()
        self._store = store
        self._unsubscribe = store.subscribe(self._on_event)
        self._sender = threading.Thread(target=self._run_sender, name="fe-slack", daemon=True)
        self._sender.start()

    def detach(self):
        if self._unsubscribe:
            self._unsubscribe()
        self._unsubscribe = None
        self._store = None
        if self._sender:
            self._outbox.put(None)
            self._sender.join(timeout=30)
            self._sender = None

    def _on_event(self, event: ChangeEvent):
        if event.kind != "notification" or not self._store:
            return
        note = self._store.get_notification(event.entity_id)
        if not note or note.level not in self.levels:
            return
        self._outbox.put((note.message, note.level, note.tick))

    def _run_sender(self):
        while True:
            item = self._outbox.get()
            if item is None:
                return
            message, level, tick = item
            try:
                send_message(
                    self.token,
                    self.channel,
                    message,
                    blocks=format_notification(message, level, tick),
                )
            except (SlackError, SlackApiError) as e:
                logger.warning("Slack forward failed: %s", e)
            except Exception:
                logger.exception("Unexpected error forwarding to Slack")
