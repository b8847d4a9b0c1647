"""Tests for Slack formatting and notification forwarding."""

import threading

import pytest

from founder_engine.core import employees as employees_mod
from founder_engine.core import missions as missions_mod
from founder_engine.core import tasks as tasks_mod
from founder_engine.core.store import EntityStore
from founder_engine.integrations import slack as slack_mod


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def sent(monkeypatch):
    messages = []

    def fake_send(token, channel, text, blocks=None):
        messages.append((channel, text, blocks))
        return slack_mod.SlackMessage(channel=channel, ts="1.0", text=text)

    monkeypatch.setattr(slack_mod, "send_message", fake_send)
    return messages


class TestFormatting:
    def test_status_update(self, store):
        employees_mod.hire_employee(store, "engineer")
        tasks_mod.create_task(store, "Done thing", status="done")
        tasks_mod.create_task(store, "Open thing")
        mission = missions_mod.create_mission(store, "Landing Page")
        missions_mod.start_mission(store, mission.id)

        text = slack_mod.format_status_update(store)[0]["text"]["text"]

        assert "Funds: $90,000" in text
        assert "Progress: 50% (1/2)" in text
        assert "`mission/landing-page`" in text

    def test_notification_block(self):
        [block] = slack_mod.format_notification("Hired Ada", "success", 12)
        assert block["text"]["text"].startswith(":white_check_mark: Hired Ada")
        assert "_tick 12_" in block["text"]["text"]

    def test_send_without_token(self):
        with pytest.raises(slack_mod.SlackError):
            slack_mod.send_message(None, "#general", "hi")


class TestNotifier:
    def test_forwards_selected_levels(self, store, sent):
        notifier = slack_mod.SlackNotifier("xoxb-test", "#ops")
        notifier.attach(store)

        store.notify("Something routine", "info")
        store.notify("Mission shipped: Launch", "success")
        notifier.detach()

        assert [(c, t) for c, t, _ in sent] == [("#ops", "Mission shipped: Launch")]

    def test_detach_stops_forwarding(self, store, sent):
        notifier = slack_mod.SlackNotifier("xoxb-test", "#ops")
        notifier.attach(store)
        notifier.detach()
        store.notify("Too late", "error")
        assert sent == []

    def test_delivery_failure_is_logged(self, store, monkeypatch, caplog):
        def failing_send(*args, **kwargs):
            raise slack_mod.SlackError("channel_not_found")

        monkeypatch.setattr(slack_mod, "send_message", failing_send)
        notifier = slack_mod.SlackNotifier("xoxb-test", "#ops")
        notifier.attach(store)

        note = store.notify("Not enough money", "error")
        notifier.detach()

        assert store.get_notification(note.id) is not None
        assert "channel_not_found" in caplog.text

    def test_delivery_runs_off_the_calling_thread(self, store, monkeypatch):
        threads = []

        def recording_send(token, channel, text, blocks=None):
            threads.append(threading.current_thread().name)
            return slack_mod.SlackMessage(channel=channel, ts="1.0", text=text)

        monkeypatch.setattr(slack_mod, "send_message", recording_send)
        notifier = slack_mod.SlackNotifier("xoxb-test", "#ops")
        notifier.attach(store)

        store.notify("Hired Ada", "success")
        store.notify("Low funds", "warning")
        notifier.detach()

        assert threads == ["fe-slack", "fe-slack"]
