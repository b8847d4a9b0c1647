"""Clock driver: unit task progress per tick and the background loops."""

import asyncio
import logging
import threading
from collections.abc import Callable

from founder_engine.core.advisor import maybe_evaluate
from founder_engine.core.ai_queue import process_one
from founder_engine.core.autopilot import run_autopilot
from founder_engine.integrations.generation import Generator

logger = logging.getLogger(__name__)


def tick(store) -> int:
    """Advance the simulation by one tick. Returns the tick counter.

    No-op while paused. Every in-progress task with a live assignee gains one
    tick of progress; a task that reaches its estimate moves to review. The
    advisor and the autopilot get their turn after the counter advances.
    """
    with store.transaction():
        if store.paused:
            return store.tick
        store.tick += 1
        now = store.tick

        for task in list(store.tasks.values()):
            if task.status != "in_progress" or not task.assignee_id:
                continue
            if not store.get_employee(task.assignee_id):
                continue

            progress = min(task.progress_ticks + 1, task.estimated_ticks)
            if progress >= task.estimated_ticks:
                store.update_task(task.id, progress_ticks=task.estimated_ticks, status="review", completed_at=now)
                logger.info("Task %s ready for review at tick %d", task.id, now)
            else:
                store.update_task(task.id, progress_ticks=progress)

        store.emit("tick")
        maybe_evaluate(store)
        run_autopilot(store)
        return now


def toggle_pause(store) -> bool:
    """Flip the paused flag. Returns the new value."""
    return set_paused(store, not store.paused)


def set_paused(store, paused: bool) -> bool:
    with store.transaction():
        if store.paused != paused:
            store.paused = paused
            store.emit("paused")
            logger.info("Simulation %s at tick %d", "paused" if paused else "resumed", store.tick)
        return store.paused


class SimulationRunner:
    """Background threads driving the clock and the AI work queue.

    The clock thread calls ``tick`` every ``tick_interval`` seconds. The queue
    thread owns an asyncio loop and calls ``process_one`` every
    ``queue_interval`` seconds, so a slow generation call never delays ticks.
    """

    def __init__(
        self,
        store,
        generator: Generator | None = None,
        tick_interval: float = 1.0,
        queue_interval: float = 2.0,
        on_tick: Callable[[int], None] | None = None,
        model: str | None = None,
    ):
        self.store = store
        self.generator = generator
        self.tick_interval = tick_interval
        self.queue_interval = queue_interval
        self.on_tick = on_tick
        self.model = model
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self):
        """Start the clock and queue threads."""
        if self.running:
            return
        self._stop_event.clear()
        self._threads = [threading.Thread(target=self._run_clock, name="fe-clock", daemon=True)]
        if self.generator is not None:
            self._threads.append(
                threading.Thread(target=self._run_queue, name="fe-ai-queue", daemon=True)
            )
        for thread in self._threads:
            thread.start()
        logger.info("Simulation runner started (%d thread(s))", len(self._threads))

    def stop(self):
        """Signal both threads to stop and wait for them."""
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=10)
        self._threads = []
        logger.info("Simulation runner stopped")

    def _run_clock(self):
        while not self._stop_event.is_set():
            try:
                now = tick(self.store)
                if self.on_tick:
                    self.on_tick(now)
            except Exception:
                logger.exception("Error in clock loop")
            self._stop_event.wait(self.tick_interval)

    def _run_queue(self):
        loop = asyncio.new_event_loop()
        try:
            while not self._stop_event.is_set():
                try:
                    loop.run_until_complete(process_one(self.store, self.generator, self.model))
                except Exception:
                    logger.exception("Error in AI queue loop")
                self._stop_event.wait(self.queue_interval)
        finally:
            loop.close()
