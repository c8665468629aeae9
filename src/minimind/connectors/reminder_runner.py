# src/minimind/connectors/reminder_runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.ports import Notifier
from ..core.state import AppState

logger = logging.getLogger(__name__)


@dataclass
class ReminderBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal reminder loop stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _run_reminders(state: AppState, notifier: Notifier, stop_event: asyncio.Event) -> None:
    poll = asyncio.create_task(
        state.reminders.run(notifier, interval_seconds=state.settings.reminder_poll_seconds)
    )
    try:
        await stop_event.wait()
    finally:
        poll.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await poll


def start_reminders_in_background(state: AppState, notifier: Notifier) -> ReminderBackgroundRunner | None:
    """
    Run the reminder polling loop on its own event loop in a daemon thread,
    next to the blocking console REPL.
    """
    if not state.settings.reminders_enabled:
        logger.info("Reminders disabled, not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_reminders(state, notifier, stop_event))
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="minimind-reminders", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Reminder thread did not initialize properly.")
        return None

    logger.info("Reminder background thread started.")
    return ReminderBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
