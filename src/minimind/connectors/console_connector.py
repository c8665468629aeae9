# src/minimind/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import format_task
from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..llm.client import friendly_llm_error_message
from ..voice.speech_processor import add_voice_tasks

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleNotifier:
    """Notifier port that prints fired reminders into the console."""

    async def notify(self, *, title: str, body: str) -> None:
        _print_ts(f"[REMINDER] {title}: {body}")


def handle_line(state: AppState, line: str, emit=None) -> str | None:
    """
    One console input line -> reply text.

    Slash commands go to the registry; any other text is treated as a
    voice transcript and turned into tasks. Returns None for blank input.
    """
    line = line.strip()
    if not line:
        return None

    reply = command_registry.handle(state, line, emit=emit)
    if reply is not None:
        return reply

    try:
        created = add_voice_tasks(state.store, state.llm, line)
    except RuntimeError as e:
        msg = friendly_llm_error_message(e)
        logger.info("Voice capture failed: %s", msg)
        return f"[VOICE] {msg}"

    lines = [f"[VOICE] Created {len(created)} task(s):"]
    lines.extend(f"  {format_task(state, t)}" for t in created)
    return "\n".join(lines)


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type a task or a command. Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (LLM calls).
        _print_ts(text)

    while True:
        try:
            user_input = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = handle_line(state, user_input, emit=emit)
        except Exception:
            logger.exception("Console handler crashed.")
            reply = "Internal error while handling input."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
