# src/eduplan_reminders/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import TYPE_CHECKING, TextIO

from ..tasks.notification_dispatcher import Toast, ToastVariant

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)

_ICON_TEXT = {
    "alert-triangle": "[!]",
    "calendar": "[cal]",
    "bell": "[bell]",
}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


class ConsoleNotificationSink:
    """NotificationSink that prints toasts as timestamped console lines."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def show(self, toast: Toast) -> None:
        icon = _ICON_TEXT.get(toast.icon, "[*]")
        prefix = "ALERT " if toast.variant == ToastVariant.DESTRUCTIVE else ""
        line = f"[{_ts_local()}] {icon} {prefix}{toast.title} - {toast.description}"
        stream = self._stream or sys.stdout
        print(line, file=stream, flush=True)


def run_console_loop(state: AppState) -> None:
    # Imported here: commands import the state/runner side of the app.
    from ..cli.commands import registry as command_registry

    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /login <user_id> to start reminders, /help for commands, /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> ").strip()
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
            cmd_response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is None:
            cmd_response = "Not a command. Use /help to list available commands."
        _print_ts(cmd_response)

    logger.info("Console connector finished.")
