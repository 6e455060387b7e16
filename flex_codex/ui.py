"""
User-interaction seam. Workflows only ever talk to a `UI`: modal alerts,
free-text prompts (None on cancel) and transient toasts.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

LOGGER = logging.getLogger(__name__)


class UI(Protocol):
    def alert(self, title: str, message: str) -> None:
        ...

    def prompt(self, title: str, message: str) -> Optional[str]:
        ...

    def toast(self, message: str, title: str = "") -> None:
        ...


class ConsoleUI:
    """Terminal implementation: alerts print, prompts read stdin, toasts go to the log."""

    def alert(self, title: str, message: str) -> None:
        print(f"\n{title}\n{message}\n")

    def prompt(self, title: str, message: str) -> Optional[str]:
        print(f"\n{title}\n{message}")
        try:
            return input("> ")
        except EOFError:
            return None

    def toast(self, message: str, title: str = "") -> None:
        LOGGER.info("%s%s", f"[{title}] " if title else "", message)


def confirm_deletion(ui: UI, title: str, names: Sequence[str], noun: str = "item") -> bool:
    """
    Ask the player to type DELETE (one row) or DELETE ALL (several) before a
    destructive action. Blank names are summarized as unnamed rows.
    """

    named = [name for name in names if name]
    unnamed = len(names) - len(named)
    message = "⚠️ Are you sure you wish to permanently DELETE the following?\n"
    if named:
        message += "\n" + "\n".join(f"- {name}" for name in named) + "\n"
    if unnamed:
        message += f"\n- {unnamed} unnamed/blank {noun} row{'s' if unnamed > 1 else ''}\n"
    message += "\nThis action cannot be undone."

    if len(names) > 1:
        message += "\n\nTo confirm, please type DELETE ALL below."
        keyword = "delete all"
    else:
        message += "\n\nTo confirm, please type DELETE below."
        keyword = "delete"

    answer = ui.prompt(title, message)
    return answer is not None and answer.strip().lower() == keyword
