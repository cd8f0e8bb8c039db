"""Help text aggregation for every command the bot understands."""

from __future__ import annotations

import html
from typing import Iterable, List, Optional, Sequence, Tuple

from core.models import Notification

HelpItem = Tuple[str, str]

GREETING = "Hi, I'm a friendly robot and provide these options:"

GENERAL_ITEMS: Tuple[HelpItem, ...] = (
    ("help", "Print this help"),
    ("leave", "Leave the current room"),
    ("shutdown", "Shutdown the bot completely"),
)


def prepend_prefix(prefix: Optional[str], items: Iterable[HelpItem]) -> List[HelpItem]:
    prefix = prefix or ""
    return [(f"{prefix}{command}", description) for command, description in items]


def format_help(items: Sequence[HelpItem]) -> Notification:
    plain_lines = [GREETING]
    html_lines = [f"<strong>{html.escape(GREETING)}</strong>"]
    for command, description in items:
        plain_lines.append(f"{command:<35} - {description}")
        html_lines.append(f"<code>{html.escape(command)}</code> - {html.escape(description)}")
    return Notification(plain="\n".join(plain_lines), html="\n".join(html_lines))
