"""Top-level chat command routing.

``help``, ``leave`` and ``shutdown`` are whole-message commands owned by the
bot itself; every other message is offered to each domain subscriber, which
picks out the lines meant for it.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from core.domains import Subscriber
from core.help import GENERAL_ITEMS, format_help, prepend_prefix
from core.models import ChatMessage, Notification
from core.ports import ChatSenderPort

LOGGER = logging.getLogger(__name__)

BYE = Notification(plain="Bye!", html="Bye!")


def extract_command(body: str, prefix: str) -> Optional[str]:
    """Return the message without its prefix, or ``None`` if it lacks one."""

    body = body.strip()
    if not body.startswith(prefix):
        return None
    return body[len(prefix):].strip()


class CommandRouter:
    """Fan an incoming chat message out to the bot commands and subscribers."""

    def __init__(
        self,
        prefix: Optional[str],
        subscribers: Iterable[Subscriber],
        sender: ChatSenderPort,
        leave: Callable[[str], None],
        shutdown: Callable[[], None],
    ) -> None:
        self._prefix = prefix or ""
        self._subscribers = list(subscribers)
        self._sender = sender
        self._leave = leave
        self._shutdown = shutdown

    def help_message(self) -> Notification:
        items = prepend_prefix(self._prefix, GENERAL_ITEMS)
        seen = set()
        for subscriber in self._subscribers:
            # Several backends share a domain's help text; show it once.
            if subscriber.definition.subtype in seen:
                continue
            seen.add(subscriber.definition.subtype)
            items.extend(subscriber.definition.help_items(self._prefix))
        return format_help(items)

    def handle(self, message: ChatMessage) -> None:
        command = extract_command(message.body, self._prefix)
        if command == "help":
            self._sender.send(message.room, self.help_message())
            return
        if command == "leave":
            LOGGER.info("Leaving %s on request", message.room)
            self._sender.send(message.room, BYE)
            self._leave(message.room)
            return
        if command == "shutdown":
            LOGGER.info("Shutdown requested from %s", message.room)
            self._sender.send(message.room, BYE)
            self._shutdown()
            return

        for subscriber in self._subscribers:
            subscriber.handle_message(message)
