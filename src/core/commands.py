"""Chat command parsing and execution (core domain).

A chat message may batch several commands, one per line. Each line is
classified on its own:

- no command prefix, or no URL for this domain: not for us, skipped
- ``list <subtype>``: reply with the room's subscriptions
- anything else containing ``<backend-domain>/<path>/``: a subscribe, or an
  unsubscribe when the line starts with ``unsub``

A bad line only produces an error reply; the remaining lines still run.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Type, TypeVar

from core.errors import BindingError, InternalError, KeyParseError
from core.keys import DomainKey
from core.models import ChatMessage, Notification
from core.notification_formatting import format_subscription_list
from core.ports import ChatSenderPort
from core.registry import SubscriptionRegistry

LOGGER = logging.getLogger(__name__)

K = TypeVar("K", bound=DomainKey)

LINE_LIST = "list"
LINE_CANDIDATE = "candidate"

UNSUB_TOKEN = "unsub"

INTERNAL_ERROR_REPLY = "Sorry, something went wrong on my side. Please try again later."


@dataclass(frozen=True)
class ParsedLine:
    """A line that is meant for this domain, with the command prefix removed."""

    kind: str
    remainder: str

    @property
    def is_unsubscribe(self) -> bool:
        return self.remainder.startswith(UNSUB_TOKEN)


class CommandParser:
    """Recognize the lines of a chat message that belong to one domain."""

    def __init__(self, prefix: str, backend_domain: str, url_path: str, subtype: str) -> None:
        self._prefix = prefix or ""
        self._url_fragment = f"{backend_domain}/{url_path}/"
        self._list_command = f"list {subtype}"

    def classify(self, line: str, prefixed: bool = True) -> Optional[ParsedLine]:
        """Return the parsed line, or ``None`` when it is not for this domain.

        With ``prefixed=False`` the command prefix is optional, which is how
        URLs from the config file are read.
        """

        line = line.strip()
        if line.startswith(self._prefix):
            remainder = line[len(self._prefix):].strip()
        elif prefixed:
            return None
        else:
            remainder = line
        if remainder.startswith(self._list_command):
            return ParsedLine(LINE_LIST, remainder)
        if self._url_fragment not in remainder:
            return None
        return ParsedLine(LINE_CANDIDATE, remainder)

    def parse(self, body: str, prefixed: bool = True) -> List[ParsedLine]:
        parsed = (self.classify(line, prefixed) for line in body.splitlines())
        return [line for line in parsed if line is not None]


def _text_reply(text: str) -> Notification:
    return Notification(plain=text, html=html.escape(text))


class CommandHandler(Generic[K]):
    """Apply parsed commands to a registry and answer in the originating room."""

    def __init__(
        self,
        parser: CommandParser,
        key_type: Type[K],
        registry: SubscriptionRegistry[K],
        sender: ChatSenderPort,
        subtype: str,
        link_prefix: str,
        usage: str,
        after_subscribe: Optional[Callable[[], None]] = None,
    ) -> None:
        self._parser = parser
        self._key_type = key_type
        self._registry = registry
        self._sender = sender
        self._subtype = subtype
        self._link_prefix = link_prefix
        self._usage = usage
        self._after_subscribe = after_subscribe

    def handle(self, message: ChatMessage) -> bool:
        """Run every command in ``message``; return whether any line was ours."""

        lines = self._parser.parse(message.body)
        for line in lines:
            if line.kind == LINE_LIST:
                self._reply(message.room, self._list(message.room))
            else:
                self._reply(message.room, self._apply(line, message.room))
        return bool(lines)

    def seed_defaults(self, room: str, block: str) -> int:
        """Subscribe ``room`` to every URL in ``block`` without replying.

        Only subscriptions are applied; list and unsub lines are ignored.
        Returns the number of keys subscribed.
        """

        seeded = 0
        for line in self._parser.parse(block, prefixed=False):
            if line.kind != LINE_CANDIDATE or line.is_unsubscribe:
                continue
            try:
                key = self._key_type.from_line(line.remainder)
                self._registry.subscribe(key, room)
            except KeyParseError as exc:
                LOGGER.warning("Skipping default subscription %r for %s: %s", line.remainder, room, exc)
                continue
            except InternalError:
                LOGGER.exception("Could not seed default subscription for %s", room)
                continue
            seeded += 1
            try:
                self._notify_subscribed()
            except BindingError:
                LOGGER.exception("Binding failed while seeding defaults for %s", room)
        return seeded

    def _apply(self, line: ParsedLine, room: str) -> Notification:
        try:
            key = self._key_type.from_line(line.remainder)
        except KeyParseError as exc:
            LOGGER.info("Unparsable %s command from %s: %s", self._subtype, room, exc)
            return _text_reply(f"Sorry, I could not parse that. Usage: {self._usage}")

        try:
            if line.is_unsubscribe:
                return _text_reply(self._registry.unsubscribe(key, room))
            confirmation = self._registry.subscribe(key, room)
        except InternalError:
            LOGGER.exception("Registry unavailable for %s command from %s", self._subtype, room)
            return _text_reply(INTERNAL_ERROR_REPLY)

        try:
            self._notify_subscribed()
        except BindingError:
            LOGGER.exception("Binding failed after subscribing %s", room)
            return _text_reply(
                f"{confirmation}, but listening for events on {self._registry.backend_domain} "
                "failed. Please subscribe again later."
            )
        return _text_reply(confirmation)

    def _list(self, room: str) -> Notification:
        try:
            keys = self._registry.list(room)
        except InternalError:
            LOGGER.exception("Registry unavailable for list %s from %s", self._subtype, room)
            return _text_reply(INTERNAL_ERROR_REPLY)
        return format_subscription_list(keys, self._link_prefix, self._subtype, self._registry.backend_domain)

    def _notify_subscribed(self) -> None:
        if self._after_subscribe is not None:
            self._after_subscribe()

    def _reply(self, room: str, message: Notification) -> None:
        try:
            self._sender.send(room, message)
        except Exception:
            LOGGER.exception("Failed to reply in %s", room)
