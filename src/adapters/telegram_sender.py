"""Telegram send adapter.

Implements the core ChatSenderPort on top of a connected Telethon client.
Broker consumers run on their own threads, so every call is handed to the
client's event loop with ``run_coroutine_threadsafe`` and never waited on.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future
from typing import Union

from core.models import Notification

LOGGER = logging.getLogger(__name__)


def room_entity(room: str) -> Union[int, str]:
    """Telethon wants numeric chat ids as int; usernames stay strings."""

    if room.lstrip("-").isdigit():
        return int(room)
    return room


class TelegramSender:
    """Thread-safe handle for talking back to Telegram chats."""

    def __init__(self, client, loop: asyncio.AbstractEventLoop) -> None:
        self._client = client
        self._loop = loop

    def _submit(self, coro, what: str) -> Future:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)

        def _log_failure(done: Future) -> None:
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                LOGGER.error("Telegram %s failed: %r", what, exc)

        future.add_done_callback(_log_failure)
        return future

    def send(self, room: str, message: Notification) -> None:
        """Send the HTML body of ``message`` to ``room``."""

        self._submit(
            self._client.send_message(
                room_entity(room),
                message.html,
                parse_mode="html",
                link_preview=False,
            ),
            f"send to {room}",
        )

    def leave(self, room: str) -> None:
        self._submit(self._client.delete_dialog(room_entity(room)), f"leave {room}")

    def disconnect(self) -> None:
        self._submit(self._client.disconnect(), "disconnect")
