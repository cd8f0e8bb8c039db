"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the command handlers.
"""

from __future__ import annotations

from typing import Optional

from telethon.tl.custom import Message

from core.models import ChatMessage


def room_from_message(message: Message) -> str:
    """Rooms are identified by the chat id as text; it is stable and universal."""

    return str(message.chat_id)


def build_chat_message(message: Message, own_id: Optional[int] = None) -> Optional[ChatMessage]:
    """Build a core ChatMessage, or ``None`` for messages we should not handle."""

    # Never react to our own notifications and replies.
    if getattr(message, "out", False):
        return None
    if own_id is not None and getattr(message, "sender_id", None) == own_id:
        return None

    # Media-only messages without captions carry no commands.
    text = message.raw_text or ""
    if not text.strip():
        return None

    return ChatMessage(room=room_from_message(message), body=text)
