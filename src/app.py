"""Application entry point for the obsbridge bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Callable, Optional, Sequence

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.amqp_binding import make_binding_factory
from adapters.telegram_mapper import build_chat_message
from adapters.telegram_sender import TelegramSender
from client import bot_token, build_client
from core.domains import ALL_DOMAINS, BindingFactory, Subscriber
from core.errors import BindingError
from core.ports import ChatSenderPort
from core.router import CommandRouter

NAME = "OBSBRIDGE"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/obsbridge.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # pika logs every frame at DEBUG; keep it at our level or quieter.
    logging.getLogger("pika").setLevel(max(level, logging.WARNING))


def build_subscribers(
    sender: ChatSenderPort,
    binding_factory: BindingFactory,
) -> list[Subscriber]:
    """Create and start one subscriber per enabled domain and backend.

    A binding failure only takes out the affected domain on that backend.
    """

    subscribers: list[Subscriber] = []
    for backend in settings.BACKENDS:
        for definition in ALL_DOMAINS:
            domain_settings = settings.DOMAINS[definition.subtype]
            if not domain_settings.enabled:
                continue
            subscriber = Subscriber(
                definition,
                backend,
                settings.PREFIX,
                sender,
                binding_factory,
                domain_settings.binding,
            )
            try:
                subscriber.start()
            except BindingError:
                LOGGER.exception("Skipping %s on %s", definition.subtype, backend.domain)
                subscriber.close()
                continue
            subscribers.append(subscriber)
            LOGGER.info("Serving %s on %s (%s binding)", definition.subtype, backend.domain, domain_settings.binding)
    return subscribers


def seed_default_subscriptions(subscribers: Sequence[Subscriber], defaults: dict[str, str]) -> int:
    seeded = 0
    for room, block in defaults.items():
        for subscriber in subscribers:
            seeded += subscriber.seed_defaults(room, block)
    LOGGER.info("Seeded %s default subscriptions for %s rooms", seeded, len(defaults))
    return seeded


def _close_all(subscribers: Sequence[Subscriber]) -> None:
    for subscriber in subscribers:
        subscriber.close()


def _run() -> None:
    _print_banner()
    _configure_logging()

    LOGGER.info("Starting obsbridge")

    client = build_client()
    client.start(bot_token=bot_token())
    me = client.loop.run_until_complete(client.get_me())
    LOGGER.info("Logged in as %s", getattr(me, "username", None) or me.id)

    sender = TelegramSender(client, client.loop)
    binding_factory = make_binding_factory(settings.BROKER_URL_TEMPLATE, settings.BROKER_EXCHANGE)
    subscribers = build_subscribers(sender, binding_factory)
    seed_default_subscriptions(subscribers, settings.DEFAULT_SUBSCRIPTIONS)

    router = CommandRouter(
        settings.PREFIX,
        subscribers,
        sender,
        leave=sender.leave,
        shutdown=sender.disconnect,
    )

    # Command handling may block on lazy broker binding, so it runs in a worker
    # thread and leaves the event loop free for sends.
    @client.on(events.NewMessage(incoming=True))
    async def handler(event) -> None:
        try:
            message = build_chat_message(event.message, own_id=me.id)
            if message is None:
                return
            await asyncio.to_thread(router.handle, message)
        except Exception:
            LOGGER.exception("Error while processing message")

    LOGGER.info("Client connected. Listening for commands and events...")
    try:
        client.run_until_disconnected()
    finally:
        _close_all(subscribers)
        LOGGER.info("obsbridge stopped")


def _print_commands() -> None:
    from core.help import GENERAL_ITEMS, format_help, prepend_prefix

    items = prepend_prefix(settings.PREFIX, GENERAL_ITEMS)
    for definition in ALL_DOMAINS:
        if settings.DOMAINS[definition.subtype].enabled:
            items.extend(definition.help_items(settings.PREFIX))
    print(format_help(items).plain)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="obsbridge")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    subparsers.add_parser("commands", help="Print the chat commands for the current config")

    args = parser.parse_args(argv)
    commands: dict[str, Callable[[], None]] = {"commands": _print_commands}
    commands.get(args.command, _run)()


if __name__ == "__main__":
    main()
