from __future__ import annotations

from typing import Optional

from core.commands import INTERNAL_ERROR_REPLY, LINE_CANDIDATE, LINE_LIST, CommandHandler, CommandParser
from core.errors import BindingError
from core.keys import PackageKey, RequestKey
from core.models import ChatMessage, Notification
from core.registry import SubscriptionRegistry

LINK_PREFIX = "https://build.example.org/package/show"


class FakeSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, Notification]] = []

    def send(self, room: str, message: Notification) -> None:
        self.sent.append((room, message))


def _handler(
    prefix: str = "!",
    registry: Optional[SubscriptionRegistry] = None,
    after_subscribe=None,
) -> tuple[CommandHandler, SubscriptionRegistry, FakeSender]:
    registry = registry or SubscriptionRegistry("example.org", "package")
    sender = FakeSender()
    handler = CommandHandler(
        parser=CommandParser(prefix, "example.org", "package", "packages"),
        key_type=PackageKey,
        registry=registry,
        sender=sender,
        subtype="packages",
        link_prefix=LINK_PREFIX,
        usage=f"{LINK_PREFIX}/PROJECT/PACKAGE",
        after_subscribe=after_subscribe,
    )
    return handler, registry, sender


def test_parser_classifies_lines() -> None:
    parser = CommandParser("!", "example.org", "package", "packages")

    assert parser.classify("hello there") is None
    assert parser.classify("obs.example.org/package/foo/bar") is None
    assert parser.classify("!obs.example.org/request/show/1") is None
    assert parser.classify("!list packages").kind == LINE_LIST

    parsed = parser.classify("  !unsub obs.example.org/package/foo/bar ")
    assert parsed.kind == LINE_CANDIDATE
    assert parsed.remainder == "unsub obs.example.org/package/foo/bar"
    assert parsed.is_unsubscribe


def test_parser_with_empty_prefix_accepts_every_line() -> None:
    parser = CommandParser("", "example.org", "package", "packages")
    parsed = parser.classify("https://build.example.org/package/show/foo/bar")
    assert parsed.kind == LINE_CANDIDATE
    assert not parsed.is_unsubscribe


def test_subscribe_replies_with_confirmation() -> None:
    handler, registry, sender = _handler()

    assert handler.handle(ChatMessage(room="R1", body="!obs.example.org/package/foo/bar"))

    assert registry.lookup(PackageKey("foo", "bar")) == {"R1"}
    assert sender.sent == [
        ("R1", Notification(
            plain="Subscribed to package foo/bar on example.org",
            html="Subscribed to package foo/bar on example.org",
        )),
    ]


def test_unsubscribe_without_subscription_reports_it() -> None:
    handler, registry, sender = _handler()

    handler.handle(ChatMessage(room="R1", body="!unsub obs.example.org/package/foo/bar"))

    assert registry.list("R1") == []
    assert len(sender.sent) == 1
    assert "was not subscribed" in sender.sent[0][1].plain


def test_unsubscribe_removes_subscription() -> None:
    handler, registry, sender = _handler()
    handler.handle(ChatMessage(room="R1", body="!obs.example.org/package/foo/bar"))

    handler.handle(ChatMessage(room="R1", body="!unsub obs.example.org/package/foo/bar"))

    assert registry.lookup(PackageKey("foo", "bar")) == frozenset()
    assert sender.sent[-1][1].plain == "Unsubscribed from package foo/bar on example.org"


def test_parse_error_does_not_stop_following_lines() -> None:
    handler, registry, sender = _handler()
    body = "\n".join(
        [
            "!obs.example.org/package/a/b",
            "!what is example.org/package/",
            "some chatter",
            "!obs.example.org/package/c/d",
        ]
    )

    handler.handle(ChatMessage(room="R1", body=body))

    assert [key.encode() for key in registry.list("R1")] == ["a/b", "c/d"]
    replies = [message.plain for _, message in sender.sent]
    assert len(replies) == 3
    assert replies[1].startswith("Sorry, I could not parse that.")
    assert f"{LINK_PREFIX}/PROJECT/PACKAGE" in replies[1]


def test_message_without_matching_lines_is_ignored() -> None:
    handler, _, sender = _handler()
    assert not handler.handle(ChatMessage(room="R1", body="!help"))
    assert sender.sent == []


def test_list_replies_with_sorted_links() -> None:
    handler, _, sender = _handler()
    handler.handle(ChatMessage(room="R1", body="!obs.example.org/package/zeta/a\n!obs.example.org/package/alpha/b"))
    sender.sent.clear()

    handler.handle(ChatMessage(room="R1", body="!list packages"))

    assert sender.sent[0][1].plain == "\n".join(
        [
            "This room is subscribed to these packages on example.org:",
            f"- {LINK_PREFIX}/alpha/b",
            f"- {LINK_PREFIX}/zeta/a",
        ]
    )


def test_list_for_room_without_subscriptions() -> None:
    handler, _, sender = _handler()
    handler.handle(ChatMessage(room="R1", body="!list packages"))
    assert sender.sent[0][1].plain == "This room is not subscribed to any packages on example.org"


def test_registry_failure_replies_with_apology() -> None:
    registry = SubscriptionRegistry("example.org", "package", lock_timeout=0.01)
    handler, _, sender = _handler(registry=registry)

    registry._lock.acquire()
    try:
        handler.handle(ChatMessage(room="R1", body="!obs.example.org/package/foo/bar"))
    finally:
        registry._lock.release()

    assert sender.sent[0][1].plain == INTERNAL_ERROR_REPLY


def test_after_subscribe_hook_runs_and_binding_failure_is_reported() -> None:
    calls: list[int] = []

    def failing_bind() -> None:
        calls.append(1)
        raise BindingError("broker down")

    handler, registry, sender = _handler(after_subscribe=failing_bind)

    handler.handle(ChatMessage(room="R1", body="!obs.example.org/package/foo/bar"))

    assert calls == [1]
    assert registry.lookup(PackageKey("foo", "bar")) == {"R1"}
    assert "listening for events on example.org failed" in sender.sent[0][1].plain


def test_after_subscribe_hook_not_called_for_unsubscribe() -> None:
    calls: list[int] = []
    handler, _, _ = _handler(after_subscribe=lambda: calls.append(1))
    handler.handle(ChatMessage(room="R1", body="!unsub obs.example.org/package/foo/bar"))
    assert calls == []


def test_seed_defaults_only_subscribes_and_never_replies() -> None:
    handler, registry, sender = _handler()
    block = "\n".join(
        [
            "https://build.example.org/package/show/foo/bar",
            "!obs.example.org/package/x/y",
            "unsub https://build.example.org/package/show/x/y",
            "list packages",
            "https://build.example.org/package/show/broken/",
        ]
    )

    seeded = handler.seed_defaults("R9", block)

    assert seeded == 2
    assert [key.encode() for key in registry.list("R9")] == ["foo/bar", "x/y"]
    assert sender.sent == []


def test_non_ascii_digit_in_request_id_is_a_parse_error() -> None:
    registry = SubscriptionRegistry("example.org", "request")
    sender = FakeSender()
    handler = CommandHandler(
        parser=CommandParser("!", "example.org", "request", "requests"),
        key_type=RequestKey,
        registry=registry,
        sender=sender,
        subtype="requests",
        link_prefix="https://build.example.org/request/show",
        usage="https://build.example.org/request/show/NUMBER",
    )

    handler.handle(
        ChatMessage(room="R1", body="!https://build.example.org/request/show/²\n!https://build.example.org/request/show/7")
    )

    assert registry.list("R1") == [RequestKey("7")]
    replies = [message.plain for _, message in sender.sent]
    assert len(replies) == 2
    assert replies[0].startswith("Sorry, I could not parse that.")
