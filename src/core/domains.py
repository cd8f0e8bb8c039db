"""The three subscribable domains and the glue that runs one of them.

A ``DomainDefinition`` holds everything that differs between packages,
requests and tests. ``Subscriber`` instantiates one definition for one
backend: a registry, a command handler, a dispatcher and a broker binding,
all written once against the shared key capabilities.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Tuple, Type

from core.commands import CommandHandler, CommandParser
from core.config import BINDING_EAGER, BackendDetails
from core.dispatcher import Dispatcher
from core.events import (
    BUILD_RULES,
    REQUEST_RULES,
    TEST_RULES,
    BuildEvent,
    RequestEvent,
    RoutingRule,
    TestEvent,
)
from core.help import HelpItem, prepend_prefix
from core.keys import PackageKey, RequestKey, TestKey
from core.models import ChatMessage, Notification
from core.notification_formatting import base_url, format_build, format_request, format_test
from core.ports import BrokerBindingPort, ChatSenderPort
from core.registry import SubscriptionRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainDefinition:
    """Static description of one subscribable domain."""

    subtype: str
    item_label: str
    url_path: str
    show_segment: bool
    buildprefix: Optional[str]
    key_type: Type[Any]
    rules: Tuple[RoutingRule, ...]
    decode_event: Callable[[dict], Any]
    render: Callable[[Any, str, str], Notification]
    url_placeholder: str
    key_placeholder: str
    subscribe_help: str

    @property
    def routing_keys(self) -> Tuple[str, ...]:
        return tuple(rule.suffix for rule in self.rules)

    def backend_for(self, backend: BackendDetails) -> BackendDetails:
        if self.buildprefix is None:
            return backend
        return backend.with_buildprefix(self.buildprefix)

    def link_prefix(self, backend: BackendDetails) -> str:
        return base_url(self.backend_for(backend), self.url_path, show=self.show_segment)

    def usage(self, backend: BackendDetails) -> str:
        return f"{self.link_prefix(backend)}/{self.key_placeholder}"

    def help_items(self, prefix: Optional[str]) -> list[HelpItem]:
        return prepend_prefix(
            prefix,
            [
                (self.url_placeholder, self.subscribe_help),
                (f"unsub {self.url_placeholder}", f"Unsubscribe from a {self.item_label}. Get no more notifications."),
                (f"list {self.subtype}", f"List all {self.subtype} currently subscribed to."),
            ],
        )


PACKAGES = DomainDefinition(
    subtype="packages",
    item_label="package",
    url_path="package",
    show_segment=True,
    buildprefix=None,
    key_type=PackageKey,
    rules=BUILD_RULES,
    decode_event=BuildEvent.from_payload,
    render=format_build,
    url_placeholder="OBS_PACKAGE_URL",
    key_placeholder="PROJECT/PACKAGE",
    subscribe_help="Subscribe to a package. Get notified about build results.",
)

REQUESTS = DomainDefinition(
    subtype="requests",
    item_label="request",
    url_path="request",
    show_segment=True,
    buildprefix=None,
    key_type=RequestKey,
    rules=REQUEST_RULES,
    decode_event=RequestEvent.from_payload,
    render=format_request,
    url_placeholder="OBS_REQUEST_URL",
    key_placeholder="NUMBER",
    subscribe_help="Subscribe to a request. Get notified if the request changes.",
)

# openQA lives on its own host and its job URLs have no /show segment.
TESTS = DomainDefinition(
    subtype="tests",
    item_label="test",
    url_path="tests",
    show_segment=False,
    buildprefix="openqa",
    key_type=TestKey,
    rules=TEST_RULES,
    decode_event=TestEvent.from_payload,
    render=format_test,
    url_placeholder="OPENQA_TEST_URL",
    key_placeholder="JOB_ID",
    subscribe_help="Subscribe to a test. Get notification if test-status changes.",
)

ALL_DOMAINS: Tuple[DomainDefinition, ...] = (PACKAGES, REQUESTS, TESTS)
DOMAINS_BY_SUBTYPE = {definition.subtype: definition for definition in ALL_DOMAINS}

BindingFactory = Callable[[BackendDetails, Sequence[str], str], BrokerBindingPort]


class Subscriber:
    """One domain running against one backend."""

    def __init__(
        self,
        definition: DomainDefinition,
        backend: BackendDetails,
        prefix: Optional[str],
        sender: ChatSenderPort,
        binding_factory: BindingFactory,
        binding_policy: str = BINDING_EAGER,
    ) -> None:
        self.definition = definition
        self.backend = backend
        self._policy = binding_policy
        self.registry: SubscriptionRegistry = SubscriptionRegistry(backend.domain, definition.item_label)
        self.binding = binding_factory(backend, definition.routing_keys, f"{definition.subtype}@{backend.domain}")
        self.dispatcher = Dispatcher(
            name=f"{definition.subtype}@{backend.domain}",
            rules=definition.rules,
            decode_event=definition.decode_event,
            render=self._render,
            registry=self.registry,
            sender=sender,
        )
        self.binding.set_callback(self.dispatcher)
        self.handler = CommandHandler(
            parser=CommandParser(prefix or "", backend.domain, definition.url_path, definition.subtype),
            key_type=definition.key_type,
            registry=self.registry,
            sender=sender,
            subtype=definition.subtype,
            link_prefix=definition.link_prefix(backend),
            usage=definition.usage(backend),
            after_subscribe=self.ensure_bound,
        )

    def _render(self, event: Any, change_type: str) -> Notification:
        return self.definition.render(event, change_type, self.definition.link_prefix(self.backend))

    def start(self) -> None:
        """Bind now for eager domains; lazy domains wait for a subscription."""

        if self._policy == BINDING_EAGER:
            self.ensure_bound()
        else:
            LOGGER.info("Deferring broker binding for %s on %s", self.definition.subtype, self.backend.domain)

    def ensure_bound(self) -> None:
        if not self.binding.started:
            self.binding.start()

    def handle_message(self, message: ChatMessage) -> bool:
        return self.handler.handle(message)

    def seed_defaults(self, room: str, block: str) -> int:
        return self.handler.seed_defaults(room, block)

    def close(self) -> None:
        self.binding.close()
