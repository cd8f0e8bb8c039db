"""Broker event schemas and routing-key classification (core domain)."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from core.errors import DomainError
from core.keys import PackageKey, RequestKey, TestKey

KEY_BUILD_SUCCESS = "obs.package.build_success"
KEY_BUILD_FAIL = "obs.package.build_fail"
KEY_REQUEST_CHANGE = "obs.request.change"
KEY_REQUEST_STATECHANGE = "obs.request.state_change"
KEY_REQUEST_DELETE = "obs.request.delete"
KEY_REQUEST_COMMENT = "obs.request.comment"
KEY_JOB_DONE = "openqa.job.done"


@dataclass(frozen=True)
class RoutingRule:
    """Maps a routing-key suffix to the change type shown to users."""

    suffix: str
    change_type: str


BUILD_RULES: Tuple[RoutingRule, ...] = (
    RoutingRule(KEY_BUILD_SUCCESS, "succeeded"),
    RoutingRule(KEY_BUILD_FAIL, "failed"),
)

REQUEST_RULES: Tuple[RoutingRule, ...] = (
    RoutingRule(KEY_REQUEST_CHANGE, "changed by admin"),
    RoutingRule(KEY_REQUEST_STATECHANGE, "changed"),
    RoutingRule(KEY_REQUEST_DELETE, "deleted"),
    RoutingRule(KEY_REQUEST_COMMENT, "commented"),
)

TEST_RULES: Tuple[RoutingRule, ...] = (RoutingRule(KEY_JOB_DONE, "done"),)


def classify(routing_key: str, rules: Iterable[RoutingRule]) -> str:
    """Return the change type for ``routing_key``; first matching rule wins.

    Routing keys arrive scope-prefixed (``opensuse.obs.package.build_fail``),
    so matching is substring containment rather than equality.
    """

    for rule in rules:
        if rule.suffix in routing_key:
            return rule.change_type
    raise DomainError(f"Unknown routing key: {routing_key}")


def load_payload(body: bytes) -> dict:
    """Decode a JSON object from a raw delivery body."""

    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise DomainError(f"Malformed event payload: {exc}") from exc
    if not isinstance(payload, dict):
        raise DomainError(f"Event payload is not an object: {type(payload).__name__}")
    return payload


def _required(payload: dict, field: str) -> str:
    value = payload.get(field)
    if value is None or isinstance(value, (dict, list)):
        raise DomainError(f"Event payload lacks field {field!r}")
    return str(value)


def _optional(payload: dict, field: str) -> Optional[str]:
    value = payload.get(field)
    if value is None or value == "":
        return None
    return str(value)


def _numeric(payload: dict, field: str) -> str:
    value = _required(payload, field)
    if not (value.isascii() and value.isdecimal()):
        raise DomainError(f"Field {field!r} is not numeric: {value!r}")
    return str(int(value))


@dataclass(frozen=True)
class BuildEvent:
    """Build finished for one package in one repository/arch."""

    project: str
    package: str
    arch: str
    repository: str
    reason: Optional[str] = None

    @property
    def key(self) -> PackageKey:
        return PackageKey(project=self.project, package=self.package)

    @classmethod
    def from_payload(cls, payload: dict) -> "BuildEvent":
        return cls(
            project=_required(payload, "project"),
            package=_required(payload, "package"),
            arch=_required(payload, "arch"),
            repository=_required(payload, "repository"),
            reason=_optional(payload, "reason"),
        )


@dataclass(frozen=True)
class RequestEvent:
    """Submit request changed, was deleted, or received a comment."""

    number: str
    state: Optional[str] = None
    author: Optional[str] = None
    comment: Optional[str] = None
    commenter: Optional[str] = None
    comment_body: Optional[str] = None

    @property
    def key(self) -> RequestKey:
        return RequestKey(number=self.number)

    @classmethod
    def from_payload(cls, payload: dict) -> "RequestEvent":
        return cls(
            number=_numeric(payload, "number"),
            state=_optional(payload, "state"),
            author=_optional(payload, "author"),
            comment=_optional(payload, "comment"),
            commenter=_optional(payload, "commenter"),
            comment_body=_optional(payload, "comment_body"),
        )


@dataclass(frozen=True)
class TestEvent:
    """openQA job finished."""

    __test__ = False  # not a pytest test class

    job_id: str
    testname: str
    result: str
    reason: Optional[str] = None

    @property
    def key(self) -> TestKey:
        return TestKey(job_id=self.job_id)

    @classmethod
    def from_payload(cls, payload: dict) -> "TestEvent":
        return cls(
            job_id=_numeric(payload, "id"),
            # openQA publishes job settings in upper case.
            testname=_required(payload, "TEST"),
            result=_required(payload, "result"),
            reason=_optional(payload, "reason"),
        )
