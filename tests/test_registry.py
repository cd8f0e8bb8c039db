from __future__ import annotations

import random
import threading

import pytest

from core.errors import InternalError
from core.keys import PackageKey, RequestKey
from core.registry import SubscriptionRegistry


def _registry(**kwargs) -> SubscriptionRegistry:
    return SubscriptionRegistry("example.org", "package", **kwargs)


def test_subscribe_is_idempotent() -> None:
    registry = _registry()
    key = PackageKey("foo", "bar")

    registry.subscribe(key, "R1")
    reply = registry.subscribe(key, "R1")

    assert registry.lookup(key) == {"R1"}
    assert reply == "Subscribed to package foo/bar on example.org"


def test_unsubscribe_last_room_removes_key() -> None:
    registry = _registry()
    key = PackageKey("foo", "bar")
    registry.subscribe(key, "R1")

    reply = registry.unsubscribe(key, "R1")

    assert reply == "Unsubscribed from package foo/bar on example.org"
    assert registry.lookup(key) == frozenset()
    assert registry.list("R1") == []


def test_unsubscribe_keeps_other_rooms() -> None:
    registry = _registry()
    key = PackageKey("foo", "bar")
    registry.subscribe(key, "R1")
    registry.subscribe(key, "R2")

    registry.unsubscribe(key, "R1")

    assert registry.lookup(key) == {"R2"}


def test_unsubscribe_without_subscription_is_not_an_error() -> None:
    registry = _registry()
    reply = registry.unsubscribe(PackageKey("foo", "bar"), "R1")
    assert "was not subscribed" in reply


def test_list_is_sorted_by_encoded_key_and_scoped_to_room() -> None:
    registry = _registry()
    for project, package in [("zeta", "a"), ("alpha", "z"), ("alpha", "b")]:
        registry.subscribe(PackageKey(project, package), "R1")
    registry.subscribe(PackageKey("other", "pkg"), "R2")

    assert [key.encode() for key in registry.list("R1")] == ["alpha/b", "alpha/z", "zeta/a"]
    assert registry.list("R3") == []


def test_lookup_returns_a_snapshot() -> None:
    registry = SubscriptionRegistry("example.org", "request")
    key = RequestKey("1234")
    registry.subscribe(key, "R1")

    rooms = registry.lookup(key)
    registry.subscribe(key, "R2")

    assert rooms == {"R1"}


def test_unavailable_lock_raises_internal_error() -> None:
    registry = _registry(lock_timeout=0.01)
    key = PackageKey("foo", "bar")
    registry._lock.acquire()
    try:
        with pytest.raises(InternalError):
            registry.subscribe(key, "R1")
        with pytest.raises(InternalError):
            registry.lookup(key)
    finally:
        registry._lock.release()

    assert registry.lookup(key) == frozenset()


def test_concurrent_subscribe_unsubscribe_converges() -> None:
    registry = _registry()
    key = PackageKey("foo", "bar")
    rooms = [f"R{index}" for index in range(16)]
    last_operation: dict[str, str] = {}
    barrier = threading.Barrier(len(rooms))

    def worker(room: str, seed: int) -> None:
        rng = random.Random(seed)
        operations = [rng.choice(["subscribe", "unsubscribe"]) for _ in range(200)]
        last_operation[room] = operations[-1]
        barrier.wait()
        for operation in operations:
            getattr(registry, operation)(key, room)

    threads = [threading.Thread(target=worker, args=(room, index)) for index, room in enumerate(rooms)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    expected = {room for room, operation in last_operation.items() if operation == "subscribe"}
    assert registry.lookup(key) == expected
