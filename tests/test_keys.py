from __future__ import annotations

import pytest

from core.errors import KeyParseError
from core.keys import PackageKey, RequestKey, TestKey


def test_package_key_from_url_takes_trailing_segments() -> None:
    key = PackageKey.from_line("https://build.opensuse.org/package/show/openSUSE:Factory/bash")
    assert key == PackageKey(project="openSUSE:Factory", package="bash")
    assert key.encode() == "openSUSE:Factory/bash"


def test_package_key_from_line_trims_and_ignores_unsub_token() -> None:
    key = PackageKey.from_line("unsub obs.example.org/package/ foo / bar  ")
    assert key == PackageKey(project="foo", package="bar")


def test_package_key_from_line_requires_three_tokens() -> None:
    with pytest.raises(KeyParseError):
        PackageKey.from_line("foo/bar")


def test_key_from_line_rejects_multiline_input() -> None:
    with pytest.raises(KeyParseError):
        PackageKey.from_line("obs.example.org/package/foo/bar\nobs.example.org/package/a/b")


def test_package_key_rejects_empty_package() -> None:
    with pytest.raises(KeyParseError):
        PackageKey.from_line("obs.example.org/package/foo/")


def test_request_key_from_url() -> None:
    key = RequestKey.from_line("https://build.opensuse.org/request/show/1234")
    assert key == RequestKey(number="1234")


def test_request_key_rejects_non_numeric_id() -> None:
    with pytest.raises(KeyParseError):
        RequestKey.from_line("https://build.opensuse.org/request/show/abc")


def test_test_key_strips_trailing_marker() -> None:
    assert TestKey.from_line("https://openqa.opensuse.org/tests/4242#") == TestKey(job_id="4242")
    assert TestKey.from_line("https://openqa.opensuse.org/tests/4242#details") == TestKey(job_id="4242")


def test_test_key_requires_three_tokens() -> None:
    with pytest.raises(KeyParseError):
        TestKey.from_line("tests/4242")


@pytest.mark.parametrize(
    "key",
    [
        PackageKey(project="openSUSE:Factory", package="bash"),
        PackageKey(project="home:alice:branches", package="python-foo"),
        RequestKey(number="1234"),
        TestKey(job_id="4242"),
    ],
)
def test_decode_reverses_encode(key) -> None:
    assert type(key).decode(key.encode()) == key


def test_keys_are_hashable_and_compare_by_value() -> None:
    keys = {PackageKey("a", "b"), PackageKey("a", "b"), RequestKey("1"), RequestKey("01")}
    assert len(keys) == 3
    assert RequestKey.decode("0042") == RequestKey("42")


def test_package_key_accepts_trailing_slash() -> None:
    key = PackageKey.from_line("https://build.opensuse.org/package/show/foo/bar/")
    assert key == PackageKey(project="foo", package="bar")


def test_package_key_rejects_url_without_project() -> None:
    with pytest.raises(KeyParseError):
        PackageKey.from_line("https://build.opensuse.org/package/show/bar")


@pytest.mark.parametrize(
    "line",
    [
        "https://build.opensuse.org/request/show/²",
        "https://build.opensuse.org/request/show/１２",
    ],
)
def test_request_key_rejects_non_ascii_digits(line) -> None:
    with pytest.raises(KeyParseError):
        RequestKey.from_line(line)


def test_test_key_rejects_non_ascii_digits() -> None:
    with pytest.raises(KeyParseError):
        TestKey.from_line("https://openqa.opensuse.org/tests/4²#")
