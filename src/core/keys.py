"""Subscription keys (core domain).

Each domain identifies a subscribable entity with a small frozen dataclass.
All of them share one capability set: hashable, comparable, and a stable text
codec. ``encode`` renders the canonical form used in URLs and list replies,
``decode`` reads it back, and ``from_line`` extracts a key from a chat line
that was already recognized as a URL for the domain.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, List, Protocol, Type, TypeVar

from core.errors import KeyParseError

K = TypeVar("K", bound="DomainKey")


class DomainKey(Protocol):
    """Capabilities every key type provides to the registry and dispatcher."""

    def encode(self) -> str:
        ...

    @classmethod
    def decode(cls: Type[K], text: str) -> K:
        ...

    @classmethod
    def from_line(cls: Type[K], line: str) -> K:
        ...


def _split_line(line: str, min_tokens: int) -> List[str]:
    """Split a single chat line on ``/`` and enforce a minimum token count."""

    line = line.strip()
    if "\n" in line:
        raise KeyParseError("Expected a single line")
    parts = line.split("/")
    if len(parts) < min_tokens:
        raise KeyParseError(f"Expected at least {min_tokens} '/'-separated parts, got {len(parts)}")
    return parts


def _numeric_id(token: str, marker: str = "") -> str:
    value = token.strip()
    if marker:
        value = value.partition(marker)[0]
    # isdigit() alone admits characters like "²" that int() rejects.
    if not (value.isascii() and value.isdecimal()):
        raise KeyParseError(f"Not a numeric id: {token!r}")
    # Normalize so "0042" and "42" are the same key.
    return str(int(value))


@dataclass(frozen=True, order=True)
class PackageKey:
    """A package inside a build project."""

    project: str
    package: str

    LINE_MIN_TOKENS: ClassVar[int] = 3
    # Path segments of the web UI URL itself, never a project name.
    URL_SEGMENTS: ClassVar[tuple] = ("package", "show")

    def encode(self) -> str:
        return f"{self.project}/{self.package}"

    @staticmethod
    def _without_trailing_slash(text: str) -> str:
        text = text.strip()
        return text[:-1] if text.endswith("/") else text

    @classmethod
    def decode(cls, text: str) -> "PackageKey":
        text = cls._without_trailing_slash(text)
        parts = _split_line(text, 2)
        # Project and package are always the two trailing path segments.
        package = parts[-1].strip()
        project = parts[-2].strip()
        if not project or not package:
            raise KeyParseError(f"Empty project or package in {text!r}")
        if project in cls.URL_SEGMENTS:
            raise KeyParseError(f"Missing project or package in {text!r}")
        return cls(project=project, package=package)

    @classmethod
    def from_line(cls, line: str) -> "PackageKey":
        line = cls._without_trailing_slash(line)
        _split_line(line, cls.LINE_MIN_TOKENS)
        return cls.decode(line)


@dataclass(frozen=True, order=True)
class RequestKey:
    """A submit request, identified by its number."""

    number: str

    LINE_MIN_TOKENS: ClassVar[int] = 3

    def encode(self) -> str:
        return self.number

    @classmethod
    def decode(cls, text: str) -> "RequestKey":
        parts = _split_line(text, 1)
        return cls(number=_numeric_id(parts[-1]))

    @classmethod
    def from_line(cls, line: str) -> "RequestKey":
        _split_line(line, cls.LINE_MIN_TOKENS)
        return cls.decode(line)


@dataclass(frozen=True, order=True)
class TestKey:
    """An openQA test job, identified by its job id."""

    __test__ = False  # not a pytest test class

    job_id: str

    LINE_MIN_TOKENS: ClassVar[int] = 3

    def encode(self) -> str:
        return self.job_id

    @classmethod
    def decode(cls, text: str) -> "TestKey":
        parts = _split_line(text, 1)
        # openQA links often end in "#" or "#details" (copied from the tab bar).
        return cls(job_id=_numeric_id(parts[-1], marker="#"))

    @classmethod
    def from_line(cls, line: str) -> "TestKey":
        _split_line(line, cls.LINE_MIN_TOKENS)
        return cls.decode(line)
