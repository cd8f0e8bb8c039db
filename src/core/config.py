"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict

BINDING_EAGER = "eager"
BINDING_LAZY = "lazy"
BINDING_POLICIES = (BINDING_EAGER, BINDING_LAZY)


@dataclass(frozen=True)
class BackendDetails:
    """Connection details for one build service instance and its broker."""

    domain: str
    login: str
    buildprefix: str
    rabbitprefix: str
    rabbitscope: str

    def with_buildprefix(self, buildprefix: str) -> "BackendDetails":
        return replace(self, buildprefix=buildprefix)


@dataclass(frozen=True)
class DomainSettings:
    """Per-domain switches: whether it runs and when it binds to the broker."""

    enabled: bool
    binding: str

    def __post_init__(self) -> None:
        if self.binding not in BINDING_POLICIES:
            raise ValueError(f"Unsupported binding policy: {self.binding}")


OPENSUSE_BACKEND = BackendDetails(
    domain="opensuse.org",
    login="opensuse:opensuse",
    buildprefix="build",
    rabbitprefix="rabbit",
    rabbitscope="opensuse",
)

SUSE_BACKEND = BackendDetails(
    domain="suse.de",
    login="suse:suse",
    buildprefix="build",
    rabbitprefix="rabbit",
    rabbitscope="suse",
)

SUPPORTED_BACKENDS: Dict[str, BackendDetails] = {
    backend.domain: backend for backend in (OPENSUSE_BACKEND, SUSE_BACKEND)
}
