"""Error taxonomy shared by the core and the adapters."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error raised by the bridge."""


class KeyParseError(BridgeError):
    """A chat line could not be decoded into a subscription key."""


class InternalError(BridgeError):
    """The registry lock could not be acquired."""


class DomainError(BridgeError):
    """An event could not be decoded or classified."""


class BindingError(BridgeError):
    """Declaring, binding or consuming on the broker failed."""
