"""Static configuration for obsbridge.

All user-editable settings (backends, prefix, domains, default subscriptions,
logging) live in a single JSON file for quick edits without touching Python.
Secrets stay in the environment (see client.py).
"""

import json
import os

from core.config import BINDING_EAGER, BINDING_LAZY, SUPPORTED_BACKENDS, DomainSettings

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# The config path can be overridden to run several bots from one checkout.
CONFIG_PATH = os.getenv("OBSBRIDGE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))

# openQA jobs are short-lived, so its queue is only created once needed.
DEFAULT_BINDINGS = {
    "packages": BINDING_EAGER,
    "requests": BINDING_EAGER,
    "tests": BINDING_LAZY,
}


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _normalize_backends(raw_backends: list) -> list:
    """Map configured backend names onto the supported connection details."""

    backends = []
    for name in raw_backends:
        if name not in SUPPORTED_BACKENDS:
            raise ValueError(f"Backend {name} is not supported!")
        backends.append(SUPPORTED_BACKENDS[name])
    return backends


def _normalize_domains(raw_domains: dict) -> dict[str, DomainSettings]:
    domains: dict[str, DomainSettings] = {}
    for subtype, binding in DEFAULT_BINDINGS.items():
        entry = raw_domains.get(subtype, {})
        domains[subtype] = DomainSettings(
            enabled=bool(entry.get("enabled", True)),
            binding=entry.get("binding", binding),
        )
    return domains


def _normalize_defaults(raw_defaults: dict) -> dict[str, str]:
    """Join each room's URL list into one block, one URL per line."""

    defaults: dict[str, str] = {}
    for room, urls in raw_defaults.items():
        if isinstance(urls, str):
            urls = [urls]
        defaults[str(room)] = "\n".join(urls)
    return defaults


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Command prefix; empty means every line is a candidate command.
PREFIX = _CONFIG.get("prefix", "")

# Build service instances the bot listens to.
BACKENDS = _normalize_backends(_CONFIG.get("backends", []))

# Per-domain switches keyed by subtype ("packages", "requests", "tests").
DOMAINS = _normalize_domains(_CONFIG.get("domains", {}))

# Subscriptions applied at startup without chat replies, keyed by room.
DEFAULT_SUBSCRIPTIONS = _normalize_defaults(_CONFIG.get("defaults", {}))

# Broker settings shared by all backends.
_broker = _CONFIG.get("broker", {})
BROKER_EXCHANGE = _broker.get("exchange", "pubsub")
BROKER_URL_TEMPLATE = _broker.get("url_template", "amqps://{login}@{rabbitprefix}.{domain}/%2f")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
