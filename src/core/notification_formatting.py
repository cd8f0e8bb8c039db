"""Shared notification formatting helpers.

Every outgoing message is rendered twice: a plain body for clients and logs
that cannot show markup, and an HTML body with links. Keeping both here
prevents drift between domains and keeps the wording stable.
"""

from __future__ import annotations

import html
from typing import Iterable, Optional

from core.config import BackendDetails
from core.events import BuildEvent, RequestEvent, TestEvent
from core.keys import DomainKey
from core.models import Notification

SUCCESS_BUILD = "succeeded"
SUCCESS_TEST = "passed"


def base_url(backend: BackendDetails, path: str, show: bool = True) -> str:
    """Return the web UI prefix for a domain, e.g. ``https://build.opensuse.org/package/show``."""

    if show:
        return f"https://{backend.buildprefix}.{backend.domain}/{path}/show"
    return f"https://{backend.buildprefix}.{backend.domain}/{path}"


def key_url(prefix: str, key: DomainKey) -> str:
    return f"{prefix}/{key.encode()}"


def _link(url: str, label: str) -> str:
    return f"<a href=\"{html.escape(url)}\">{html.escape(label)}</a>"


def _emphasize(value: str, success: bool) -> str:
    escaped = html.escape(value)
    if success:
        return escaped
    return f"<u>{escaped}</u>"


def format_build(event: BuildEvent, change_type: str, prefix: str) -> Notification:
    entity = f"{event.project}/{event.package}"
    details = f"({event.arch} / {event.repository})"
    plain = f"Build {change_type}: {entity} {details}"
    status = _emphasize(change_type, change_type == SUCCESS_BUILD)
    rich = (
        f"<strong>Build {status}</strong>: "
        f"{_link(key_url(prefix, event.key), entity)} {html.escape(details)}"
    )
    return Notification(plain=plain, html=rich)


def _comment_suffix(comment: Optional[str]) -> str:
    return f" ({comment})" if comment else ""


def format_request(event: RequestEvent, change_type: str, prefix: str) -> Notification:
    link = _link(key_url(prefix, event.key), f"Request {event.number}")

    if change_type == "commented":
        by = f" by {event.commenter}" if event.commenter else ""
        body = event.comment_body or ""
        plain = f"Request {event.number} was commented{by}: {body}"
        rich_by = f" by <strong>{html.escape(event.commenter)}</strong>" if event.commenter else ""
        rich = f"{link} was commented{rich_by}: {html.escape(body)}"
        return Notification(plain=plain, html=rich)

    status = _emphasize(change_type, change_type != "deleted")
    plain = f"Request {event.number} was {change_type}"
    rich = f"{link} was {status}"
    if event.state:
        plain += f": {event.state}"
        rich += f": <strong>{html.escape(event.state)}</strong>"
    plain += _comment_suffix(event.comment)
    rich += html.escape(_comment_suffix(event.comment))
    return Notification(plain=plain, html=rich)


def format_test(event: TestEvent, change_type: str, prefix: str) -> Notification:
    # change_type is always "done" for openQA; the job result carries the news.
    reason = f" (reason: {event.reason})" if event.reason else ""
    plain = f"Test {event.result}: {event.testname} ({event.job_id}){reason}"
    status = _emphasize(event.result, event.result == SUCCESS_TEST)
    rich = (
        f"<strong>Test {status}:</strong> Test {html.escape(event.testname)} "
        f"({_link(key_url(prefix, event.key), event.job_id)}){html.escape(reason)}"
    )
    return Notification(plain=plain, html=rich)


def format_subscription_list(
    keys: Iterable[DomainKey],
    prefix: str,
    subtype: str,
    backend_domain: str,
) -> Notification:
    """Render the reply to ``list <subtype>``; keys are expected pre-sorted."""

    keys = list(keys)
    if not keys:
        text = f"This room is not subscribed to any {subtype} on {backend_domain}"
        return Notification(plain=text, html=html.escape(text))

    header = f"This room is subscribed to these {subtype} on {backend_domain}:"
    plain_lines = [header]
    html_lines = [f"<strong>{html.escape(header)}</strong>"]
    for key in keys:
        url = key_url(prefix, key)
        plain_lines.append(f"- {url}")
        html_lines.append(f"- {_link(url, key.encode())}")
    return Notification(plain="\n".join(plain_lines), html="\n".join(html_lines))
