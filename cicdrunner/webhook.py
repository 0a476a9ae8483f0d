"""Normalisation of pull/merge request webhooks from GitHub and GitLab."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

MAX_RAW_PAYLOAD_SIZE = 10 * 1024 * 1024
"""Raw payloads kept on an event are truncated to this many bytes."""


class Platform(str, Enum):
    """The platform that sent an event."""

    GITHUB = "github"
    GITLAB = "gitlab"
    GITEE = "gitee"

    def __str__(self) -> str:
        return self.value


class EventType(str, Enum):
    """Kinds of pull/merge request events."""

    PR_OPENED = "opened"
    PR_SYNCHRONIZE = "synchronize"
    PR_REOPENED = "reopened"
    PR_CLOSED = "closed"
    PR_MERGED = "merged"
    PR_OPENED_GL = "open"
    PR_UPDATED_GL = "update"

    def __str__(self) -> str:
        return self.value


_REVIEW_TRIGGERS = frozenset(
    {
        EventType.PR_OPENED,
        EventType.PR_SYNCHRONIZE,
        EventType.PR_REOPENED,
        EventType.PR_OPENED_GL,
        EventType.PR_UPDATED_GL,
    }
)

_GITHUB_ACTIONS = {
    "opened": EventType.PR_OPENED,
    "edited": EventType.PR_OPENED,
    "synchronize": EventType.PR_SYNCHRONIZE,
    "reopened": EventType.PR_REOPENED,
}

_GITLAB_ACTIONS = {
    "open": EventType.PR_OPENED_GL,
    "reopen": EventType.PR_OPENED_GL,
    "merge": EventType.PR_OPENED_GL,
    "update": EventType.PR_UPDATED_GL,
}


class WebhookParseError(ValueError):
    """Raised when a webhook payload cannot be parsed or is invalid."""


@dataclass
class Event:
    """A webhook event normalised across platforms."""

    platform: Platform | None = None
    type: EventType | None = None
    pr_id: int = 0
    repo: str = ""
    repo_id: int = 0
    owner: str = ""
    full_name: str = ""
    sha: str = ""
    base_ref: str = ""
    head_ref: str = ""
    title: str = ""
    description: str = ""
    author: str = ""
    raw_payload: bytes = b""
    timestamp: datetime | None = None

    def should_trigger_review(self) -> bool:
        """True if this event should start a code review."""
        return self.type in _REVIEW_TRIGGERS

    def to_json(self) -> str:
        """Serialise the event; the raw payload is embedded as JSON."""
        raw: Any = None
        if self.raw_payload:
            try:
                raw = json.loads(self.raw_payload)
            except ValueError as exc:
                raise WebhookParseError(f"raw payload is not valid JSON: {exc}") from exc
        return json.dumps(
            {
                "platform": self.platform.value if self.platform else "",
                "type": self.type.value if self.type else "",
                "pr_id": self.pr_id,
                "repo": self.repo,
                "repo_id": self.repo_id,
                "owner": self.owner,
                "full_name": self.full_name,
                "sha": self.sha,
                "base_ref": self.base_ref,
                "head_ref": self.head_ref,
                "title": self.title,
                "description": self.description,
                "author": self.author,
                "raw_payload": raw,
                "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            }
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> Event:
        """Rebuild an event from the output of to_json."""
        try:
            obj = json.loads(data)
        except ValueError as exc:
            raise WebhookParseError(f"failed to parse event: {exc}") from exc
        if not isinstance(obj, dict):
            raise WebhookParseError("event must be a JSON object")
        try:
            platform = Platform(obj["platform"]) if obj.get("platform") else None
            event_type = EventType(obj["type"]) if obj.get("type") else None
            timestamp = (
                datetime.fromisoformat(obj["timestamp"]) if obj.get("timestamp") else None
            )
        except (ValueError, TypeError) as exc:
            raise WebhookParseError(f"failed to parse event: {exc}") from exc
        raw = obj.get("raw_payload")
        return cls(
            platform=platform,
            type=event_type,
            pr_id=_field(obj, "pr_id", int, 0),
            repo=_field(obj, "repo", str, ""),
            repo_id=_field(obj, "repo_id", int, 0),
            owner=_field(obj, "owner", str, ""),
            full_name=_field(obj, "full_name", str, ""),
            sha=_field(obj, "sha", str, ""),
            base_ref=_field(obj, "base_ref", str, ""),
            head_ref=_field(obj, "head_ref", str, ""),
            title=_field(obj, "title", str, ""),
            description=_field(obj, "description", str, ""),
            author=_field(obj, "author", str, ""),
            raw_payload=(
                json.dumps(raw, separators=(",", ":")).encode("utf-8")
                if raw is not None
                else b""
            ),
            timestamp=timestamp,
        )


def _field(obj: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = obj.get(key)
    if value is None:
        return default
    if kind is int:
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, kind)
    if not valid:
        raise WebhookParseError(
            f"field {key!r} must be of type {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _obj(obj: dict[str, Any], key: str) -> dict[str, Any]:
    return _field(obj, key, dict, {})


def _decode(data: str | bytes, source: str) -> dict[str, Any]:
    try:
        payload = json.loads(data)
    except ValueError as exc:
        raise WebhookParseError(f"failed to parse {source} payload: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise WebhookParseError(f"failed to parse {source} payload: expected a JSON object")
    return payload


def _raw(data: str | bytes) -> bytes:
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    return raw[:MAX_RAW_PAYLOAD_SIZE]


def _or(value: str, default: str) -> str:
    return value or default


def parse_github_event(data: str | bytes, event_type: str) -> Event | None:
    """Parse a GitHub webhook; return None for events that need no action."""
    if event_type == "ping":
        return None

    payload = _decode(data, "GitHub")
    action = _field(payload, "action", str, "")
    pull = _obj(payload, "pull_request")
    number = _field(pull, "number", int, 0)
    title = _field(pull, "title", str, "")
    body = _field(pull, "body", str, "")
    author = _field(_obj(pull, "user"), "login", str, "")
    head = _obj(pull, "head")
    base = _obj(pull, "base")
    repository = _obj(payload, "repository")

    if event_type != "pull_request":
        return None

    evt_type = _GITHUB_ACTIONS.get(action)
    if evt_type is None:
        return None

    if number <= 0:
        raise WebhookParseError(f"invalid PR number: {number}")

    return Event(
        platform=Platform.GITHUB,
        type=evt_type,
        pr_id=number,
        repo=_or(_field(repository, "name", str, ""), "unknown"),
        repo_id=_field(repository, "id", int, 0),
        owner=_or(_field(_obj(repository, "owner"), "login", str, ""), "unknown"),
        full_name=_or(_field(repository, "full_name", str, ""), "unknown"),
        sha=_field(head, "sha", str, ""),
        base_ref=_field(base, "ref", str, ""),
        head_ref=_field(head, "ref", str, ""),
        title=_or(title, "Untitled"),
        description=body,
        author=_or(author, "unknown"),
        raw_payload=_raw(data),
    )


def parse_gitlab_event(data: str | bytes, event_type: str) -> Event | None:
    """Parse a GitLab webhook; return None for events that need no action."""
    payload = _decode(data, "GitLab")
    kind = _field(payload, "object_kind", str, "")
    username = _field(_obj(payload, "user"), "username", str, "")
    project = _obj(payload, "project")
    attributes = _obj(payload, "object_attributes")
    action = _field(attributes, "action", str, "")
    iid = _field(attributes, "iid", int, 0)

    if kind != "merge_request":
        return None

    evt_type = _GITLAB_ACTIONS.get(action)
    if evt_type is None:
        return None

    if iid <= 0:
        raise WebhookParseError(f"invalid MR number: {iid}")

    return Event(
        platform=Platform.GITLAB,
        type=evt_type,
        pr_id=iid,
        repo=_or(_field(project, "name", str, ""), "unknown"),
        repo_id=_field(project, "id", int, 0),
        owner=_or(username, "unknown"),
        full_name=_or(_field(project, "path_with_namespace", str, ""), "unknown"),
        sha=_field(_obj(attributes, "last_commit"), "id", str, ""),
        base_ref=_field(attributes, "target_branch", str, ""),
        head_ref=_field(attributes, "source_branch", str, ""),
        title=_or(_field(attributes, "title", str, ""), "Untitled"),
        description=_field(attributes, "description", str, ""),
        author=_or(username, "unknown"),
        raw_payload=_raw(data),
    )