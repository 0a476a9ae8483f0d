"""On-disk caching of review results, keyed by pull request."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

from cicdrunner.runner.models import Issue, ReviewSummary

DEFAULT_CACHE_TTL_HOURS = 24
"""Cached reviews older than this many hours are discarded."""

CACHE_FILE_PERMISSIONS = 0o600
"""Cache files may hold code snippets, so only the owner may read them."""

_log = logging.getLogger(__name__)


@dataclass
class CachedReview:
    """A review result as stored in the cache."""

    summary: ReviewSummary = field(default_factory=ReviewSummary)
    issues: list[Issue] = field(default_factory=list)
    comment: str = ""
    cached_at: datetime | None = None
    duration: timedelta = timedelta(0)

    def _to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "issues": [issue.to_dict() for issue in self.issues],
            "comment": self.comment,
            "cached_at": self.cached_at.isoformat() if self.cached_at else None,
            "duration": self.duration.total_seconds(),
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> CachedReview:
        cached_at = data.get("cached_at")
        return cls(
            summary=ReviewSummary.from_dict(data.get("summary") or {}),
            issues=[Issue.from_dict(item) for item in data.get("issues") or []],
            comment=str(data.get("comment", "")),
            cached_at=datetime.fromisoformat(cached_at) if cached_at else None,
            duration=timedelta(seconds=float(data.get("duration", 0))),
        )


class ReviewCache:
    """Stores review results as JSON files in a directory, with a time to live."""

    def __init__(self, directory: str, enabled: bool) -> None:
        if enabled:
            os.makedirs(directory, mode=0o755, exist_ok=True)
        self.directory = directory
        self.enabled = enabled
        self.ttl = timedelta(hours=DEFAULT_CACHE_TTL_HOURS)
        self._lock = threading.Lock()

    def review_path(self, pr_id: int) -> str:
        """Return the file that holds the cached review of a pull request."""
        digest = hashlib.md5(f"pr-{pr_id}".encode("utf-8")).hexdigest()
        return os.path.join(self.directory, f"pr-{pr_id}-{digest}.json")

    def get_review(self, pr_id: int) -> CachedReview | None:
        """Return the cached review, or None if absent, unreadable or expired."""
        if not self.enabled:
            return None

        with self._lock:
            path = self.review_path(pr_id)
            try:
                with open(path, encoding="utf-8") as handle:
                    data = json.load(handle)
                cached = CachedReview._from_dict(data)
            except (OSError, ValueError, TypeError, AttributeError):
                return None

            cached_at = cached.cached_at
            if cached_at is None or cached_at.tzinfo is None:
                return None
            if datetime.now(timezone.utc) - cached_at > self.ttl:
                try:
                    os.remove(path)
                except OSError:
                    pass
                return None
            return cached

    def set_review(self, pr_id: int, review: CachedReview) -> None:
        """Store a review, stamping it with the current time."""
        if not self.enabled:
            return

        with self._lock:
            stamped = replace(review, cached_at=datetime.now(timezone.utc))
            try:
                data = json.dumps(stamped._to_dict())
            except (TypeError, ValueError) as exc:
                _log.warning("failed to marshal review data for PR %d: %s", pr_id, exc)
                return

            path = self.review_path(pr_id)
            try:
                fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CACHE_FILE_PERMISSIONS)
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(data)
            except OSError as exc:
                _log.warning("failed to write cache file %s: %s", path, exc)

    def invalidate(self, pr_id: int) -> None:
        """Remove the cached review of a pull request, if any."""
        with self._lock:
            try:
                os.remove(self.review_path(pr_id))
            except OSError:
                pass

    def clear(self) -> None:
        """Remove every file in the cache directory."""
        with self._lock:
            if not self.enabled:
                return
            for name in os.listdir(self.directory):
                path = os.path.join(self.directory, name)
                try:
                    os.remove(path)
                except OSError as exc:
                    _log.warning("failed to delete cache file %s: %s", path, exc)

    def set_ttl(self, ttl: timedelta) -> None:
        """Change how long cached reviews stay valid."""
        with self._lock:
            self.ttl = ttl


def diff_hash(diff: str) -> str:
    """Return a hex digest of diff content, for use as a cache key."""
    return hashlib.md5(diff.encode("utf-8")).hexdigest()