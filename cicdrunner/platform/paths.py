"""Sanitising of Jenkins job names and workspace paths, and basic auth headers."""

from __future__ import annotations

import base64
import posixpath
import re

_VALID_JOB_NAME = re.compile(r"[a-zA-Z0-9._-]+")


class UnsafePathError(ValueError):
    """Raised when a job name or file path is unsafe to use."""


def _reject_common(value: str, kind: str) -> None:
    if ".." in value:
        raise UnsafePathError(f"{kind} path cannot contain '..'")


def sanitize_job_path(value: str) -> str:
    """Return value if it is a safe single-segment job name."""
    if not value:
        raise UnsafePathError("job path cannot be empty")
    _reject_common(value, "job")
    if "%2e" in value or "%2E" in value:
        raise UnsafePathError("job path cannot contain URL-encoded dots")
    if value.startswith(("/", "\\")):
        raise UnsafePathError("job path cannot be absolute")
    if not _VALID_JOB_NAME.fullmatch(value):
        raise UnsafePathError("job path contains invalid characters")
    if value == ".":
        raise UnsafePathError("job path is invalid")
    return value


def sanitize_file_path(value: str) -> str:
    """Return a cleaned relative workspace path, rejecting traversal attempts."""
    if not value:
        raise UnsafePathError("file path cannot be empty")
    if "\x00" in value:
        raise UnsafePathError("file path cannot contain null byte")
    _reject_common(value, "file")
    lowered = value.lower()
    if "%2e" in lowered or "%5c" in lowered:
        raise UnsafePathError("file path cannot contain URL-encoded dots or backslashes")
    if value.startswith(("/", "\\")):
        raise UnsafePathError("file path cannot be absolute")
    clean = posixpath.normpath(value)
    if clean in (".", "..", ""):
        raise UnsafePathError("file path is invalid")
    return clean


def jenkins_basic_auth(username: str, api_token: str) -> str:
    """Build a Basic authorization header value."""
    raw = f"{username}:{api_token}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")