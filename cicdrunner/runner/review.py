"""Summaries, comments and heuristics used when running reviews."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor

from cicdrunner.runner.models import Issue, ReviewResult, ReviewSummary
from cicdrunner.skill import SkillLoader

_log = logging.getLogger(__name__)

_SEVERITY_ICONS = {
    "critical": "🔴",
    "high": "🟠",
    "medium": "🟡",
    "low": "🟢",
}

_LANGUAGE_SUFFIXES = {
    ".go": "go",
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    "ava": "java",
}

_TEST_WORD = re.compile(b"(?=test)")


def summarize_issues(issues: Iterable[Issue]) -> ReviewSummary:
    """Count issues by severity and the distinct files they touch."""
    summary = ReviewSummary()
    files: set[str] = set()
    total = 0
    for issue in issues:
        total += 1
        if issue.file:
            files.add(issue.file)
        if issue.severity == "critical":
            summary.critical += 1
        elif issue.severity == "high":
            summary.high += 1
        elif issue.severity == "medium":
            summary.medium += 1
        elif issue.severity == "low":
            summary.low += 1
    summary.files_changed = len(files)
    summary.total_issues = total
    return summary


def severity_icon(severity: str) -> str:
    """Return the emoji for a severity level."""
    return _SEVERITY_ICONS.get(severity, "⚪")


def format_review_comment(result: ReviewResult) -> str:
    """Render a review result as a markdown comment."""
    summary = result.summary
    lines = [
        "## 🔍 Code Review Results\n\n### Summary\n\n",
        f"- **Files Changed**: {summary.files_changed}\n",
        f"- **Total Issues**: {summary.total_issues}\n",
    ]
    for label, count in (
        ("🔴 Critical", summary.critical),
        ("🟠 High", summary.high),
        ("🟡 Medium", summary.medium),
        ("🟢 Low", summary.low),
    ):
        if count > 0:
            lines.append(f"- **{label}**: {count}\n")
    lines.append("\n")

    if result.issues:
        lines.append("### Issues Found\n\n")
        for issue in result.issues:
            icon = severity_icon(issue.severity)
            lines.append(f"{icon} **{issue.category}** - `{issue.file}:{issue.line}`\n")
            lines.append(f"{issue.message}\n\n")
            if issue.suggestion:
                lines.append(f"**Suggestion**: {issue.suggestion}\n\n")
    else:
        lines.append("### ✅ No Issues Found\n\nGreat job! No issues were detected.\n\n")

    if result.cached:
        lines.append("*_Results served from cache_*\n")
    return "".join(lines)


def detect_test_language(files: Sequence[str]) -> str:
    """Guess the test language from the first target file with a known extension."""
    for name in files:
        if len(name) > 4:
            language = _LANGUAGE_SUFFIXES.get(name[-3:])
            if language is not None:
                return language
    return "go"


def estimate_test_count(output: str) -> int:
    """Roughly estimate how many tests a generated output contains."""
    data = output.encode("utf-8")
    # An occurrence must end before the last byte to be counted.
    count = len(_TEST_WORD.findall(data[:-1]))
    if count == 0 and len(data) > 100:
        return 3
    return min(count // 2, 20)


def build_diff_context(diff: str, pr_id: int) -> str:
    """Wrap a diff into the markdown context given to a review."""
    header = "# Code Review\n\n"
    if pr_id > 0:
        header += f"PR #{pr_id}\n\n"
    return header + "```diff\n" + diff + "\n```\n"


def _skills_for(
    requested: Sequence[str] | None, loader: SkillLoader | None, operation: str, fallback: str
) -> list[str]:
    if requested:
        return list(requested)
    if loader is None:
        _log.warning("skill loader is not initialized")
        return [fallback]
    return loader.skill_names_for_operation(operation) or [fallback]


def review_skills(requested: Sequence[str] | None, loader: SkillLoader | None) -> list[str]:
    """Return the requested skills, or the loader's review skills, or a default."""
    return _skills_for(requested, loader, "review", "code-reviewer")


def analysis_skills(requested: Sequence[str] | None, loader: SkillLoader | None) -> list[str]:
    """Return the requested skills, or the loader's analysis skills, or a default."""
    return _skills_for(requested, loader, "analyze", "change-analyzer")


def run_parallel(tasks: Sequence[Callable[[threading.Event], object]]) -> None:
    """Run tasks concurrently; on the first failure signal the rest and raise it.

    Each task receives an event that is set once any task has failed.
    """
    if not tasks:
        return

    cancel = threading.Event()
    lock = threading.Lock()
    errors: list[BaseException] = []

    def wrapped(task: Callable[[threading.Event], object]) -> None:
        try:
            task(cancel)
        except Exception as exc:
            with lock:
                if not errors:
                    errors.append(exc)
            cancel.set()

    with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
        for task in tasks:
            pool.submit(wrapped, task)

    if errors:
        raise errors[0]