"""Options and results of review, analysis and test-generation runs."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Any


@dataclass
class Issue:
    """A single problem found during review."""

    severity: str = ""
    category: str = ""
    file: str = ""
    line: int = 0
    message: str = ""
    suggestion: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Issue:
        return cls(
            severity=str(data.get("severity", "")),
            category=str(data.get("category", "")),
            file=str(data.get("file", "")),
            line=int(data.get("line", 0)),
            message=str(data.get("message", "")),
            suggestion=str(data.get("suggestion", "")),
        )


@dataclass
class ReviewOptions:
    """Options for a code review."""

    pr_id: int = 0
    diff: str = ""
    base_sha: str = ""
    head_sha: str = ""
    skills: list[str] = field(default_factory=list)
    force: bool = False


@dataclass
class AnalyzeOptions:
    """Options for a change analysis."""

    pr_id: int = 0
    diff: str = ""
    file_count: int = 0
    additions: int = 0
    deletions: int = 0
    skills: list[str] = field(default_factory=list)


@dataclass
class TestGenOptions:
    """Options for test generation."""

    __test__ = False

    diff: str = ""
    target_files: list[str] = field(default_factory=list)
    test_framework: str = ""
    create_files: bool = False


@dataclass
class ReviewSummary:
    """Counts of issues found in a review."""

    files_changed: int = 0
    total_issues: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewSummary:
        return cls(
            files_changed=int(data.get("files_changed", 0)),
            total_issues=int(data.get("total_issues", 0)),
            critical=int(data.get("critical", 0)),
            high=int(data.get("high", 0)),
            medium=int(data.get("medium", 0)),
            low=int(data.get("low", 0)),
        )


@dataclass
class ReviewResult:
    """The outcome of a code review."""

    summary: ReviewSummary = field(default_factory=ReviewSummary)
    issues: list[Issue] = field(default_factory=list)
    platform_comment: str = ""
    cached: bool = False
    duration: timedelta = timedelta(0)


@dataclass
class ChangeSummary:
    """A description of a change set."""

    title: str = ""
    description: str = ""
    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0


@dataclass
class ImpactAnalysis:
    """The impact a change has."""

    breaking_changes: list[str] = field(default_factory=list)
    api_changes: list[str] = field(default_factory=list)
    database_migrations: bool = False
    config_changes: list[str] = field(default_factory=list)
    affected_modules: list[str] = field(default_factory=list)


@dataclass
class RiskAssessment:
    """A risk score from 1 to 10 with its reasons."""

    score: int = 0
    factors: list[str] = field(default_factory=list)
    testing_level: str = ""
    rollback_complexity: str = ""


@dataclass
class ChangelogEntry:
    """A changelog entry grouped by kind of change."""

    added: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    deprecated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    fixed: list[str] = field(default_factory=list)


@dataclass
class AnalyzeResult:
    """The outcome of a change analysis."""

    summary: ChangeSummary = field(default_factory=ChangeSummary)
    impact: ImpactAnalysis = field(default_factory=ImpactAnalysis)
    risk: RiskAssessment = field(default_factory=RiskAssessment)
    changelog: ChangelogEntry = field(default_factory=ChangelogEntry)
    suggestions: list[str] = field(default_factory=list)
    duration: timedelta = timedelta(0)


@dataclass
class GeneratedTest:
    """A generated test file."""

    path: str = ""
    language: str = ""
    content: str = ""
    tests: int = 0


@dataclass
class TestGenSummary:
    """Statistics of a test-generation run."""

    __test__ = False

    files_created: int = 0
    total_tests: int = 0
    coverage_est: str = ""


@dataclass
class TestGenResult:
    """The outcome of a test-generation run."""

    __test__ = False

    test_files: list[GeneratedTest] = field(default_factory=list)
    summary: TestGenSummary = field(default_factory=TestGenSummary)
    duration: timedelta = timedelta(0)