import json
from datetime import timedelta

from cicdrunner.runner.models import (
    AnalyzeResult,
    Issue,
    ReviewOptions,
    ReviewResult,
    ReviewSummary,
    TestGenOptions,
    TestGenResult,
)


def test_issue_round_trip():
    issue = Issue(
        severity="critical",
        category="security",
        file="auth.go",
        line=10,
        message="SQL injection vulnerability",
        suggestion="Use parameters",
    )
    assert Issue.from_dict(issue.to_dict()) == issue


def test_issue_round_trip_through_json():
    issue = Issue(severity="low", category="style", file="main.go", line=1)
    assert Issue.from_dict(json.loads(json.dumps(issue.to_dict()))) == issue


def test_issue_from_empty_dict_gives_defaults():
    assert Issue.from_dict({}) == Issue()


def test_issue_to_dict_keys():
    assert set(Issue().to_dict()) == {
        "severity",
        "category",
        "file",
        "line",
        "message",
        "suggestion",
    }


def test_review_summary_round_trip():
    summary = ReviewSummary(
        files_changed=4, total_issues=5, critical=1, high=1, medium=1, low=2
    )
    assert ReviewSummary.from_dict(summary.to_dict()) == summary


def test_review_summary_from_partial_dict():
    summary = ReviewSummary.from_dict({"total_issues": 5})
    assert summary.total_issues == 5
    assert summary.critical == 0
    assert summary.files_changed == 0


def test_review_result_defaults_are_independent():
    first = ReviewResult()
    second = ReviewResult()
    first.issues.append(Issue(severity="high"))
    assert second.issues == []
    assert first.duration == timedelta(0)
    assert first.cached is False


def test_review_options_defaults():
    options = ReviewOptions(pr_id=3)
    assert options.pr_id == 3
    assert options.skills == []
    assert options.force is False


def test_analyze_and_testgen_defaults():
    analysis = AnalyzeResult()
    assert analysis.risk.score == 0
    assert analysis.summary.files_changed == 0
    assert analysis.impact.database_migrations is False
    assert TestGenResult().test_files == []
    assert TestGenOptions().target_files == []