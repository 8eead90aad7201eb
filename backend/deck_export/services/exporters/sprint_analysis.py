"""Sprint analytics shared by the renderers.

Pure functions over issues and sprint metrics; every ratio guards against
empty inputs so an empty sprint renders as zeros instead of failing.
"""
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional

from deck_export.models import Issue, SprintMetrics

HIGH_VALUE_POINTS = 8


def _pct(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole else 0.0


def status_band(score: float, excellent: float = 90, good: float = 75, fair: float = 60) -> str:
    if score >= excellent:
        return "excellent"
    if score >= good:
        return "good"
    if score >= fair:
        return "fair"
    return "poor"


def completed_issues(issues: List[Issue]) -> List[Issue]:
    return [i for i in issues if i.is_completed]


def story_points(issues: List[Issue]) -> float:
    return sum(i.story_points or 0 for i in issues)


def velocity(metrics: Optional[SprintMetrics]) -> float:
    """Completed points as a percentage of estimated points."""
    if metrics is None:
        return 0.0
    return _pct(metrics.completed_total_points, metrics.estimated_points)


def quality_score(metrics: Optional[SprintMetrics]) -> float:
    """yes = 1, partial = 0.5, anything else = 0, over all checklist items."""
    if metrics is None or not metrics.quality_checklist:
        return 0.0
    values = list(metrics.quality_checklist.values())
    yes = sum(1 for v in values if v == "yes")
    partial = sum(1 for v in values if v == "partial")
    return _pct(yes + partial * 0.5, len(values))


def completion_rate(issues: List[Issue]) -> float:
    return _pct(len(completed_issues(issues)), len(issues))


def efficiency_score(metrics: Optional[SprintMetrics], issues: List[Issue]) -> float:
    return velocity(metrics) * 0.4 + quality_score(metrics) * 0.3 + completion_rate(issues) * 0.3


@dataclass(frozen=True)
class ExecutiveMetrics:
    velocity: int
    velocity_status: str
    quality_score: int
    quality_status: str
    completion_rate: int
    completion_status: str
    efficiency_score: int
    efficiency_status: str


def executive_metrics(metrics: Optional[SprintMetrics], issues: List[Issue]) -> ExecutiveMetrics:
    if metrics is None:
        return ExecutiveMetrics(0, "poor", 0, "poor", 0, "poor", 0, "poor")
    vel = round(velocity(metrics))
    quality = round(quality_score(metrics))
    completion = round(completion_rate(issues))
    efficiency = round((vel + quality + completion) / 3)
    return ExecutiveMetrics(
        velocity=vel,
        velocity_status=status_band(vel),
        quality_score=quality,
        quality_status=status_band(quality, 80, 60, 40),
        completion_rate=completion,
        completion_status=status_band(completion),
        efficiency_score=efficiency,
        efficiency_status=status_band(efficiency, 80, 60, 40),
    )


def business_impact(issues: List[Issue]) -> Dict[str, int]:
    done = completed_issues(issues)
    high_value = [i for i in done if (i.story_points or 0) >= HIGH_VALUE_POINTS]
    total_points = story_points(done)
    return {
        "high_value_deliverables": len(high_value),
        "high_value_percentage": round(_pct(story_points(high_value), total_points)),
        "completed_issues": len(done),
        "stories_completed": sum(1 for i in done if i.issue_type == "Story"),
        "bug_fixes": sum(1 for i in done if i.issue_type == "Bug"),
        "technical_debt": sum(1 for i in done if i.issue_type == "Technical task"),
    }


@dataclass(frozen=True)
class GroupSummary:
    name: str
    completed: int
    total: int
    points: float


def _group(issues: List[Issue], key) -> List[GroupSummary]:
    groups: "OrderedDict[str, List[Issue]]" = OrderedDict()
    for issue in issues:
        groups.setdefault(key(issue), []).append(issue)
    return [
        GroupSummary(name, len(completed_issues(members)), len(members), story_points(members))
        for name, members in groups.items()
    ]


def epic_breakdown(issues: List[Issue]) -> List[GroupSummary]:
    return _group(issues, lambda i: i.epic_name or "No Epic")


def issue_type_breakdown(issues: List[Issue]) -> List[GroupSummary]:
    return _group(issues, lambda i: i.issue_type)


def assignee_breakdown(issues: List[Issue]) -> List[GroupSummary]:
    return _group(issues, lambda i: i.assignee or "Unassigned")


def recommendations(metrics: Optional[SprintMetrics], issues: List[Issue]) -> List[str]:
    if metrics is None:
        return ["Implement sprint metrics tracking to improve visibility and decision-making"]

    recs = []
    if velocity(metrics) < 75:
        recs.append("Review sprint planning process to improve estimation accuracy and scope management")
    if quality_score(metrics) < 70:
        recs.append("Strengthen quality gates and review processes to maintain high standards")
    if issues and completion_rate(issues) < 80:
        recs.append("Analyze blockers and dependencies to improve sprint completion rates")
    if metrics.test_coverage < 80:
        recs.append("Increase test coverage through additional unit and integration testing")
    if not recs:
        recs.append("Continue current practices - performance is on track")
    return recs


def find_issue(issues: List[Issue], story_id: Optional[str]) -> Optional[Issue]:
    if not story_id:
        return None
    for issue in issues:
        if issue.id == story_id or issue.key == story_id:
            return issue
    return None


QUALITY_ICONS = {"yes": "✅", "partial": "⚠️", "no": "❌", "na": "➖"}
