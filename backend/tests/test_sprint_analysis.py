import pytest

from deck_export.services.exporters import sprint_analysis as analysis

from conftest import make_issues, make_metrics


def test_scores_from_sprint_data():
    metrics, issues = make_metrics(), make_issues()
    assert analysis.velocity(metrics) == 80
    assert analysis.quality_score(metrics) == 50
    assert analysis.completion_rate(issues) == pytest.approx(200 / 3)
    assert analysis.story_points(analysis.completed_issues(issues)) == 11


def test_empty_inputs_score_zero():
    assert analysis.velocity(None) == 0
    assert analysis.quality_score(None) == 0
    assert analysis.completion_rate([]) == 0


def test_executive_metrics_bands():
    m = analysis.executive_metrics(make_metrics(), make_issues())
    assert (m.velocity, m.velocity_status) == (80, "good")
    assert (m.quality_score, m.quality_status) == (50, "fair")
    assert (m.completion_rate, m.completion_status) == (67, "fair")
    assert (m.efficiency_score, m.efficiency_status) == (66, "good")


def test_business_impact_counts_completed_work():
    impact = analysis.business_impact(make_issues())
    assert impact["high_value_deliverables"] == 1
    assert impact["stories_completed"] == 1
    assert impact["bug_fixes"] == 1


def test_breakdowns_group_in_first_seen_order():
    epics = analysis.epic_breakdown(make_issues())
    assert [(g.name, g.completed, g.total) for g in epics] == [("Auth", 1, 2), ("Stability", 1, 1)]
    assert [g.name for g in analysis.assignee_breakdown(make_issues())] == ["Ana", "Ben"]


def test_recommendations():
    recs = analysis.recommendations(make_metrics(), make_issues())
    assert len(recs) == 2
    assert analysis.recommendations(None, []) == [
        "Implement sprint metrics tracking to improve visibility and decision-making"
    ]


def test_find_issue_by_id_or_key():
    issues = make_issues()
    assert analysis.find_issue(issues, "2").key == "DECK-2"
    assert analysis.find_issue(issues, "DECK-3").id == "3"
    assert analysis.find_issue(issues, None) is None
